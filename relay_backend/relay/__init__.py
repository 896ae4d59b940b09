"""Session pairing, frame classification and upstream event filtering."""
