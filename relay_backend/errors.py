"""Error types shared by the relay transport and session layers."""

from __future__ import annotations


class RelayError(Exception):
    """Base class for relay errors."""


class UpstreamConnectionError(RelayError, ConnectionError):
    """The upstream handshake was rejected or its socket failed."""


class SendError(RelayError):
    """A frame was sent on a connection that is not open."""


class FrameParseError(RelayError, ValueError):
    """A client frame looked like JSON but could not be decoded as a control message."""


__all__ = ["FrameParseError", "RelayError", "SendError", "UpstreamConnectionError"]
