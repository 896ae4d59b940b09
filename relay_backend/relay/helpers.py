import json
from dataclasses import dataclass
from typing import Any, Optional

from relay_backend.errors import FrameParseError


START_MESSAGE_TYPE = "start"
ERROR_MESSAGE_TYPE = "error"
UPSTREAM_CONNECTION_ERROR_MESSAGE = "Realtime API connection error"

# Upstream event types the client is allowed to see. Everything else stays on the relay.
FORWARDED_EVENT_TYPES = frozenset({
    "session.created",
    "session.updated",
    "response.audio.delta",
    "response.audio.done",
    "response.text.delta",
    "response.text.done",
    "response.done",
    "conversation.item.created",
    "input_audio_buffer.speech_started",
    "input_audio_buffer.speech_stopped",
    ERROR_MESSAGE_TYPE,
})

_JSON_LEAD_BYTE = ord("{")


@dataclass(frozen=True)
class BinaryFrame:
    data: bytes


@dataclass(frozen=True)
class ControlFrame:
    message: dict[str, Any]

    @property
    def message_type(self) -> Optional[str]:
        message_type = self.message.get("type")
        return message_type if isinstance(message_type, str) else None


@dataclass(frozen=True)
class MalformedFrame:
    raw: bytes
    reason: str


ClientFrame = BinaryFrame | ControlFrame | MalformedFrame


def parse_control_message(raw: bytes) -> dict[str, Any]:
    """
    Decodes a client frame that starts with '{' into a control message.
    Args:
        raw (bytes): The UTF-8 encoded frame as received from the client.
    Returns:
        dict: The decoded message. A missing or non-string "type" is left for the
        realtime API to reject, so the client still gets its diagnostics.
    Raises FrameParseError when the payload is not valid JSON or is not an object.
    """
    try:
        message = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError, RecursionError) as exc:
        raise FrameParseError(f"invalid JSON: {exc}") from exc

    if not isinstance(message, dict):
        raise FrameParseError("control message must be a JSON object")
    return message


def decode_client_frame(raw: bytes | str) -> ClientFrame:
    """
    Classifies one frame received from the client.
    Text and binary frames are treated alike: the decision only depends on the
    first byte. A leading '{' means a JSON control message, anything else is raw
    PCM audio that goes upstream untouched.
    """
    data = raw.encode("utf-8") if isinstance(raw, str) else bytes(raw)

    if not data or data[0] != _JSON_LEAD_BYTE:
        return BinaryFrame(data)

    try:
        return ControlFrame(parse_control_message(data))
    except FrameParseError as exc:
        return MalformedFrame(data, str(exc))


def is_forwardable_event(message: Any) -> bool:
    return isinstance(message, dict) and message.get("type") in FORWARDED_EVENT_TYPES


def build_session_update(session_config: dict[str, Any]) -> dict[str, Any]:
    """Wraps the static session configuration into the session.update sent right after connecting."""
    session_data = json.loads(json.dumps(session_config))  # Deep copy
    return {
        "type": "session.update",
        "session": session_data,
    }


def build_error_event(message: Optional[str] = None) -> dict[str, Any]:
    return {
        "type": ERROR_MESSAGE_TYPE,
        "error": {"message": message or UPSTREAM_CONNECTION_ERROR_MESSAGE},
    }
