"""JSON message framing for the relay websocket.

Every message is an object tagged by ``type``. Outbound messages carry their
fields under ``payload``; inbound messages are accepted with fields either
under ``payload`` or at the top level (the relay sends ``auth_error`` with a
top-level ``error``).
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from .core import ProtocolError

AUTH = "auth"
AUTH_SUCCESS = "auth_success"
AUTH_ERROR = "auth_error"
PRINT_JOB = "print_job"
JOB_STATUS = "job_status"
HEARTBEAT = "heartbeat"
PING = "ping"
PONG = "pong"


@dataclass(slots=True, frozen=True)
class RelayMessage:
    type: str
    payload: Mapping[str, Any] = field(default_factory=dict)


def encode_message(
    message_type: str, payload: Optional[Mapping[str, Any]] = None
) -> str:
    message: dict[str, Any] = {"type": message_type}
    if payload is not None:
        message["payload"] = dict(payload)
    return json.dumps(message, separators=(",", ":"))


def decode_message(data: str | bytes) -> RelayMessage:
    """Parse one inbound frame.

    Raises:
        ProtocolError: If the frame is not a JSON object with a string ``type``.
    """
    try:
        message = json.loads(data)
    except (TypeError, ValueError) as exc:
        raise ProtocolError(f"Relay message is not valid JSON: {exc}") from exc

    if not isinstance(message, dict):
        raise ProtocolError("Relay message is not a JSON object")

    message_type = message.get("type")
    if not isinstance(message_type, str) or not message_type:
        raise ProtocolError("Relay message has no type tag")

    payload: dict[str, Any] = {
        key: value for key, value in message.items() if key not in ("type", "payload")
    }
    nested = message.get("payload")
    if isinstance(nested, dict):
        payload.update(nested)
    elif nested is not None:
        raise ProtocolError(f"Relay message {message_type!r} has a non-object payload")

    return RelayMessage(type=message_type, payload=payload)
