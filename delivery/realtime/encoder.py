from __future__ import annotations
import json
from typing import Any

from fastapi.encoders import jsonable_encoder

from delivery.realtime.errors import EncodingFailure

CONNECTED_EVENT = "connected"


def _dumps(value: Any) -> str:
    return json.dumps(
        jsonable_encoder(value),
        ensure_ascii=False,
        separators=(",", ":"),
        allow_nan=False,
    )


def encode_event(event_type: str, payload: Any) -> bytes:
    """Serialize one event into a wire-ready SSE frame.

    Called once per publish; the same bytes are shared by every recipient.
    """
    if not isinstance(event_type, str) or not event_type.strip():
        raise EncodingFailure(str(event_type), "event type must be a non-empty string")
    if "\n" in event_type or "\r" in event_type:
        raise EncodingFailure(event_type, "event type must be a single line")
    try:
        data = _dumps(payload)
    except (TypeError, ValueError, RecursionError) as e:
        raise EncodingFailure(event_type, str(e)) from e
    return f"event: {event_type}\ndata: {data}\n\n".encode("utf-8")


def connected_frame(user_id: int) -> bytes:
    return encode_event(
        CONNECTED_EVENT,
        {"userId": user_id, "message": "Connected to the notification service"},
    )


def comment_frame(text: str) -> bytes:
    return f": {text}\n\n".encode("utf-8")
