from __future__ import annotations


class NotificationError(Exception):
    """Base class for publish-side notification failures."""


class NotConnected(NotificationError):
    """The target subscriber has no open stream. Expected, safe to ignore."""

    def __init__(self, user_id: int):
        super().__init__(f"user {user_id} is not connected")
        self.user_id = user_id


class EncodingFailure(NotificationError, ValueError):
    def __init__(self, event_type: str, reason: str):
        super().__init__(f"cannot encode event {event_type!r}: {reason}")
        self.event_type = event_type
        self.reason = reason
