"""
Notification primitive.

A Notification is what the native capture layer hands us: which app, who
sent it, the text, and when. It is immutable once created; the id is
assigned here at ingestion and only serves as display identity.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from birdie.core.errors import NotificationError

REQUIRED_FIELDS = ("app_name", "sender", "message")


@dataclass(frozen=True)
class Notification:
    """A single inbound push notification."""

    app_name: str
    sender: str
    message: str
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    app_icon: str | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @classmethod
    def from_event(cls, payload: dict[str, Any]) -> Notification:
        """
        Build a Notification from an inbound event payload.

        Expected keys: app_name, sender, message, timestamp (ISO-8601),
        app_icon (optional). Any id in the payload is ignored; a fresh one
        is always assigned.
        """
        if not isinstance(payload, dict):
            raise NotificationError(
                f"Notification payload must be an object, got {type(payload).__name__}"
            )
        missing = [k for k in REQUIRED_FIELDS if not isinstance(payload.get(k), str)]
        if missing:
            raise NotificationError(
                f"Notification payload missing fields: {', '.join(missing)}",
                details={"payload": payload},
            )

        kwargs: dict[str, Any] = {
            "app_name": payload["app_name"],
            "sender": payload["sender"],
            "message": payload["message"],
            "app_icon": payload.get("app_icon"),
        }
        if payload.get("timestamp"):
            kwargs["timestamp"] = str(payload["timestamp"])
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
