"""
Birdie event system — types and constants.

Every state transition worth showing to a user produces an event.
Events flow through the middleware chain, then to subscribers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
import time
import uuid


class EventType:
    """
    Event type constants.

    Hierarchical naming: "category:action"
    Supports wildcard matching: "playback:*" matches "playback:started"
    """

    # System lifecycle
    SYSTEM_START = "system:start"
    SYSTEM_STOP = "system:stop"

    # Inbound notifications
    NOTIFICATION_RECEIVED = "notification:received"
    NOTIFICATION_QUEUED = "notification:queued"

    # Playback
    PLAYBACK_STARTED = "playback:started"
    PLAYBACK_FINISHED = "playback:finished"
    PLAYBACK_STOPPED = "playback:stopped"
    PLAYBACK_IDLE = "playback:idle"
    PLAYBACK_ERROR = "playback:error"

    # CDP session
    CDP_CONNECTING = "cdp:connecting"
    CDP_CONNECTED = "cdp:connected"
    CDP_DISCONNECTED = "cdp:disconnected"
    CDP_ERROR = "cdp:error"
    CDP_TABS = "cdp:tabs"

    # Tab monitoring
    MONITOR_STARTED = "monitor:started"
    MONITOR_STOPPED = "monitor:stopped"
    MONITOR_MESSAGE = "monitor:message"
    MONITOR_ERROR = "monitor:error"

    # Wildcard
    ALL = "*"


@dataclass(slots=True)
class Event:
    """
    A single event in Birdie.

    Events are:
    - Typed (hierarchical string)
    - Timestamped
    - Traceable (source + parent_id for causal chains)
    - Extensible (data dict for event-specific payload)
    """

    type: str
    data: dict[str, Any] = field(default_factory=dict)
    source: str = ""
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:16])
    timestamp: float = field(default_factory=time.time)
    parent_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def child(self, event_type: str, data: dict[str, Any] | None = None) -> Event:
        """Create a child event linked to this one."""
        return Event(
            type=event_type,
            data=data or {},
            source=self.source,
            parent_id=self.id,
        )
