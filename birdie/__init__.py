"""
Birdie — reads your notifications out loud.

Public API:
    from birdie import Kernel, PlaybackController, CDPSession, MonitorLoop
"""

__version__ = "0.1.0"

# Core
from birdie.core.kernel import Kernel
from birdie.core.config import BirdieConfig
from birdie.core.events import Event, EventType

# Notifications + playback
from birdie.notifications.base import Notification
from birdie.notifications.store import NotificationStore
from birdie.playback.controller import PlaybackController, PlaybackState

# CDP
from birdie.cdp.registry import TabRegistry
from birdie.cdp.session import CDPSession, ConnectionState
from birdie.cdp.monitor import MonitorLoop

__all__ = [
    # Core
    "Kernel",
    "BirdieConfig",
    "Event",
    "EventType",
    # Notifications + playback
    "Notification",
    "NotificationStore",
    "PlaybackController",
    "PlaybackState",
    # CDP
    "TabRegistry",
    "CDPSession",
    "ConnectionState",
    "MonitorLoop",
]
