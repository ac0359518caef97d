"""
NotificationStore: the FIFO of notifications waiting to be narrated.

Pure data. The item being narrated is popped out of here the moment it is
chosen, so "now playing" and "queued" are always disjoint views. Policy
(auto-play, guards) lives in PlaybackController.
"""

from __future__ import annotations

import logging
from collections import deque

from birdie.notifications.base import Notification

logger = logging.getLogger(__name__)


class NotificationStore:
    """
    In-memory arrival-ordered queue. Never persisted.

    Usage:
        store = NotificationStore()
        store.enqueue(notification)
        head = store.pop_head()      # None when empty
        for n in store.peek_all():   # read-only snapshot
            ...
    """

    def __init__(self) -> None:
        self._queue: deque[Notification] = deque()

    def enqueue(self, notification: Notification) -> int:
        """Append to the tail. Returns the new queue length."""
        self._queue.append(notification)
        logger.debug(
            f"Queued notification from {notification.app_name!r} "
            f"(queue size {len(self._queue)})"
        )
        return len(self._queue)

    def pop_head(self) -> Notification | None:
        """Remove and return the oldest notification, or None if empty."""
        if not self._queue:
            return None
        return self._queue.popleft()

    def peek_all(self) -> tuple[Notification, ...]:
        return tuple(self._queue)

    def clear(self) -> None:
        self._queue.clear()

    @property
    def is_empty(self) -> bool:
        return not self._queue

    def __len__(self) -> int:
        return len(self._queue)
