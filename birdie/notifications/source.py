"""
JsonLinesSource: inbound notification events as JSON lines.

The native capture layers (D-Bus on Linux, the notification center on
macOS, UserNotificationListener on Windows) live outside this package.
Whatever bridge runs them writes one payload per line:

    {"app_name": "WhatsApp", "sender": "Ana", "message": "Hola",
     "timestamp": "2024-05-01T10:00:00Z"}

This reader turns each line into a Notification and hands it over.
Bad lines are logged and skipped; the stream keeps going.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Awaitable, Callable, TextIO

from birdie.core.errors import NotificationError
from birdie.notifications.base import Notification

logger = logging.getLogger(__name__)

NotificationCallback = Callable[[Notification], Awaitable[None]]


class JsonLinesSource:
    """Reads notification payloads from a text stream (stdin by default)."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream or sys.stdin
        self.received = 0
        self.skipped = 0

    @staticmethod
    def parse_line(line: str) -> Notification | None:
        """
        Parse one line. Returns None for blank lines.

        Raises:
            NotificationError: if the line is not valid JSON or lacks fields
        """
        line = line.strip()
        if not line:
            return None
        try:
            payload = json.loads(line)
        except json.JSONDecodeError as e:
            raise NotificationError(f"Invalid JSON: {e}") from e
        return Notification.from_event(payload)

    async def run(self, callback: NotificationCallback) -> None:
        """Read until EOF, awaiting callback for every valid notification."""
        while True:
            # Blocking readline happens off the event loop
            line = await asyncio.to_thread(self._stream.readline)
            if line == "":
                break
            try:
                notification = self.parse_line(line)
            except NotificationError as e:
                self.skipped += 1
                logger.warning(f"Skipping notification line: {e.message}")
                continue
            if notification is None:
                continue
            self.received += 1
            await callback(notification)

        logger.info(
            f"Notification source closed ({self.received} received, "
            f"{self.skipped} skipped)"
        )
