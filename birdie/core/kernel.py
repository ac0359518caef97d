"""
Birdie Kernel — the central coordinator.

Holds the event bus and config, and owns shutdown: components register an
async closer when they are wired up, and stop() runs the closers newest
first before announcing system:stop.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from birdie.core.bus import EventBus, EventHandler, MiddlewareFunc
from birdie.core.config import BirdieConfig
from birdie.core.events import Event, EventType

logger = logging.getLogger(__name__)

Closer = Callable[[], Awaitable[object]]


class Kernel:
    """
    Usage:
        kernel = Kernel()
        kernel.use(event_logger.middleware)
        session = CDPSession(client, bus=kernel.bus)
        kernel.on_shutdown(session.disconnect)

        await kernel.start()
        ...
        await kernel.stop()   # disconnects the session
    """

    def __init__(self, config: BirdieConfig | None = None) -> None:
        self.config = config or BirdieConfig.load()
        self.bus = EventBus()
        self._running = False
        self._closers: list[tuple[str, Closer]] = []

    # ━━━ Event Bus Shortcuts ━━━

    def on(self, event_type: str, handler: EventHandler) -> None:
        self.bus.on(event_type, handler)

    def off(self, event_type: str, handler: EventHandler) -> None:
        self.bus.off(event_type, handler)

    async def emit(self, event: Event) -> Event:
        return await self.bus.emit(event)

    def use(self, middleware: MiddlewareFunc) -> None:
        self.bus.use(middleware)

    # ━━━ Shutdown ━━━

    def on_shutdown(self, closer: Closer, name: str | None = None) -> None:
        """Register an async closer for stop(). Closers run newest first."""
        self._closers.append((name or getattr(closer, "__qualname__", repr(closer)), closer))

    async def _run_closers(self) -> None:
        closers, self._closers = self._closers, []
        for name, closer in reversed(closers):
            try:
                await closer()
            except Exception as e:
                logger.error(f"Shutdown step {name} failed: {e}", exc_info=e)

    # ━━━ Lifecycle ━━━

    async def start(self) -> None:
        """Start the kernel. Emits system:start event."""
        if self._running:
            return
        self._running = True
        logger.info("Birdie kernel starting")
        await self.emit(Event(type=EventType.SYSTEM_START, source="kernel"))

    async def stop(self) -> None:
        """Run registered closers, then emit system:stop. Safe to repeat."""
        await self._run_closers()
        if not self._running:
            return
        self._running = False
        logger.info("Birdie kernel stopped")
        await self.emit(Event(type=EventType.SYSTEM_STOP, source="kernel"))

    @property
    def running(self) -> bool:
        return self._running
