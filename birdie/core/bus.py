"""
Birdie event bus.

The only channel between components: the playback controller, the CDP
session and the monitor loop publish, the CLI (or any other front end)
subscribes. Nothing is shared by mutation.

Combines:
1. Observer (pub/sub) with wildcard patterns
2. Middleware chain run before delivery (logging, filtering)
"""

from __future__ import annotations

import asyncio
import fnmatch
import logging
from typing import Awaitable, Callable

from birdie.core.events import Event

logger = logging.getLogger(__name__)

EventHandler = Callable[[Event], Awaitable[None]]
MiddlewareNext = Callable[[Event], Awaitable[Event]]
MiddlewareFunc = Callable[[Event, MiddlewareNext], Awaitable[Event]]


class EventBus:
    """
    Publish/subscribe event bus with middleware pipeline.

    Usage:
        bus = EventBus()
        bus.on("playback:started", show_now_playing)
        bus.on("monitor:*", render_monitor_panel)
        bus.use(event_logger.middleware)

        await bus.emit(Event(type="playback:started", data={...}))
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[EventHandler]] = {}
        self._middleware: list[MiddlewareFunc] = []

    # ━━━ Subscription ━━━

    def on(self, event_type: str, handler: EventHandler) -> None:
        """Subscribe to an event type. Supports wildcards: 'cdp:*', '*'."""
        self._subscribers.setdefault(event_type, []).append(handler)

    def off(self, event_type: str, handler: EventHandler) -> None:
        """Unsubscribe from an event type."""
        handlers = self._subscribers.get(event_type)
        if handlers is None:
            return
        remaining = [h for h in handlers if h is not handler]
        if remaining:
            self._subscribers[event_type] = remaining
        else:
            del self._subscribers[event_type]

    # ━━━ Middleware ━━━

    def use(self, middleware: MiddlewareFunc) -> None:
        """
        Add middleware to the processing pipeline.

        Middleware signature:
            async def mw(event: Event, next: MiddlewareNext) -> Event:
                return await next(event)

        Not calling next() drops the event.
        """
        self._middleware.append(middleware)

    # ━━━ Emission ━━━

    async def emit(self, event: Event) -> Event:
        """
        Run the event through middleware, then deliver to subscribers.

        Subscribers run concurrently; their errors are logged, never raised.
        """
        chain = self._build_chain()
        return await chain(event)

    def emit_nowait(self, event: Event) -> None:
        """Schedule an emit without waiting. Errors are logged."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No event loop for nowait emit: {event.type}")
            return
        loop.create_task(self._emit_safe(event))

    # ━━━ Internals ━━━

    def _build_chain(self) -> MiddlewareNext:
        async def dispatch(event: Event) -> Event:
            handlers = self._find_handlers(event.type)
            if not handlers:
                return event
            results = await asyncio.gather(
                *(h(event) for h in handlers),
                return_exceptions=True,
            )
            for result in results:
                if isinstance(result, Exception):
                    logger.error(
                        f"Subscriber error for {event.type}: {result}",
                        exc_info=result,
                    )
            return event

        handler: MiddlewareNext = dispatch
        for mw in reversed(self._middleware):

            async def wrapped(
                event: Event,
                *,
                _mw: MiddlewareFunc = mw,
                _next: MiddlewareNext = handler,
            ) -> Event:
                return await _mw(event, _next)

            handler = wrapped

        return handler

    def _find_handlers(self, event_type: str) -> list[EventHandler]:
        handlers: list[EventHandler] = []
        for pattern, subs in self._subscribers.items():
            if pattern == event_type or pattern == "*":
                handlers.extend(subs)
            elif "*" in pattern and fnmatch.fnmatch(event_type, pattern):
                handlers.extend(subs)
        return handlers

    async def _emit_safe(self, event: Event) -> None:
        try:
            await self.emit(event)
        except Exception as e:
            logger.error(f"Error in nowait emit for {event.type}: {e}")

    @property
    def subscriber_count(self) -> int:
        """Total number of subscriptions (for debugging)."""
        return sum(len(subs) for subs in self._subscribers.values())
