"""
MonitorLoop: polls monitored tabs and publishes new messages.

Design:
- Exactly one polling task. start() while running cancels the old task
  and starts over with the new interval.
- The set of tabs is snapshotted at start(). Tabs that become monitorable
  later are only picked up by the next start().
- Each tick reads the newest message from every tab with the tab's
  selector script and compares its fingerprint with the last one seen.
  The first successful read of a tab is the baseline and is not
  published, so starting a monitor does not replay old chat history.
- One tab failing is logged and emitted as monitor:error; the other tabs
  and the loop carry on.
- The last HISTORY_SIZE detected messages are kept newest-first for
  display. It is a cache, not a log.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque

from birdie.cdp.selectors import (
    build_read_script,
    get_selector_for_domain,
    message_identity,
    parse_read_result,
)
from birdie.cdp.session import CDPSession
from birdie.cdp.types import DetectedMessage, MonitoringStatus, TabInfo
from birdie.core.bus import EventBus
from birdie.core.config import MonitorConfig
from birdie.core.errors import CDPConnectionError, ScriptExecutionError
from birdie.core.events import Event, EventType

logger = logging.getLogger(__name__)

HISTORY_SIZE = 10


def clamp_interval(interval_ms: int, low: int = 500, high: int = 10000) -> int:
    return max(low, min(high, int(interval_ms)))


class MessageHistory:
    """Bounded newest-first buffer of detected messages."""

    def __init__(self, size: int = HISTORY_SIZE) -> None:
        self._items: deque[DetectedMessage] = deque(maxlen=size)

    def add(self, message: DetectedMessage) -> None:
        self._items.appendleft(message)

    def items(self) -> list[DetectedMessage]:
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)


class MonitorLoop:
    """
    Usage:
        monitor = MonitorLoop(session, bus=kernel.bus)
        await monitor.start(2000)
        ...
        await monitor.stop()
    """

    def __init__(
        self,
        session: CDPSession,
        bus: EventBus | None = None,
        config: MonitorConfig | None = None,
    ) -> None:
        self._session = session
        self._bus = bus
        self._config = config or MonitorConfig()

        self._task: asyncio.Task | None = None
        self._loop_id = 0
        self._interval_ms = 0
        self._tabs: list[TabInfo] = []
        self._last_seen: dict[str, str] = {}
        self._history = MessageHistory(self._config.history_size)

    # ━━━ Read-only views ━━━

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    @property
    def monitored_tabs(self) -> list[TabInfo]:
        return list(self._tabs)

    @property
    def messages(self) -> list[DetectedMessage]:
        return self._history.items()

    @property
    def status(self) -> MonitoringStatus:
        if not self.active:
            return MonitoringStatus(is_monitoring=False, tabs_monitored=0, interval_ms=0)
        return MonitoringStatus(
            is_monitoring=True,
            tabs_monitored=len(self._tabs),
            interval_ms=self._interval_ms,
        )

    # ━━━ Lifecycle ━━━

    async def start(self, interval_ms: int | None = None) -> MonitoringStatus:
        """
        Start (or restart) polling.

        Raises:
            CDPConnectionError: when the session is not connected
        """
        if not self._session.connected:
            raise CDPConnectionError(
                "Not connected to Chrome. Connect first.",
                port=self._session.port or 0,
            )

        await self._cancel()

        requested = interval_ms if interval_ms is not None else self._config.interval_ms
        self._interval_ms = clamp_interval(
            requested, self._config.min_interval_ms, self._config.max_interval_ms
        )
        self._tabs = self._session.registry.monitored_subset()
        self._last_seen = {}
        self._loop_id += 1
        self._task = asyncio.create_task(self._run(self._loop_id), name="cdp-monitor")

        logger.info(
            f"Monitoring {len(self._tabs)} tabs every {self._interval_ms}ms"
        )
        status = self.status
        await self._emit(EventType.MONITOR_STARTED, status.to_dict())
        return status

    async def stop(self) -> MonitoringStatus:
        """Cancel the loop. Once this returns no more messages are published."""
        was_active = self.active
        self._loop_id += 1
        await self._cancel()
        self._tabs = []
        self._last_seen = {}
        self._interval_ms = 0
        self._history.clear()

        status = self.status
        if was_active:
            logger.info("Monitoring stopped")
            await self._emit(EventType.MONITOR_STOPPED, status.to_dict())
        return status

    # ━━━ Loop ━━━

    async def _run(self, loop_id: int) -> None:
        while loop_id == self._loop_id:
            await self.tick(loop_id)
            await asyncio.sleep(self._interval_ms / 1000.0)

    async def tick(self, loop_id: int | None = None) -> list[DetectedMessage]:
        """Sample every monitored tab once. Returns the messages published."""
        loop_id = self._loop_id if loop_id is None else loop_id
        published: list[DetectedMessage] = []

        for tab in list(self._tabs):
            try:
                detected = await self._sample(tab)
            except Exception as e:
                logger.warning(f"Monitor read failed for tab {tab.id} ({tab.domain}): {e}")
                await self._emit(
                    EventType.MONITOR_ERROR, {"tab_id": tab.id, "error": str(e)}
                )
                continue

            if detected is None or loop_id != self._loop_id:
                continue
            self._history.add(detected)
            published.append(detected)
            await self._emit(EventType.MONITOR_MESSAGE, detected.to_dict())

        return published

    async def _sample(self, tab: TabInfo) -> DetectedMessage | None:
        config = get_selector_for_domain(tab.domain)
        if config is None:
            return None

        result = await self._session.execute_script(tab.id, build_read_script(config))
        if not result.success:
            raise ScriptExecutionError(result.error or "Script failed", tab_id=tab.id)

        content = parse_read_result(result.result)
        identity = message_identity(content[1]) if content else ""
        baseline = tab.id not in self._last_seen
        previous = self._last_seen.get(tab.id)
        self._last_seen[tab.id] = identity

        if baseline or content is None or identity == previous:
            return None

        sender, message = content
        logger.debug(f"New message on {tab.domain} from {sender or 'unknown'}")
        return DetectedMessage(
            tab_id=tab.id,
            tab_title=tab.title,
            domain=tab.domain,
            sender=sender,
            message=message,
            source=config.source_name,
        )

    async def _cancel(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _emit(self, event_type: str, data: dict) -> None:
        if self._bus is None:
            return
        await self._bus.emit(Event(type=event_type, data=data, source="monitor"))
