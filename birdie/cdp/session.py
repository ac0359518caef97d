"""
CDPSession: connection lifecycle to a browser's remote debugging port.

State machine:

    DISCONNECTED ──connect──▶ CONNECTING ──ok──▶ CONNECTED
                                  │                  │
                                  └──error──▶ DISCONNECTED ◀── disconnect / lost I/O

Only one connection is tracked. A new connect() supersedes a pending one
(the old attempt is cancelled, not queued). Failures are recorded on
last_error / error_help_url and emitted as cdp:error; the session is
never left in CONNECTING.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

from birdie.cdp.client import CDPClient
from birdie.cdp.registry import TabRegistry
from birdie.cdp.types import ConnectionResult, ScriptResult, TabInfo
from birdie.core.bus import EventBus
from birdie.core.config import CDPConfig
from birdie.core.errors import CDPConnectionError, DiscoveryError, ScriptExecutionError
from birdie.core.events import Event, EventType

logger = logging.getLogger(__name__)

MIN_PORT = 1024
MAX_PORT = 65535


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def validate_port(port: int) -> bool:
    """Whether port is in the documented range. Out-of-range ports are still tried."""
    if MIN_PORT <= port <= MAX_PORT:
        return True
    logger.warning(f"Port {port} is outside the usual range {MIN_PORT}-{MAX_PORT}")
    return False


class CDPSession:
    """
    Usage:
        session = CDPSession(ChromeCDPClient(), bus=kernel.bus)
        result = await session.connect(9222)
        if result.success:
            tab = session.find_tab("Discord")
            out = await session.execute_script(tab.id, "document.title")
    """

    def __init__(
        self,
        client: CDPClient,
        registry: TabRegistry | None = None,
        bus: EventBus | None = None,
        config: CDPConfig | None = None,
    ) -> None:
        self._client = client
        self._registry = registry or TabRegistry()
        self._bus = bus
        self._config = config or CDPConfig()

        self._state = ConnectionState.DISCONNECTED
        self._port: int | None = None
        self._attempt = 0
        self._connect_task: asyncio.Task | None = None
        self.last_error: str | None = None
        self.error_help_url: str | None = None

    # ━━━ Read-only views ━━━

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def port(self) -> int | None:
        return self._port

    @property
    def registry(self) -> TabRegistry:
        return self._registry

    @property
    def tabs(self) -> list[TabInfo]:
        return self._registry.all()

    # ━━━ Connection ━━━

    async def connect(self, port: int | None = None) -> ConnectionResult:
        """
        Connect to the debugging endpoint and discover tabs.

        Never raises for connection problems; inspect the returned result
        (or last_error / error_help_url).
        """
        port = port if port is not None else self._config.port
        validate_port(port)

        previous = self._connect_task
        if previous is not None and not previous.done():
            logger.info("New connect request supersedes the pending attempt")
            previous.cancel()

        self._attempt += 1
        task = asyncio.create_task(self._attempt_connect(port, self._attempt), name="cdp-connect")
        self._connect_task = task
        try:
            return await task
        except asyncio.CancelledError:
            if task.cancelled() and self._connect_task is not task:
                return ConnectionResult(
                    success=False,
                    message="Superseded by a newer connection attempt",
                )
            raise
        finally:
            if self._connect_task is task:
                self._connect_task = None

    async def disconnect(self) -> None:
        """Drop the connection and forget discovered tabs."""
        self._attempt += 1
        task, self._connect_task = self._connect_task, None
        if task is not None and not task.done():
            task.cancel()
        await self._client.close()
        self._registry.clear()
        if self._state is not ConnectionState.DISCONNECTED:
            self._state = ConnectionState.DISCONNECTED
            await self._emit(EventType.CDP_DISCONNECTED, {"port": self._port})

    async def _attempt_connect(self, port: int, attempt: int) -> ConnectionResult:
        self._state = ConnectionState.CONNECTING
        self._port = port
        self.last_error = None
        self.error_help_url = None
        await self._emit(EventType.CDP_CONNECTING, {"port": port})

        try:
            result = await self._client.connect(port)
        except asyncio.CancelledError:
            if attempt == self._attempt:
                self._state = ConnectionState.DISCONNECTED
            raise
        except CDPConnectionError as e:
            return await self._connect_failed(e.message, e.help_url or self._config.help_url)
        except Exception as e:
            return await self._connect_failed(f"Unexpected error connecting to Chrome: {e}", None)

        if not result.success:
            return await self._connect_failed(
                result.message, result.error_help_url or self._config.help_url
            )

        self._state = ConnectionState.CONNECTED
        logger.info(f"CDP session connected on port {port}")
        await self._emit(EventType.CDP_CONNECTED, {"port": port, "message": result.message})

        try:
            await self.refresh_tabs()
        except DiscoveryError:
            pass  # recorded by refresh_tabs

        return ConnectionResult(
            success=self.connected,
            message=result.message if self.connected else (self.last_error or result.message),
            tabs_count=len(self._registry),
            error_help_url=self.error_help_url,
        )

    async def _connect_failed(self, message: str, help_url: str | None) -> ConnectionResult:
        self._state = ConnectionState.DISCONNECTED
        self.last_error = message
        self.error_help_url = help_url
        logger.warning(f"CDP connection failed: {message}")
        await self._emit(EventType.CDP_ERROR, {"error": message, "help_url": help_url})
        return ConnectionResult(
            success=False, message=message, tabs_count=0, error_help_url=help_url
        )

    # ━━━ Tabs ━━━

    async def refresh_tabs(self) -> list[TabInfo]:
        """
        Re-discover tabs and replace the registry wholesale.

        Raises:
            DiscoveryError: when not connected or the listing fails
        """
        if not self.connected:
            self.last_error = "Not connected to Chrome. Connect first."
            raise DiscoveryError(self.last_error)

        try:
            tabs = await self._client.list_tabs()
        except CDPConnectionError as e:
            await self._lost(e.message)
            raise DiscoveryError(e.message) from e
        except DiscoveryError as e:
            self.last_error = e.message
            await self._emit(EventType.CDP_ERROR, {"error": e.message})
            raise

        self._registry.replace_all(tabs)
        await self._emit(
            EventType.CDP_TABS,
            {
                "tabs": [tab.to_dict() for tab in tabs],
                "monitorable": len(self._registry.monitored_subset()),
            },
        )
        return tabs

    def find_tab(self, title_substring: str, case_sensitive: bool | None = None) -> TabInfo | None:
        """First known tab whose title contains the substring."""
        if case_sensitive is None:
            case_sensitive = self._config.case_sensitive_find
        return self._registry.find_by_title(title_substring, case_sensitive=case_sensitive)

    def find_tab_for_domain(self, domain: str) -> TabInfo | None:
        return self._registry.find_by_domain(domain)

    # ━━━ Scripts ━━━

    async def execute_script(self, tab_id: str, script: str) -> ScriptResult:
        """
        Evaluate script in a tab.

        Failures come back as ScriptResult(success=False) carrying the
        remote error message unchanged.
        """
        if not self.connected:
            return ScriptResult(success=False, error="Not connected to Chrome. Connect first.")

        try:
            return await self._client.run_script(tab_id, script)
        except ScriptExecutionError as e:
            return ScriptResult(success=False, error=e.message)
        except CDPConnectionError as e:
            await self._lost(e.message)
            return ScriptResult(success=False, error=e.message)

    # ━━━ Internals ━━━

    async def _lost(self, message: str) -> None:
        self.last_error = message
        self._state = ConnectionState.DISCONNECTED
        logger.warning(f"CDP connection lost: {message}")
        await self._emit(EventType.CDP_DISCONNECTED, {"port": self._port, "error": message})

    async def _emit(self, event_type: str, data: dict) -> None:
        if self._bus is None:
            return
        await self._bus.emit(Event(type=event_type, data=data, source="cdp"))
