"""
Mock CDP client: for testing.

No browser required. Tabs, connection failures and per-tab script output
are all scripted by the test. Tracks calls for assertions.
"""

from __future__ import annotations

import asyncio
from typing import Callable

from birdie.cdp.client import CDPClient
from birdie.cdp.types import ConnectionResult, ScriptResult, TabInfo
from birdie.core.errors import CDPConnectionError, DiscoveryError, ScriptExecutionError

ScriptHandler = Callable[[str, str], ScriptResult]


class MockCDPClient(CDPClient):
    """
    Usage in tests:
        client = MockCDPClient(tabs=[make_tab("1", "https://discord.com/x")])
        client.fail_connect("connection refused", help_url="https://help")
        client.set_script_results("1", ['{"sender": "a", "message": "hi"}'])
    """

    def __init__(self, tabs: list[TabInfo] | None = None) -> None:
        self.tabs: list[TabInfo] = list(tabs or [])
        self.connect_calls: list[int] = []
        self.list_calls: int = 0
        self.script_calls: list[tuple[str, str]] = []
        self.closed = False
        self.connect_delay: float = 0.0

        self._connect_error: CDPConnectionError | None = None
        self._list_error: Exception | None = None
        self._script_results: dict[str, list[ScriptResult | Exception]] = {}
        self._last_script_result: dict[str, ScriptResult | Exception] = {}
        self._connected = False

    # ━━━ Scripting ━━━

    def fail_connect(self, message: str, help_url: str | None = None) -> None:
        self._connect_error = CDPConnectionError(message, help_url=help_url)

    def fail_list(self, error: Exception | None = None) -> None:
        self._list_error = error or DiscoveryError("mock discovery failure")

    def set_script_results(
        self, tab_id: str, results: list[str | None | ScriptResult | Exception]
    ) -> None:
        """
        Queue results for successive run_script calls on a tab.

        Strings and None become successful results. Once the queue runs
        dry the last result keeps being returned.
        """
        queued: list[ScriptResult | Exception] = []
        for item in results:
            if isinstance(item, (ScriptResult, Exception)):
                queued.append(item)
            else:
                queued.append(ScriptResult(success=True, result=item))
        self._script_results[tab_id] = queued

    # ━━━ CDPClient ━━━

    async def connect(self, port: int) -> ConnectionResult:
        self.connect_calls.append(port)
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if self._connect_error is not None:
            error = self._connect_error
            raise CDPConnectionError(error.message, port=port, help_url=error.help_url)
        self._connected = True
        return ConnectionResult(
            success=True,
            message="Connected to MockChrome",
            tabs_count=len(self.tabs),
        )

    async def list_tabs(self) -> list[TabInfo]:
        self.list_calls += 1
        if self._list_error is not None:
            raise self._list_error
        if not self._connected:
            raise DiscoveryError("Not connected to Chrome. Connect first.")
        return list(self.tabs)

    async def run_script(self, tab_id: str, script: str) -> ScriptResult:
        self.script_calls.append((tab_id, script))
        queued = self._script_results.get(tab_id)
        if queued:
            result = queued.pop(0)
            self._last_script_result[tab_id] = result
        elif tab_id in self._last_script_result:
            result = self._last_script_result[tab_id]
        else:
            raise ScriptExecutionError(f"Unknown tab {tab_id!r}", tab_id=tab_id)
        if isinstance(result, Exception):
            raise result
        return result

    async def close(self) -> None:
        self.closed = True
        self._connected = False
