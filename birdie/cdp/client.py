"""
CDP clients: the wire side of the tab subsystem.

CDPClient is the capability CDPSession drives:
    connect(port)              -> ConnectionResult   (raises CDPConnectionError)
    list_tabs()                -> list[TabInfo]      (raises DiscoveryError)
    run_script(tab_id, script) -> ScriptResult       (raises ScriptExecutionError)

ChromeCDPClient talks to a Chromium browser started with
--remote-debugging-port:
- HTTP discovery (/json/version, /json/list) through httpx
- Runtime.evaluate over the tab's webSocketDebuggerUrl through aiohttp

A script that throws inside the page is NOT an exception here: it comes
back as ScriptResult(success=False, error=<the page's message, verbatim>).
Only transport failures raise.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from abc import ABC, abstractmethod
from typing import Any

import aiohttp
import httpx

from birdie.cdp.types import ConnectionResult, ScriptResult, TabInfo
from birdie.core.errors import CDPConnectionError, DiscoveryError, ScriptExecutionError

logger = logging.getLogger(__name__)

DEFAULT_HELP_URL = "https://github.com/SergioPachon/Birdie/wiki/Chrome-DevTools-Setup"


class CDPClient(ABC):
    """Abstract remote-debugging endpoint."""

    @abstractmethod
    async def connect(self, port: int) -> ConnectionResult:
        ...

    @abstractmethod
    async def list_tabs(self) -> list[TabInfo]:
        ...

    @abstractmethod
    async def run_script(self, tab_id: str, script: str) -> ScriptResult:
        ...

    async def close(self) -> None:
        """Release connections. Default: nothing to release."""
        return None


class ChromeCDPClient(CDPClient):
    """
    Usage:
        client = ChromeCDPClient()
        result = await client.connect(9222)
        tabs = await client.list_tabs()
        out = await client.run_script(tabs[0].id, "document.title")
        await client.close()
    """

    def __init__(
        self,
        host: str = "localhost",
        connect_timeout: float = 5.0,
        script_timeout: float = 10.0,
        help_url: str = DEFAULT_HELP_URL,
    ) -> None:
        self._host = host
        self._connect_timeout = connect_timeout
        self._script_timeout = script_timeout
        self._help_url = help_url
        self._port: int | None = None
        self._http: httpx.AsyncClient | None = None
        self._ws_session: aiohttp.ClientSession | None = None
        self._ws_urls: dict[str, str] = {}
        self._message_ids = itertools.count(1)

    # ━━━ Discovery ━━━

    async def connect(self, port: int) -> ConnectionResult:
        await self.close()
        self._port = port
        self._http = httpx.AsyncClient(
            base_url=f"http://{self._host}:{port}",
            timeout=httpx.Timeout(self._connect_timeout),
        )

        try:
            response = await self._http.get("/json/version")
            response.raise_for_status()
            version = response.json()
        except (httpx.HTTPError, ValueError) as e:
            await self.close()
            raise CDPConnectionError(
                f"Cannot connect to Chrome on port {port}. Start Chrome with "
                f"--remote-debugging-port={port}. Error: {e}",
                port=port,
                help_url=self._help_url,
            ) from e

        browser = version.get("Browser", "Chrome")
        try:
            tabs = await self.list_tabs()
        except (DiscoveryError, CDPConnectionError) as e:
            await self.close()
            raise CDPConnectionError(e.message, port=port, help_url=self._help_url) from e

        logger.info(f"Connected to {browser} on port {port} ({len(tabs)} tabs)")
        return ConnectionResult(
            success=True,
            message=f"Connected to {browser}",
            tabs_count=len(tabs),
        )

    async def list_tabs(self) -> list[TabInfo]:
        if self._http is None:
            raise DiscoveryError("Not connected to Chrome. Connect first.")

        try:
            response = await self._http.get("/json/list")
            response.raise_for_status()
            targets = response.json()
        except httpx.TransportError as e:
            # The browser went away; the caller should consider us disconnected
            raise CDPConnectionError(
                f"Lost connection to Chrome: {e}",
                port=self._port or 0,
                help_url=self._help_url,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise DiscoveryError(f"Failed to list tabs: {e}") from e

        tabs: list[TabInfo] = []
        ws_urls: dict[str, str] = {}
        for target in targets:
            if target.get("type") != "page" or "id" not in target:
                continue
            tabs.append(TabInfo.from_target(target))
            if target.get("webSocketDebuggerUrl"):
                ws_urls[target["id"]] = target["webSocketDebuggerUrl"]
        self._ws_urls = ws_urls
        return tabs

    # ━━━ Script execution ━━━

    async def run_script(self, tab_id: str, script: str) -> ScriptResult:
        ws_url = self._ws_urls.get(tab_id)
        if ws_url is None:
            raise ScriptExecutionError(
                f"Unknown tab {tab_id!r} (refresh tabs first)", tab_id=tab_id
            )

        try:
            reply = await asyncio.wait_for(
                self._evaluate(ws_url, script), timeout=self._script_timeout
            )
        except asyncio.TimeoutError as e:
            raise ScriptExecutionError(
                f"Script timed out after {self._script_timeout}s", tab_id=tab_id
            ) from e
        except aiohttp.ClientConnectorError as e:
            # Nothing listening on the debugger socket: the browser is gone
            raise CDPConnectionError(
                f"Lost connection to Chrome: {e}",
                port=self._port or 0,
                help_url=self._help_url,
            ) from e
        except aiohttp.ClientError as e:
            raise ScriptExecutionError(
                f"Debugger socket error: {e}", tab_id=tab_id
            ) from e

        return self._to_script_result(reply)

    async def _evaluate(self, ws_url: str, script: str) -> dict[str, Any]:
        session = await self._get_ws_session()
        message_id = next(self._message_ids)
        async with session.ws_connect(ws_url, max_msg_size=16 * 1024 * 1024) as ws:
            await ws.send_json(
                {
                    "id": message_id,
                    "method": "Runtime.evaluate",
                    "params": {
                        "expression": script,
                        "returnByValue": True,
                        "awaitPromise": True,
                    },
                }
            )
            async for msg in ws:
                if msg.type != aiohttp.WSMsgType.TEXT:
                    if msg.type in (aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.ERROR):
                        break
                    continue
                data = json.loads(msg.data)
                # Skip protocol events; wait for our reply
                if data.get("id") == message_id:
                    return data
        raise aiohttp.ClientError("Socket closed before Runtime.evaluate replied")

    @staticmethod
    def _to_script_result(reply: dict[str, Any]) -> ScriptResult:
        if "error" in reply:
            error = reply["error"]
            return ScriptResult(success=False, error=error.get("message", str(error)))

        payload = reply.get("result", {})
        details = payload.get("exceptionDetails")
        if details:
            exception = details.get("exception") or {}
            error = exception.get("description") or details.get("text") or "Script threw"
            return ScriptResult(success=False, error=error)

        value = payload.get("result", {}).get("value")
        if value is None or isinstance(value, str):
            return ScriptResult(success=True, result=value)
        return ScriptResult(success=True, result=json.dumps(value))

    async def _get_ws_session(self) -> aiohttp.ClientSession:
        if self._ws_session is None or self._ws_session.closed:
            self._ws_session = aiohttp.ClientSession()
        return self._ws_session

    # ━━━ Lifecycle ━━━

    async def close(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None
        if self._ws_session is not None:
            await self._ws_session.close()
            self._ws_session = None
        self._ws_urls = {}
