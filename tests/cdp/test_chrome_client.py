"""Tests for ChromeCDPClient that need no browser."""

import socket

import pytest

from birdie.cdp.client import ChromeCDPClient
from birdie.cdp.session import CDPSession, ConnectionState
from birdie.cdp.types import ScriptResult, TabInfo
from birdie.core.errors import CDPConnectionError, DiscoveryError, ScriptExecutionError


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def test_tab_from_target():
    tab = TabInfo.from_target(
        {
            "id": "ABC",
            "type": "page",
            "title": "Meet - abc",
            "url": "https://meet.google.com/abc-def-ghi",
            "webSocketDebuggerUrl": "ws://localhost:9222/devtools/page/ABC",
        }
    )
    assert tab == TabInfo(
        id="ABC",
        title="Meet - abc",
        url="https://meet.google.com/abc-def-ghi",
        domain="meet.google.com",
        has_selector=True,
    )


def test_script_value_string():
    reply = {"id": 1, "result": {"result": {"type": "string", "value": "hello"}}}
    assert ChromeCDPClient._to_script_result(reply) == ScriptResult(success=True, result="hello")


def test_script_value_non_string_is_json():
    reply = {"id": 1, "result": {"result": {"type": "object", "value": {"a": 1}}}}
    assert ChromeCDPClient._to_script_result(reply).result == '{"a": 1}'


def test_script_undefined_is_none():
    reply = {"id": 1, "result": {"result": {"type": "undefined"}}}
    assert ChromeCDPClient._to_script_result(reply) == ScriptResult(success=True, result=None)


def test_script_exception_message_is_verbatim():
    reply = {
        "id": 1,
        "result": {
            "result": {"type": "object", "subtype": "error"},
            "exceptionDetails": {
                "text": "Uncaught",
                "exception": {"description": "ReferenceError: foo is not defined\n    at <anonymous>:1:1"},
            },
        },
    }
    result = ChromeCDPClient._to_script_result(reply)
    assert result.success is False
    assert result.error == "ReferenceError: foo is not defined\n    at <anonymous>:1:1"


def test_protocol_error():
    reply = {"id": 1, "error": {"code": -32000, "message": "Cannot find context with specified id"}}
    result = ChromeCDPClient._to_script_result(reply)
    assert result == ScriptResult(success=False, error="Cannot find context with specified id")


@pytest.mark.asyncio
async def test_connect_refused_raises_with_help_url():
    client = ChromeCDPClient(host="127.0.0.1", connect_timeout=2.0, help_url="https://help")
    port = _free_port()

    with pytest.raises(CDPConnectionError) as exc_info:
        await client.connect(port)

    assert exc_info.value.help_url == "https://help"
    assert exc_info.value.port == port
    assert f"--remote-debugging-port={port}" in exc_info.value.message
    await client.close()


@pytest.mark.asyncio
async def test_list_tabs_before_connect():
    with pytest.raises(DiscoveryError):
        await ChromeCDPClient().list_tabs()


@pytest.mark.asyncio
async def test_run_script_on_unknown_tab():
    with pytest.raises(ScriptExecutionError, match="Unknown tab"):
        await ChromeCDPClient().run_script("nope", "1")


@pytest.mark.asyncio
async def test_run_script_with_browser_gone_is_connection_error():
    client = ChromeCDPClient(host="127.0.0.1", help_url="https://help")
    port = _free_port()
    client._ws_urls = {"t1": f"ws://127.0.0.1:{port}/devtools/page/t1"}

    with pytest.raises(CDPConnectionError) as exc_info:
        await client.run_script("t1", "1+1")

    assert exc_info.value.help_url == "https://help"
    await client.close()


@pytest.mark.asyncio
async def test_session_disconnects_when_browser_gone_mid_script():
    client = ChromeCDPClient(host="127.0.0.1")
    port = _free_port()
    client._ws_urls = {"t1": f"ws://127.0.0.1:{port}/devtools/page/t1"}
    session = CDPSession(client)
    session._state = ConnectionState.CONNECTED

    result = await session.execute_script("t1", "1+1")

    assert result.success is False
    assert "Lost connection" in result.error
    assert session.state is ConnectionState.DISCONNECTED
    await client.close()
