"""Tests for the JSON lines notification source."""

import io

import pytest

from birdie.core.errors import NotificationError
from birdie.notifications.source import JsonLinesSource


def test_parse_line():
    n = JsonLinesSource.parse_line(
        '{"app_name": "WhatsApp", "sender": "Ana", "message": "Hola", "timestamp": "t"}\n'
    )
    assert n.sender == "Ana"
    assert n.timestamp == "t"


def test_parse_blank_line():
    assert JsonLinesSource.parse_line("   \n") is None


def test_parse_invalid_json():
    with pytest.raises(NotificationError, match="Invalid JSON"):
        JsonLinesSource.parse_line("{nope")


@pytest.mark.asyncio
async def test_run_skips_bad_lines():
    stream = io.StringIO(
        '{"app_name": "A", "sender": "s1", "message": "m1"}\n'
        "garbage\n"
        "\n"
        '{"app_name": "A", "sender": "s2"}\n'
        '{"app_name": "B", "sender": "s3", "message": "m3"}\n'
    )
    source = JsonLinesSource(stream)
    received = []

    async def collect(notification):
        received.append(notification)

    await source.run(collect)

    assert [n.sender for n in received] == ["s1", "s3"]
    assert source.received == 2
    assert source.skipped == 2
