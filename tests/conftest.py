"""Shared test fixtures for Birdie."""

import logging

import pytest
from birdie.core.bus import EventBus
from birdie.core.config import BirdieConfig, CDPConfig, MonitorConfig
from birdie.core.events import Event
from birdie.core.kernel import Kernel
from birdie.cdp.mock import MockCDPClient
from birdie.cdp.selectors import extract_domain, has_selector_for_domain
from birdie.cdp.session import CDPSession
from birdie.cdp.types import TabInfo
from birdie.notifications.base import Notification
from birdie.playback.controller import PlaybackController
from birdie.speech.mock import MockSpeechEngine

# Narration hold used by controller fixtures, in seconds
HOLD = 0.05


def make_notification(**kwargs) -> Notification:
    defaults = dict(
        app_name="WhatsApp",
        sender="Ana",
        message="Hola",
        timestamp="2024-05-01T10:00:00Z",
    )
    defaults.update(kwargs)
    return Notification(**defaults)


def make_tab(tab_id: str, url: str, title: str = "") -> TabInfo:
    domain = extract_domain(url)
    return TabInfo(
        id=tab_id,
        title=title or domain,
        url=url,
        domain=domain,
        has_selector=has_selector_for_domain(domain),
    )


class EventRecorder:
    """Subscribes to everything and remembers what it saw."""

    def __init__(self, bus: EventBus) -> None:
        self.events: list[Event] = []
        bus.on("*", self._record)

    async def _record(self, event: Event) -> None:
        self.events.append(event)

    def types(self) -> list[str]:
        return [e.type for e in self.events]

    def of(self, event_type: str) -> list[Event]:
        return [e for e in self.events if e.type == event_type]


@pytest.fixture
def config():
    """Create a default config without loading from disk."""
    return BirdieConfig()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def recorder(bus):
    return EventRecorder(bus)


@pytest.fixture
def kernel(config):
    return Kernel(config=config)


@pytest.fixture
def engine():
    return MockSpeechEngine()


@pytest.fixture
def controller(engine, bus):
    """Controller with a short fixed narration hold."""
    return PlaybackController(engine, bus=bus, estimator=lambda text: HOLD)


@pytest.fixture
def cdp_client():
    return MockCDPClient(
        tabs=[
            make_tab("t1", "https://discord.com/channels/1/2", "Discord | general"),
            make_tab("t2", "https://example.com/", "Example Domain"),
            make_tab("t3", "https://web.whatsapp.com/", "WhatsApp"),
        ]
    )


@pytest.fixture
def session(cdp_client, bus):
    return CDPSession(cdp_client, bus=bus, config=CDPConfig(help_url="https://help.example"))


@pytest.fixture
def fast_monitor_config():
    return MonitorConfig(interval_ms=20, min_interval_ms=10, max_interval_ms=10000)


@pytest.fixture(autouse=True)
def restore_birdie_logger():
    """setup_logging replaces handlers on the "birdie" logger; put them back."""
    birdie_logger = logging.getLogger("birdie")
    handlers, level = list(birdie_logger.handlers), birdie_logger.level
    yield
    for handler in birdie_logger.handlers:
        if handler not in handlers:
            handler.close()
    birdie_logger.handlers = handlers
    birdie_logger.setLevel(level)
