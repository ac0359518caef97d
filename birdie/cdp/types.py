"""
CDP data types shared by the client, session and monitor loop.

All are plain dataclasses with to_dict() so they can travel in event
payloads unchanged.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from birdie.cdp.selectors import extract_domain, has_selector_for_domain


@dataclass(frozen=True)
class TabInfo:
    """A browser tab as seen at the last discovery."""

    id: str
    title: str
    url: str
    domain: str
    has_selector: bool

    @classmethod
    def from_target(cls, target: dict[str, Any]) -> TabInfo:
        """Build from one entry of the debugger's /json/list response."""
        url = target.get("url", "")
        domain = extract_domain(url)
        return cls(
            id=target["id"],
            title=target.get("title", ""),
            url=url,
            domain=domain,
            has_selector=has_selector_for_domain(domain),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ConnectionResult:
    success: bool
    message: str
    tabs_count: int = 0
    error_help_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ScriptResult:
    success: bool
    result: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class MonitoringStatus:
    is_monitoring: bool
    tabs_monitored: int
    interval_ms: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DetectedMessage:
    """A new message observed on a monitored tab. Never mutated."""

    tab_id: str
    tab_title: str
    domain: str
    sender: str
    message: str
    source: str
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
