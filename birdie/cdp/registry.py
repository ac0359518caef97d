"""
TabRegistry: the set of tabs from the latest discovery.

Each refresh replaces the whole set. Tab lists are small, so there is no
diffing and no index beyond the id dict.
"""

from __future__ import annotations

import logging
from typing import Iterable

from birdie.cdp.types import TabInfo

logger = logging.getLogger(__name__)


class TabRegistry:
    def __init__(self) -> None:
        self._tabs: dict[str, TabInfo] = {}

    def replace_all(self, tabs: Iterable[TabInfo]) -> None:
        """Discard what we knew and take the fresh discovery result."""
        self._tabs = {tab.id: tab for tab in tabs}
        logger.debug(
            f"Tab registry refreshed: {len(self._tabs)} tabs, "
            f"{len(self.monitored_subset())} monitorable"
        )

    def monitored_subset(self) -> list[TabInfo]:
        """Tabs with a configured selector, in discovery order."""
        return [tab for tab in self._tabs.values() if tab.has_selector]

    def all(self) -> list[TabInfo]:
        return list(self._tabs.values())

    def get(self, tab_id: str) -> TabInfo | None:
        return self._tabs.get(tab_id)

    def find_by_title(self, substring: str, case_sensitive: bool = True) -> TabInfo | None:
        """First tab whose title contains substring."""
        needle = substring if case_sensitive else substring.lower()
        for tab in self._tabs.values():
            title = tab.title if case_sensitive else tab.title.lower()
            if needle in title:
                return tab
        return None

    def find_by_domain(self, domain: str) -> TabInfo | None:
        for tab in self._tabs.values():
            if tab.domain == domain:
                return tab
        return None

    def clear(self) -> None:
        self._tabs = {}

    def __len__(self) -> int:
        return len(self._tabs)
