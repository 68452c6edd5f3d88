from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any

log = logging.getLogger(__name__)


class LivePage(ABC):
    """A rendered page that can run JavaScript for live previews."""

    @abstractmethod
    async def execute_javascript(self, code: str) -> Any:
        raise NotImplementedError


class WebDriverPage(LivePage):
    def __init__(self, driver) -> None:
        self.driver = driver

    async def execute_javascript(self, code: str) -> Any:
        return await asyncio.to_thread(self.driver.execute_script, code)


class TabRegistry:
    """Live pages keyed by tab id, registered and removed with the tab itself."""

    def __init__(self) -> None:
        self._pages: dict[str, LivePage] = {}

    def register(self, tab_id: str, page: LivePage) -> None:
        self._pages[tab_id] = page
        log.debug("Registered live page for tab %s", tab_id)

    def unregister(self, tab_id: str) -> LivePage | None:
        return self._pages.pop(tab_id, None)

    def get(self, tab_id: str | None) -> LivePage | None:
        if tab_id is None:
            return None
        return self._pages.get(tab_id)

    def __contains__(self, tab_id: object) -> bool:
        return tab_id in self._pages

    def __len__(self) -> int:
        return len(self._pages)
