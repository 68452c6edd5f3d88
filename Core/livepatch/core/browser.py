from __future__ import annotations

import asyncio
import logging

from selenium import webdriver
from selenium.webdriver import ChromeOptions, FirefoxOptions

from livepatch.config.schema import PipelineSettings
from livepatch.core.page import TabRegistry, WebDriverPage

log = logging.getLogger(__name__)


class BrowserSession:
    """Opens live preview tabs in Selenium-driven browsers and registers them by tab id."""

    def __init__(self, tabs: TabRegistry, settings: PipelineSettings, page_load_timeout: float = 30) -> None:
        self.tabs = tabs
        self.settings = settings
        self.page_load_timeout = page_load_timeout
        self._owned: set[str] = set()

    def launch(self, browser_name: str = "chrome"):
        normalized = browser_name.lower()
        if normalized == "chrome":
            options = ChromeOptions()
            if self.settings.headless:
                options.add_argument("--headless=new")
            options.add_argument("--window-size=1440,1200")
            driver = webdriver.Chrome(options=options)
        elif normalized == "firefox":
            options = FirefoxOptions()
            if self.settings.headless:
                options.add_argument("-headless")
            driver = webdriver.Firefox(options=options)
        else:
            raise ValueError(f"Unsupported browser: {browser_name}")
        driver.set_page_load_timeout(self.page_load_timeout)
        driver.implicitly_wait(0)
        return driver

    async def open_tab(self, tab_id: str, url: str, browser_name: str = "chrome") -> WebDriverPage:
        if tab_id in self.tabs:
            raise ValueError(f"Tab {tab_id} is already open")
        driver = await asyncio.to_thread(self.launch, browser_name)
        try:
            await asyncio.to_thread(driver.get, url)
        except Exception:
            await asyncio.to_thread(driver.quit)
            raise
        page = WebDriverPage(driver)
        self.tabs.register(tab_id, page)
        self._owned.add(tab_id)
        log.info("Opened tab %s in %s", tab_id, browser_name)
        return page

    async def close_tab(self, tab_id: str) -> bool:
        if tab_id not in self._owned:
            return False
        self._owned.discard(tab_id)
        page = self.tabs.unregister(tab_id)
        if isinstance(page, WebDriverPage):
            await asyncio.to_thread(page.driver.quit)
        log.info("Closed tab %s", tab_id)
        return True

    async def close(self) -> None:
        for tab_id in sorted(self._owned):
            await self.close_tab(tab_id)
