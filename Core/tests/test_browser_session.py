from __future__ import annotations

import pytest

from livepatch.config.schema import PipelineSettings
from livepatch.core import browser
from livepatch.core.browser import BrowserSession
from livepatch.core.page import TabRegistry, WebDriverPage


class RecordingDriver:
    instances: list[RecordingDriver] = []
    fail_get = False

    def __init__(self, options=None) -> None:
        self.options = options
        self.visited: list[str] = []
        self.scripts: list[str] = []
        self.page_load_timeout = None
        self.quit_called = False
        RecordingDriver.instances.append(self)

    def set_page_load_timeout(self, timeout) -> None:
        self.page_load_timeout = timeout

    def implicitly_wait(self, timeout) -> None:
        pass

    def get(self, url: str) -> None:
        if self.fail_get:
            raise RuntimeError("navigation failed")
        self.visited.append(url)

    def execute_script(self, code: str):
        self.scripts.append(code)
        return None

    def quit(self) -> None:
        self.quit_called = True


@pytest.fixture()
def recording_drivers(monkeypatch):
    RecordingDriver.instances = []
    monkeypatch.setattr(browser.webdriver, "Chrome", RecordingDriver)
    monkeypatch.setattr(browser.webdriver, "Firefox", RecordingDriver)
    return RecordingDriver.instances


@pytest.mark.asyncio
async def test_open_tab_registers_webdriver_page(recording_drivers):
    tabs = TabRegistry()
    session = BrowserSession(tabs, PipelineSettings(headless=True), page_load_timeout=12)

    page = await session.open_tab("tab-1", "http://localhost:5173/")

    assert isinstance(page, WebDriverPage)
    assert tabs.get("tab-1") is page
    driver = recording_drivers[0]
    assert driver.visited == ["http://localhost:5173/"]
    assert driver.page_load_timeout == 12
    assert "--headless=new" in driver.options.arguments

    await page.execute_javascript("return 1")
    assert driver.scripts == ["return 1"]


@pytest.mark.asyncio
async def test_close_tab_quits_driver_and_unregisters(recording_drivers):
    tabs = TabRegistry()
    session = BrowserSession(tabs, PipelineSettings())
    await session.open_tab("tab-1", "http://localhost:5173/", browser_name="firefox")
    await session.open_tab("tab-2", "http://localhost:5173/about")

    assert await session.close_tab("tab-1")
    assert "tab-1" not in tabs
    assert recording_drivers[0].quit_called
    assert not await session.close_tab("tab-1")

    await session.close()
    assert len(tabs) == 0
    assert recording_drivers[1].quit_called


@pytest.mark.asyncio
async def test_failed_navigation_quits_driver(recording_drivers, monkeypatch):
    monkeypatch.setattr(RecordingDriver, "fail_get", True)
    tabs = TabRegistry()
    session = BrowserSession(tabs, PipelineSettings())

    with pytest.raises(RuntimeError):
        await session.open_tab("tab-1", "http://localhost:5173/")

    assert "tab-1" not in tabs
    assert recording_drivers[0].quit_called


@pytest.mark.asyncio
async def test_open_tab_rejects_duplicate_and_unknown_browser(recording_drivers):
    tabs = TabRegistry()
    session = BrowserSession(tabs, PipelineSettings())
    await session.open_tab("tab-1", "http://localhost:5173/")

    with pytest.raises(ValueError):
        await session.open_tab("tab-1", "http://localhost:5173/")
    with pytest.raises(ValueError):
        await session.open_tab("tab-2", "http://localhost:5173/", browser_name="safari")
    assert len(recording_drivers) == 1
