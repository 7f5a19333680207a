from unittest.mock import AsyncMock, MagicMock

import pytest

from google_search.fingerprint import DESKTOP_DEVICES

DEFAULT_PAGE_URL = "https://www.google.com/search?q=deepseek"


@pytest.fixture
def make_page():
    """Factory for mock Playwright pages with every awaited method stubbed."""

    def _page(url: str = DEFAULT_PAGE_URL, html: str = "<html></html>") -> MagicMock:
        page = MagicMock()
        page.url = url
        search_box = MagicMock()
        search_box.click = AsyncMock()
        page.query_selector = AsyncMock(return_value=search_box)
        page.keyboard.type = AsyncMock()
        page.keyboard.press = AsyncMock()
        page.goto = AsyncMock(return_value=None)
        page.wait_for_load_state = AsyncMock()
        page.wait_for_timeout = AsyncMock()
        page.wait_for_selector = AsyncMock()
        page.wait_for_url = AsyncMock()
        page.add_init_script = AsyncMock()
        page.content = AsyncMock(return_value=html)
        page.screenshot = AsyncMock()
        page.close = AsyncMock()
        return page

    return _page


@pytest.fixture
def make_browser():
    """Factory for mock browsers serving one context that serves the given page."""

    def _browser(page: MagicMock) -> MagicMock:
        context = MagicMock()
        context.new_page = AsyncMock(return_value=page)
        context.add_init_script = AsyncMock()
        context.close = AsyncMock()
        context.storage_state = AsyncMock()
        browser = MagicMock()
        browser.new_context = AsyncMock(return_value=context)
        browser.close = AsyncMock()
        browser.context = context
        return browser

    return _browser


@pytest.fixture
def make_playwright():
    """Factory for a mock Playwright whose chromium.launch hands out the browsers in order."""

    def _playwright(*browsers: MagicMock) -> MagicMock:
        playwright = MagicMock()
        playwright.devices = {
            name: {
                "user_agent": f"Mozilla/5.0 ({name})",
                "viewport": {"width": 1280, "height": 720},
                "device_scale_factor": 1,
                "is_mobile": False,
                "has_touch": False,
                "default_browser_type": "chromium",
            }
            for name in DESKTOP_DEVICES
        }
        playwright.chromium.launch = AsyncMock(side_effect=list(browsers))
        return playwright

    return _playwright


@pytest.fixture
def state_file(tmp_path):
    return str(tmp_path / "browser-state.json")
