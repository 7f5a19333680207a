import asyncio
import json
import os
from unittest.mock import AsyncMock

import pytest
from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from google_search.errors import InputNotFound, VerificationExhausted, VerificationTimeout
from google_search.models import QueryRequest
from google_search.session import BrowserMode, BrowserSessionController
from google_search.state_store import fingerprint_path_for

RESULTS_URL = "https://www.google.com/search?q=deepseek"
SORRY_URL = "https://www.google.com/sorry/index?continue=https://www.google.com/search"


async def navigate_and_report(attempt):
    await attempt.checkpoint("navigation")
    return attempt.mode


def make_request(state_file, **overrides):
    return QueryRequest(query="deepseek", timeout=1000, state_file=state_file, **overrides)


async def cancel_mid_step(controller):
    """Start ``controller.run`` with a step that hangs, then cancel it once the step is running."""
    started = asyncio.Event()

    async def hanging_step(attempt):
        started.set()
        await asyncio.sleep(3600)

    task = asyncio.create_task(controller.run(hanging_step))
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


class TestBrowserSessionController:
    """Tests for the headless-to-headed escalation policy."""

    @pytest.mark.asyncio
    async def test_headless_success(self, state_file, make_page, make_browser, make_playwright):
        browser = make_browser(make_page(RESULTS_URL))
        playwright = make_playwright(browser)
        controller = BrowserSessionController(playwright, make_request(state_file), domains=["https://www.google.com"])

        assert await controller.run(navigate_and_report) is BrowserMode.HEADLESS

        assert playwright.chromium.launch.await_args.kwargs["headless"] is True
        assert "--enable-automation" in playwright.chromium.launch.await_args.kwargs["ignore_default_args"]
        browser.close.assert_awaited_once()
        assert controller.transitions == []
        saved = json.loads(fingerprint_path_for(state_file).read_text(encoding="utf-8"))
        assert saved["engineDomain"] == "https://www.google.com"
        assert "deviceName" in saved["fingerprint"]

    @pytest.mark.asyncio
    async def test_context_built_from_fingerprint(self, state_file, make_page, make_browser, make_playwright):
        browser = make_browser(make_page(RESULTS_URL))
        controller = BrowserSessionController(make_playwright(browser), make_request(state_file, locale="de-DE"))

        await controller.run(navigate_and_report)

        options = browser.new_context.await_args.kwargs
        assert options["locale"] == "de-DE"
        assert "default_browser_type" not in options
        assert options["permissions"] == ["geolocation", "notifications"]
        assert options["java_script_enabled"] is True
        assert "storage_state" not in options
        browser.context.add_init_script.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_owned_headless_block_escalates_to_headed(self, state_file, make_page, make_browser, make_playwright):
        blocked = make_browser(make_page(SORRY_URL))
        headed = make_browser(make_page(RESULTS_URL))
        playwright = make_playwright(blocked, headed)
        controller = BrowserSessionController(playwright, make_request(state_file))

        assert await controller.run(navigate_and_report) is BrowserMode.HEADED_OWNED

        launches = [call.kwargs["headless"] for call in playwright.chromium.launch.await_args_list]
        assert launches == [True, False]
        blocked.close.assert_awaited_once()
        headed.close.assert_awaited_once()
        assert controller.transitions == [(BrowserMode.HEADLESS, BrowserMode.HEADED_OWNED, "navigation")]

    @pytest.mark.asyncio
    async def test_shared_browser_block_never_closes_shared(self, state_file, make_page, make_browser, make_playwright):
        shared = make_browser(make_page(SORRY_URL))
        throwaway_page = make_page("about:blank")
        throwaway = make_browser(throwaway_page)
        retry = make_browser(make_page(RESULTS_URL))
        playwright = make_playwright(throwaway, retry)
        hook = AsyncMock()
        controller = BrowserSessionController(
            playwright, make_request(state_file), shared_browser=shared, on_verification=hook,
        )

        assert await controller.run(navigate_and_report) is BrowserMode.HEADED_FROM_SHARED_SOURCE

        shared.close.assert_not_awaited()
        shared.context.close.assert_awaited_once()
        hook.assert_awaited_once_with(throwaway_page)
        throwaway.close.assert_awaited_once()
        retry.close.assert_awaited_once()
        launches = [call.kwargs["headless"] for call in playwright.chromium.launch.await_args_list]
        assert launches == [False, False]

    @pytest.mark.asyncio
    async def test_headed_challenge_waits_for_user(self, state_file, make_page, make_browser, make_playwright):
        blocked = make_browser(make_page(SORRY_URL))
        headed_page = make_page(SORRY_URL)
        controller = BrowserSessionController(make_playwright(blocked, make_browser(headed_page)), make_request(state_file))

        assert await controller.run(navigate_and_report) is BrowserMode.HEADED_OWNED

        assert headed_page.wait_for_url.await_args.kwargs["timeout"] == 2000
        predicate = headed_page.wait_for_url.await_args.args[0]
        assert predicate(RESULTS_URL) and not predicate(SORRY_URL)

    @pytest.mark.asyncio
    async def test_headed_challenge_times_out(self, state_file, make_page, make_browser, make_playwright):
        blocked = make_browser(make_page(SORRY_URL))
        headed_page = make_page(SORRY_URL)
        headed_page.wait_for_url = AsyncMock(side_effect=PlaywrightTimeoutError("timed out"))
        headed = make_browser(headed_page)
        controller = BrowserSessionController(make_playwright(blocked, headed), make_request(state_file))

        with pytest.raises(VerificationTimeout):
            await controller.run(navigate_and_report)

        headed.close.assert_awaited_once()
        headed.context.storage_state.assert_awaited_once()
        assert len(controller.transitions) == 1

    @pytest.mark.asyncio
    async def test_no_attempts_left(self, state_file, make_page, make_browser, make_playwright):
        blocked = make_browser(make_page(SORRY_URL))
        playwright = make_playwright(blocked)
        controller = BrowserSessionController(playwright, make_request(state_file), max_attempts=1)

        with pytest.raises(VerificationExhausted):
            await controller.run(navigate_and_report)

        assert playwright.chromium.launch.await_count == 1
        blocked.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_step_failure_is_fatal_and_persists(self, state_file, make_page, make_browser, make_playwright):
        browser = make_browser(make_page(RESULTS_URL))
        playwright = make_playwright(browser)
        controller = BrowserSessionController(playwright, make_request(state_file))

        async def failing_step(attempt):
            raise InputNotFound("Could not find the search box")

        with pytest.raises(InputNotFound):
            await controller.run(failing_step)

        assert playwright.chromium.launch.await_count == 1
        browser.close.assert_awaited_once()
        assert fingerprint_path_for(state_file).exists()

    @pytest.mark.asyncio
    async def test_cancelled_run_closes_owned_browser(self, state_file, make_page, make_browser, make_playwright):
        page = make_page(RESULTS_URL)
        browser = make_browser(page)
        controller = BrowserSessionController(make_playwright(browser), make_request(state_file))

        await cancel_mid_step(controller)

        page.close.assert_awaited_once()
        browser.context.close.assert_awaited_once()
        browser.close.assert_awaited_once()
        browser.context.storage_state.assert_awaited_once()
        assert fingerprint_path_for(state_file).exists()

    @pytest.mark.asyncio
    async def test_cancelled_run_keeps_shared_browser_open(self, state_file, make_page, make_browser, make_playwright):
        shared = make_browser(make_page(RESULTS_URL))
        playwright = make_playwright()
        controller = BrowserSessionController(playwright, make_request(state_file), shared_browser=shared)

        await cancel_mid_step(controller)

        shared.context.close.assert_awaited_once()
        shared.close.assert_not_awaited()
        playwright.chromium.launch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_partial_setup_on_shared_browser_closes_context(self, state_file, make_page, make_browser, make_playwright):
        shared = make_browser(make_page(RESULTS_URL))
        shared.context.new_page = AsyncMock(side_effect=PlaywrightError("Target closed"))
        controller = BrowserSessionController(make_playwright(), make_request(state_file), shared_browser=shared)

        with pytest.raises(PlaywrightError):
            await controller.run(navigate_and_report)

        shared.context.close.assert_awaited_once()
        shared.close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_save_state_disabled(self, state_file, make_page, make_browser, make_playwright):
        browser = make_browser(make_page(RESULTS_URL))
        controller = BrowserSessionController(make_playwright(browser), make_request(state_file, save_state=False))

        await controller.run(navigate_and_report)

        browser.context.storage_state.assert_not_awaited()
        assert not os.path.exists(fingerprint_path_for(state_file))

    def test_max_attempts_validated(self, state_file, make_playwright):
        with pytest.raises(ValueError):
            BrowserSessionController(make_playwright(), make_request(state_file), max_attempts=0)
