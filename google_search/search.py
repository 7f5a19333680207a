import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from playwright.async_api import Browser, Playwright, async_playwright

from google_search.config.settings import HTML_OUTPUT_DIR, HTML_STABILIZE_DELAY_MS, RESULTS_SETTLE_DELAY_MS
from google_search.errors import NoResultsFound
from google_search.extractor import ResultExtractor
from google_search.html_capture import clean_html, default_output_path, save_html, screenshot_path_for
from google_search.models import HtmlCaptureResult, QueryRequest, SearchResponse
from google_search.query_input import QueryInputController
from google_search.session import Attempt, BrowserSessionController, VerificationHook, log_verification_hook
from google_search.utils import random_delay

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _playwright_driver(playwright: Optional[Playwright]) -> AsyncIterator[Playwright]:
    if playwright is not None:
        yield playwright
        return
    async with async_playwright() as driver:
        yield driver


async def _submit_query(attempt: Attempt, query: str, query_input: QueryInputController) -> None:
    await attempt.navigate()
    logger.info(f"Entering search keyword: {query}")
    await query_input.submit(attempt.page, query)
    await attempt.settle()
    await attempt.checkpoint("submission")


async def google_search(
    request: QueryRequest,
    browser: Optional[Browser] = None,
    playwright: Optional[Playwright] = None,
    on_verification: VerificationHook = log_verification_hook,
    query_input: Optional[QueryInputController] = None,
    extractor: Optional[ResultExtractor] = None,
) -> SearchResponse:
    """Search Google in a real browser and return structured results.

    Args:
        request: Query and run options.
        browser: Optional shared browser; used for the first attempt and never closed.
        playwright: Optional running Playwright driver; one is started when omitted.
        on_verification: Hook given the throwaway headed page when a shared browser is challenged.
        query_input: Search-box controller override.
        extractor: Result extractor override.

    Returns:
        SearchResponse with at most ``request.limit`` results.

    Raises:
        GoogleSearchError subclasses and Playwright errors; nothing is converted here.
    """
    query_input = query_input or QueryInputController()
    extractor = extractor or ResultExtractor()
    logger.info(f"Searching for '{request.query}' (limit={request.limit}, timeout={request.timeout}ms)")

    async def step(attempt: Attempt) -> SearchResponse:
        await _submit_query(attempt, request.query, query_input)

        if not await extractor.wait_for_results(attempt.page, request.timeout):
            # Either a challenge (escalates or waits for the user) or a genuinely empty page
            if not await attempt.checkpoint("results") or not await extractor.wait_for_results(attempt.page, request.timeout):
                raise NoResultsFound(f"Could not find search results element on {attempt.page.url}")

        await attempt.page.wait_for_timeout(random_delay(RESULTS_SETTLE_DELAY_MS))
        results = await extractor.extract(attempt.page, request.limit)
        return SearchResponse(query=request.query, results=results)

    async with _playwright_driver(playwright) as driver:
        controller = BrowserSessionController(driver, request, shared_browser=browser, on_verification=on_verification)
        response = await controller.run(step)
    logger.info(f"Search for '{request.query}' returned {len(response.results)} results")
    return response


async def get_google_search_page_html(
    request: QueryRequest,
    save_to_file: bool = False,
    output_path: Optional[str] = None,
    browser: Optional[Browser] = None,
    playwright: Optional[Playwright] = None,
    on_verification: VerificationHook = log_verification_hook,
    query_input: Optional[QueryInputController] = None,
) -> HtmlCaptureResult:
    """Run the query and capture the cleaned results-page HTML, optionally saving it with a screenshot.

    Raises the same errors as ``google_search``.
    """
    query_input = query_input or QueryInputController()

    async def step(attempt: Attempt) -> HtmlCaptureResult:
        await _submit_query(attempt, request.query, query_input)
        page = attempt.page
        final_url = page.url
        logger.info(f"Search results page loaded, capturing HTML from {final_url}")

        await page.wait_for_timeout(HTML_STABILIZE_DELAY_MS)
        await attempt.settle()
        full_html = await page.content()
        html = clean_html(full_html)
        logger.info(f"Captured page HTML: original {len(full_html)} chars, cleaned {len(html)} chars")

        saved_path = screenshot_path = None
        if save_to_file:
            saved_path = await save_html(output_path or default_output_path(request.query, HTML_OUTPUT_DIR), html)
            screenshot_path = screenshot_path_for(saved_path)
            await page.screenshot(path=screenshot_path, full_page=True)
            logger.info(f"Page screenshot saved: {screenshot_path}")

        return HtmlCaptureResult(
            query=request.query,
            html=html,
            url=final_url,
            original_html_length=len(full_html),
            cleaned_html_length=len(html),
            saved_path=saved_path,
            screenshot_path=screenshot_path,
        )

    async with _playwright_driver(playwright) as driver:
        controller = BrowserSessionController(driver, request, shared_browser=browser, on_verification=on_verification)
        return await controller.run(step)
