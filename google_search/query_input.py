import logging
from typing import Optional, Sequence, Tuple

from playwright.async_api import ElementHandle, Page

from google_search.config.settings import SUBMIT_PAUSE_MS, TYPING_DELAY_MS
from google_search.errors import InputNotFound
from google_search.utils import random_delay

logger = logging.getLogger(__name__)

# Tried in order; the bare textarea is a last resort for reshuffled markup
SEARCH_INPUT_SELECTORS = (
    "textarea[name='q']",
    "input[name='q']",
    "textarea[title='Search']",
    "input[title='Search']",
    "textarea[aria-label='Search']",
    "input[aria-label='Search']",
    "textarea",
)


class QueryInputController:
    """Finds the search box and submits a query with human-like typing cadence."""

    def __init__(
        self,
        selectors: Sequence[str] = SEARCH_INPUT_SELECTORS,
        typing_delay: Tuple[int, int] = tuple(TYPING_DELAY_MS),
        submit_pause: Tuple[int, int] = tuple(SUBMIT_PAUSE_MS),
    ):
        self.selectors = tuple(selectors)
        self.typing_delay = typing_delay
        self.submit_pause = submit_pause

    async def locate(self, page: Page) -> Optional[ElementHandle]:
        for selector in self.selectors:
            element = await page.query_selector(selector)
            if element:
                logger.info(f"Found search box: {selector}")
                return element
        return None

    async def submit(self, page: Page, query: str) -> None:
        """Type the query into the first matching search box and press Enter.

        Args:
            page: Page already showing the search engine homepage.
            query: Text to type.

        Raises:
            InputNotFound: If no selector resolves to an element.
        """
        search_input = await self.locate(page)
        if search_input is None:
            logger.error("Could not find the search box")
            raise InputNotFound("Could not find the search box")

        await search_input.click()
        await page.keyboard.type(query, delay=random_delay(self.typing_delay))
        await page.wait_for_timeout(random_delay(self.submit_pause))
        await page.keyboard.press("Enter")
        logger.info("Search submitted.")
