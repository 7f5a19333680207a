import logging
from typing import Any, Dict, List, Optional, Type, Union

from langchain_core.tools import BaseTool
from playwright.async_api import Error as PlaywrightError
from pydantic import BaseModel, Field, ValidationError

from google_search.browser_manager import BrowserManager
from google_search.config.settings import RESULT_LIMIT, SEARCH_TIMEOUT, STATE_FILE
from google_search.errors import GoogleSearchError
from google_search.models import QueryRequest
from google_search.search import google_search

logger = logging.getLogger(__name__)


class GoogleSearchInput(BaseModel):
    query: str = Field(..., description="The search query.")
    limit: int = Field(default=RESULT_LIMIT, description="Maximum number of results to return.")


class GoogleSearchTool(BaseTool):
    """A LangChain-compatible Google search tool backed by a real browser session."""

    name: str = "google_search"
    description: str = (
        "Searches Google in a real browser and returns a list of results, each with "
        "'title', 'link' and 'snippet'. Use it to find current web pages on a topic. "
        "A browser window may open if Google asks for human verification."
    )
    args_schema: Type[BaseModel] = GoogleSearchInput
    return_direct: bool = False

    # Optional shared browser; without one each call launches its own
    browser_manager: Optional[BrowserManager] = None
    state_file: str = STATE_FILE
    timeout: int = SEARCH_TIMEOUT

    async def _arun(self, query: str, limit: int = RESULT_LIMIT, **kwargs: Any) -> Union[str, List[Dict[str, str]]]:
        """Run the search and return result dicts, or an error string the agent can read."""
        logger.info(f"GoogleSearchTool called with query='{query}', limit={limit}")
        browser = playwright = None
        if self.browser_manager is not None and self.browser_manager.is_initialized:
            browser = self.browser_manager.get_browser()
            playwright = self.browser_manager.playwright
        try:
            request = QueryRequest(query=query, limit=limit, timeout=self.timeout, state_file=self.state_file)
            response = await google_search(request, browser=browser, playwright=playwright)
        except (GoogleSearchError, PlaywrightError, ValidationError, OSError) as e:
            logger.error(f"Error executing Google search: {e}", exc_info=True)
            return f"Error executing Google search: {e}"
        return [result.model_dump() for result in response.results]

    def _run(self, *args: Any, **kwargs: Any) -> Any:
        raise NotImplementedError("Use arun for asynchronous Playwright operations.")
