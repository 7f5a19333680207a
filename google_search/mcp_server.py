import json
import logging
import signal
import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, AsyncIterator, Optional

from mcp.server.fastmcp import Context, FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from pydantic import Field, ValidationError
from playwright.async_api import Error as PlaywrightError

from google_search import __version__
from google_search.browser_manager import BrowserManager
from google_search.config.settings import RESULT_LIMIT, SERVER_STATE_PATH, SERVER_TIMEOUT
from google_search.errors import GoogleSearchError
from google_search.logger import setup_logging
from google_search.models import QueryRequest
from google_search.search import google_search

logger = logging.getLogger(__name__)

SERVER_NAME = "google-search-server"
TOOL_NAME = "google-search"

TOOL_DESCRIPTION = (
    "Search Google in a real browser and return structured results (title, link, snippet). "
    "Use it for current information, fact checking and research that needs up-to-date sources. "
    "Results come from the live Google results page, so they reflect what a person would see."
)

FIRST_USE_NOTICE = (
    "Note: this is the first search with this server, so no browser state file existed yet. "
    "If Google asks for human verification, a browser window may open; complete it once and "
    "later searches will reuse the saved state.\n\n"
)


@dataclass
class ServerContext:
    manager: BrowserManager
    state_file: Path


async def run_google_search(
    manager: BrowserManager,
    state_file: Path,
    query: str,
    limit: Optional[int] = None,
    timeout: Optional[int] = None,
) -> str:
    """Execute one search on the shared browser and render the response as tool text.

    Raises:
        ToolError: ``Search failed: ...`` for any failure, reported to the client as an error result.
    """
    first_use = not state_file.exists()
    try:
        request = QueryRequest(
            query=query,
            limit=RESULT_LIMIT if limit is None else limit,
            timeout=SERVER_TIMEOUT if timeout is None else timeout,
            state_file=str(state_file),
        )
        response = await google_search(request, browser=manager.get_browser(), playwright=manager.playwright)
    except (GoogleSearchError, PlaywrightError, ValidationError, OSError) as e:
        logger.error(f"Search failed for '{query}': {e}", exc_info=True)
        raise ToolError(f"Search failed: {e}") from e

    text = json.dumps(response.model_dump(), indent=2, ensure_ascii=False)
    if first_use:
        text = FIRST_USE_NOTICE + text
    return text


@asynccontextmanager
async def browser_lifespan(server: FastMCP) -> AsyncIterator[ServerContext]:
    """Launch the shared headless browser at start-up and close it at shutdown."""
    manager = BrowserManager()
    await manager.initialize_browser()
    try:
        yield ServerContext(manager=manager, state_file=SERVER_STATE_PATH)
    finally:
        await manager.clean_up()


mcp = FastMCP(SERVER_NAME, lifespan=browser_lifespan)


@mcp.tool(name=TOOL_NAME, description=TOOL_DESCRIPTION)
async def google_search_tool(
    ctx: Context,
    query: Annotated[str, Field(description="Search keywords, e.g. 'latest AI research'.")],
    limit: Annotated[Optional[int], Field(description="Maximum number of results to return (default 10).")] = None,
    timeout: Annotated[Optional[int], Field(description="Search timeout in milliseconds (default 30000).")] = None,
) -> str:
    server_ctx: ServerContext = ctx.request_context.lifespan_context
    return await run_google_search(server_ctx.manager, server_ctx.state_file, query, limit, timeout)


def _handle_termination(signum, frame):
    logger.info(f"Received signal {signum}, shutting down...")
    # Unwinds through the lifespan so the shared browser gets closed
    raise KeyboardInterrupt


def main():
    setup_logging()
    signal.signal(signal.SIGTERM, _handle_termination)
    logger.info(f"{SERVER_NAME} {__version__} starting, state file: {SERVER_STATE_PATH}")
    try:
        mcp.run(transport="stdio")
    except KeyboardInterrupt:
        logger.info("Server stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
