import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from playwright.async_api import Error as PlaywrightError
from pydantic import ValidationError

from google_search import __version__
from google_search.config.settings import CLI_TIMEOUT, RESULT_LIMIT, STATE_FILE
from google_search.errors import GoogleSearchError
from google_search.logger import setup_logging
from google_search.models import QueryRequest, SearchResponse
from google_search.search import get_google_search_page_html, google_search

logger = logging.getLogger(__name__)

# Failures an execution can end with; anything else is a bug and should surface
RUN_ERRORS = (GoogleSearchError, PlaywrightError, OSError)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="google-search",
        description="Search Google in a real browser and print structured results as JSON.",
    )
    parser.add_argument("query", help="Search keywords")
    parser.add_argument("-l", "--limit", type=int, default=RESULT_LIMIT, help="Maximum number of results (default: %(default)s)")
    parser.add_argument("-t", "--timeout", type=int, default=CLI_TIMEOUT, help="Timeout in milliseconds (default: %(default)s)")
    parser.add_argument("--no-headless", action="store_true",
                        help="Deprecated: the browser now starts headless and opens a window only when verification is needed")
    parser.add_argument("--state-file", default=STATE_FILE, help="Browser state file path (default: %(default)s)")
    parser.add_argument("--no-save-state", action="store_true", help="Do not save browser state when done")
    parser.add_argument("--locale", default=None, help="Locale for a newly generated fingerprint, e.g. en-US")
    parser.add_argument("--get-html", action="store_true", help="Capture the raw results-page HTML instead of parsed results")
    parser.add_argument("--save-html", action="store_true", help="Save the captured HTML (and a screenshot) to a file")
    parser.add_argument("--html-output", default=None, help="Output path for the saved HTML file")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _emit(payload: dict) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


async def run_cli(args: argparse.Namespace) -> int:
    """Run one search (or HTML capture) and print the JSON outcome.

    Returns:
        int: Status code (0 for success, 1 for failure)
    """
    if args.no_headless:
        logger.warning("--no-headless is deprecated and ignored; headed mode is used only for verification")

    try:
        request = QueryRequest(
            query=args.query,
            limit=args.limit,
            timeout=args.timeout,
            state_file=args.state_file,
            save_state=not args.no_save_state,
            locale=args.locale,
        )
    except ValidationError as e:
        logger.error(f"Invalid options: {e}")
        _emit({"query": args.query, "error": str(e)})
        return 1

    if args.get_html:
        try:
            result = await get_google_search_page_html(request, save_to_file=args.save_html, output_path=args.html_output)
        except RUN_ERRORS as e:
            logger.error(f"Failed to get Google search page HTML: {e}", exc_info=True)
            _emit({"query": request.query, "error": f"Failed to get Google search page HTML: {e}"})
            return 1
        _emit(result.summary())
        return 0

    try:
        response = await google_search(request)
    except RUN_ERRORS as e:
        logger.error(f"Error during search: {e}", exc_info=True)
        _emit(SearchResponse.failed(request.query, e).model_dump())
        return 1
    _emit(response.model_dump())
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()
    try:
        return asyncio.run(run_cli(args))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 1


if __name__ == "__main__":
    sys.exit(main())
