from unittest.mock import AsyncMock, MagicMock

import pytest

from google_search.errors import InputNotFound
from google_search.query_input import SEARCH_INPUT_SELECTORS, QueryInputController


class TestQueryInputController:
    """Tests for search-box lookup and submission."""

    @pytest.mark.asyncio
    async def test_falls_through_selector_list(self, make_page):
        page = make_page()
        box = MagicMock()
        box.click = AsyncMock()
        # Only the aria-label input exists
        page.query_selector = AsyncMock(
            side_effect=lambda sel: box if sel == "input[aria-label='Search']" else None
        )
        controller = QueryInputController(typing_delay=(0, 0), submit_pause=(0, 0))

        await controller.submit(page, "deepseek")

        box.click.assert_awaited_once()
        page.keyboard.type.assert_awaited_once_with("deepseek", delay=0)
        page.wait_for_timeout.assert_awaited_once_with(0)
        page.keyboard.press.assert_awaited_once_with("Enter")

    @pytest.mark.asyncio
    async def test_missing_input_raises(self, make_page):
        page = make_page()
        page.query_selector = AsyncMock(return_value=None)

        with pytest.raises(InputNotFound):
            await QueryInputController().submit(page, "deepseek")

        assert page.query_selector.await_count == len(SEARCH_INPUT_SELECTORS)
        page.keyboard.press.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_typing_delay_within_bounds(self, make_page):
        page = make_page()
        await QueryInputController(typing_delay=(10, 30), submit_pause=(100, 300)).submit(page, "q")
        delay = page.keyboard.type.await_args.kwargs["delay"]
        pause = page.wait_for_timeout.await_args.args[0]
        assert 10 <= delay <= 30
        assert 100 <= pause <= 300
