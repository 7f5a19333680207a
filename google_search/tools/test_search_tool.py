from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from google_search.browser_manager import BrowserManager
from google_search.errors import NoResultsFound
from google_search.models import SearchResponse, SearchResult
from google_search.tools.search_tool import GoogleSearchTool


class TestGoogleSearchTool:
    """Tests for the LangChain wrapper."""

    @pytest.mark.asyncio
    async def test_returns_result_dicts(self, tmp_path):
        response = SearchResponse(query="q", results=[SearchResult(title="T", link="https://t.example/", snippet="s")])
        tool = GoogleSearchTool(state_file=str(tmp_path / "state.json"))
        with patch("google_search.tools.search_tool.google_search", AsyncMock(return_value=response)) as search:
            output = await tool.ainvoke({"query": "q", "limit": 2})

        assert output == [{"title": "T", "link": "https://t.example/", "snippet": "s"}]
        assert search.await_args.args[0].limit == 2
        assert search.await_args.kwargs["browser"] is None

    @pytest.mark.asyncio
    async def test_shared_browser_passed_through(self):
        manager = MagicMock(spec=BrowserManager)
        manager.is_initialized = True
        manager.playwright = MagicMock(name="playwright")
        tool = GoogleSearchTool(browser_manager=manager)
        with patch("google_search.tools.search_tool.google_search", AsyncMock(return_value=SearchResponse(query="q"))) as search:
            await tool.ainvoke({"query": "q"})

        assert search.await_args.kwargs["browser"] is manager.get_browser.return_value
        assert search.await_args.kwargs["playwright"] is manager.playwright

    @pytest.mark.asyncio
    async def test_error_returned_as_text(self):
        tool = GoogleSearchTool()
        with patch("google_search.tools.search_tool.google_search", AsyncMock(side_effect=NoResultsFound("empty"))):
            output = await tool.ainvoke({"query": "q"})

        assert output.startswith("Error executing Google search")

    def test_sync_run_unsupported(self):
        with pytest.raises(NotImplementedError):
            GoogleSearchTool()._run("q")
