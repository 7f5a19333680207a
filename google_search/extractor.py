import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Set
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, Tag
from playwright.async_api import Page, TimeoutError as PlaywrightTimeoutError

from google_search.models import SearchResult
from google_search.utils import collapse_whitespace

logger = logging.getLogger(__name__)

# Any one of these appearing means the results page rendered
RESULTS_CONTAINER_SELECTORS = (
    "#search",
    "#rso",
    ".g",
    "[data-sokoban-container]",
    "div[role='main']",
)

ALTERNATIVE_SNIPPET_SELECTORS = (
    ".VwiC3b",
    '[data-sncf="1"]',
    'div[style*="webkit-line-clamp"]',
    'div[role="text"]',
)

# Links into the engine's own pages are never results
EXCLUDED_LINK_MARKERS = ("google.com/", "accounts.google", "support.google")

MIN_SNIPPET_LENGTH = 20


def _text(element: Optional[Tag]) -> str:
    if element is None:
        return ""
    return collapse_whitespace(element.get_text(" ", strip=True))


def _resolve_link(href: Optional[str], base_url: str) -> Optional[str]:
    if not href:
        return None
    link = urljoin(base_url, href.strip())
    if not link.startswith(("http://", "https://")):
        return None
    return link


@dataclass(frozen=True)
class SelectorStrategy:
    """One way of reading result blocks: where blocks live, and where title and snippet sit inside them."""
    container: str
    title: str
    snippet: str

    def find_link(self, block: Tag, title_el: Tag) -> Optional[str]:
        anchor = title_el.find("a", href=True)
        if anchor is None:
            parent = title_el.find_parent("a")
            if parent is not None and parent.get("href"):
                anchor = parent
        if anchor is None:
            anchor = block.find("a", href=True)
        return anchor.get("href") if anchor is not None else None

    def find_snippet(self, block: Tag) -> str:
        for selector in (self.snippet,) + tuple(s for s in ALTERNATIVE_SNIPPET_SELECTORS if s != self.snippet):
            snippet = _text(block.select_one(selector))
            if snippet:
                return snippet
        # Fallback: first text-bearing div that is not the title block
        for div in block.find_all("div"):
            if div.select_one(self.title):
                continue
            text = _text(div)
            if len(text) > MIN_SNIPPET_LENGTH:
                return text
        return ""

    def extract(self, soup: BeautifulSoup, base_url: str, seen: Set[str], limit: int) -> List[SearchResult]:
        """Read up to ``limit`` new results, adding their links to ``seen``."""
        results: List[SearchResult] = []
        for block in soup.select(self.container):
            if len(results) >= limit:
                break
            title_el = block.select_one(self.title)
            if title_el is None:
                continue
            title = _text(title_el)
            link = _resolve_link(self.find_link(block, title_el), base_url)
            if not title or not link or link in seen:
                continue
            seen.add(link)
            results.append(SearchResult(title=title, link=link, snippet=self.find_snippet(block)))
        return results


DEFAULT_STRATEGIES = (
    SelectorStrategy("#search div[data-hveid]", "h3", ".VwiC3b"),
    SelectorStrategy("#rso div[data-hveid]", "h3", '[data-sncf="1"]'),
    SelectorStrategy(".g", "h3", 'div[style*="webkit-line-clamp"]'),
    SelectorStrategy("div[jscontroller][data-hveid]", "h3", 'div[role="text"]'),
)


class ResultExtractor:
    """Runs the selector-strategy cascade over a rendered results page."""

    def __init__(
        self,
        strategies: Sequence[SelectorStrategy] = DEFAULT_STRATEGIES,
        container_selectors: Sequence[str] = RESULTS_CONTAINER_SELECTORS,
        excluded_link_markers: Iterable[str] = EXCLUDED_LINK_MARKERS,
    ):
        self.strategies = tuple(strategies)
        self.container_selectors = tuple(container_selectors)
        self.excluded_link_markers = tuple(excluded_link_markers)

    async def wait_for_results(self, page: Page, timeout: int) -> Optional[str]:
        """Wait for any results container; each candidate gets half the base timeout.

        Returns:
            The selector that appeared, or None when none did.
        """
        for selector in self.container_selectors:
            try:
                await page.wait_for_selector(selector, timeout=timeout / 2)
                logger.info(f"Found search results container: {selector}")
                return selector
            except PlaywrightTimeoutError:
                continue
        logger.warning("Could not find any search results container")
        return None

    async def extract(self, page: Page, limit: int) -> List[SearchResult]:
        html = await page.content()
        results = self.parse(html, page.url, limit)
        logger.info(f"Extracted {len(results)} search results")
        return results

    def parse(self, html: str, base_url: str, limit: int) -> List[SearchResult]:
        soup = BeautifulSoup(html, "lxml")
        seen: Set[str] = set()
        results: List[SearchResult] = []

        for strategy in self.strategies:
            if len(results) >= limit:
                break
            found = strategy.extract(soup, base_url, seen, limit - len(results))
            if found:
                logger.debug(f"Strategy '{strategy.container}' produced {len(found)} results")
            results.extend(found)

        if len(results) < limit:
            extra = self._supplementary_pass(soup, base_url, seen, limit - len(results))
            if extra:
                logger.info(f"Generic link pass added {len(extra)} results")
            results.extend(extra)

        return results[:limit]

    def _is_excluded(self, link: str, engine_host: str) -> bool:
        if any(marker in link for marker in self.excluded_link_markers):
            return True
        return bool(engine_host) and urlparse(link).netloc == engine_host

    def _supplementary_pass(self, soup: BeautifulSoup, base_url: str, seen: Set[str], limit: int) -> List[SearchResult]:
        engine_host = urlparse(base_url).netloc
        results: List[SearchResult] = []
        for anchor in soup.select("a[href^='http']"):
            if len(results) >= limit:
                break
            link = _resolve_link(anchor.get("href"), base_url)
            if not link or link in seen or self._is_excluded(link, engine_host):
                continue
            title = _text(anchor)
            if not title:
                continue

            snippet = ""
            parent = anchor.parent
            for _ in range(3):
                if parent is None or not isinstance(parent, Tag):
                    break
                text = _text(parent)
                if len(text) > MIN_SNIPPET_LENGTH and text != title:
                    snippet = text
                    break
                parent = parent.parent

            seen.add(link)
            results.append(SearchResult(title=title, link=link, snippet=snippet))
        return results
