import logging
import os
import re
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

import aiofiles

from google_search.config.settings import HTML_OUTPUT_DIR
from google_search.utils import sanitize_query

logger = logging.getLogger(__name__)

# Pattern-based removal keeps the markup otherwise byte-for-byte as served
STYLE_BLOCK_RE = re.compile(r"<style\b[^<]*(?:(?!</style>)<[^<]*)*</style>", re.IGNORECASE)
STYLESHEET_LINK_RE = re.compile(r"""<link\s+[^>]*rel=["']stylesheet["'][^>]*>""", re.IGNORECASE)
SCRIPT_BLOCK_RE = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)


def clean_html(html: str) -> str:
    """Strip inline styles, stylesheet links and scripts from page markup."""
    cleaned = STYLE_BLOCK_RE.sub("", html)
    cleaned = STYLESHEET_LINK_RE.sub("", cleaned)
    cleaned = SCRIPT_BLOCK_RE.sub("", cleaned)
    return cleaned


def default_output_path(query: str, output_dir: Union[str, Path] = HTML_OUTPUT_DIR, now: Optional[datetime] = None) -> str:
    """Build ``<dir>/<sanitized query>-<timestamp>.html`` for a capture."""
    now = now or datetime.now()
    timestamp = now.isoformat().replace(":", "-").replace(".", "-")
    return os.path.join(str(output_dir), f"{sanitize_query(query)}-{timestamp}.html")


def screenshot_path_for(html_path: str) -> str:
    if html_path.endswith(".html"):
        return html_path[:-len(".html")] + ".png"
    return html_path + ".png"


async def save_html(path: str, html: str) -> str:
    """Write cleaned markup to ``path``, creating its directory. Returns the path."""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    async with aiofiles.open(path, "w", encoding="utf-8") as f:
        await f.write(html)
    logger.info(f"HTML saved to file: {path}")
    return path
