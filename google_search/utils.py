import logging
import random
import re
from typing import Sequence

logger = logging.getLogger(__name__)


def random_delay(bounds: Sequence[int]) -> int:
    """Pick a human-looking delay in milliseconds from an inclusive [low, high] range."""
    low, high = int(bounds[0]), int(bounds[1])
    if high <= low:
        return max(low, 0)
    return random.randint(low, high)


def sanitize_query(query: str, max_length: int = 50) -> str:
    """Make a query safe for use in a file name: non-alphanumerics become underscores."""
    return re.sub(r"[^a-zA-Z0-9]", "_", query)[:max_length]


def collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()
