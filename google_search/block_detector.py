from typing import Optional, Sequence

# Substrings that mark a challenge/interstitial page
BLOCK_PATTERNS = (
    "google.com/sorry/index",
    "google.com/sorry",
    "recaptcha",
    "captcha",
    "unusual traffic",
)


def is_blocked(current_url: Optional[str], last_response_url: Optional[str] = None,
               patterns: Sequence[str] = BLOCK_PATTERNS) -> bool:
    """True when the page URL or the last navigation response URL contains a block pattern."""
    for url in (current_url, last_response_url):
        if url and any(pattern in url for pattern in patterns):
            return True
    return False
