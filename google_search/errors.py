"""Exceptions raised by the search pipelines.

Launch and navigation failures coming from Playwright itself are not wrapped;
they propagate as ``playwright.async_api.Error`` / ``TimeoutError``.
"""


class GoogleSearchError(Exception):
    """Base class for failures specific to the search pipelines."""


class InputNotFound(GoogleSearchError):
    """No element in the search-box selector list resolved on the page."""


class NoResultsFound(GoogleSearchError):
    """No results container appeared and the page was not a challenge page."""


class VerificationTimeout(GoogleSearchError):
    """A headed session stayed on a challenge page longer than the allowed wait."""


class VerificationExhausted(GoogleSearchError):
    """A challenge page was hit with no browser attempts left to escalate to."""
