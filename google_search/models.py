import json
from typing import List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from google_search.config.settings import RESULT_LIMIT, SEARCH_TIMEOUT, STATE_FILE


class FingerprintProfile(BaseModel):
    """Device, locale, timezone and appearance emulated by every browser context."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    device_name: str = Field(..., alias="deviceName", description="Playwright device preset name.")
    locale: str = Field(..., description="BCP-47 locale, e.g. en-US.")
    timezone_id: str = Field(..., alias="timezoneId", description="IANA timezone name.")
    color_scheme: Literal["dark", "light"] = Field(..., alias="colorScheme")
    reduced_motion: Literal["reduce", "no-preference"] = Field("no-preference", alias="reducedMotion")
    forced_colors: Literal["active", "none"] = Field("none", alias="forcedColors")


class SessionState(BaseModel):
    """Persisted per-state-file data; unknown keys found on disk are kept as-is."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    fingerprint: Optional[FingerprintProfile] = None
    engine_domain: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("engineDomain", "googleDomain", "engine_domain"),
        serialization_alias="engineDomain",
    )

    def to_json(self) -> str:
        return json.dumps(self.model_dump(by_alias=True, exclude_none=True), indent=2, ensure_ascii=False)


class QueryRequest(BaseModel):
    """Options for a single search or HTML capture execution."""
    query: str = Field(..., min_length=1, description="The search query.")
    limit: int = Field(default=RESULT_LIMIT, ge=1, description="Maximum number of results to return.")
    timeout: int = Field(default=SEARCH_TIMEOUT, gt=0, description="Base timeout in milliseconds.")
    state_file: str = Field(default=STATE_FILE, description="Path of the browser storage-state file.")
    save_state: bool = Field(default=True, description="Persist session state when the run ends.")
    locale: Optional[str] = Field(default=None, description="Locale override for a newly generated fingerprint.")


class SearchResult(BaseModel):
    title: str
    link: str
    snippet: str = ""


class SearchResponse(BaseModel):
    query: str
    results: List[SearchResult] = Field(default_factory=list)

    @classmethod
    def failed(cls, query: str, error: Exception) -> "SearchResponse":
        """Synthetic single-entry response reported by the CLI when a search fails."""
        return cls(
            query=query,
            results=[SearchResult(
                title="Search failed",
                link="",
                snippet=f"Could not complete the search, error message: {error}",
            )],
        )


class HtmlCaptureResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str
    html: str
    url: str
    original_html_length: int = Field(..., alias="originalHtmlLength")
    cleaned_html_length: int = Field(..., alias="cleanedHtmlLength")
    saved_path: Optional[str] = Field(None, alias="savedPath")
    screenshot_path: Optional[str] = Field(None, alias="screenshotPath")

    def summary(self, preview_chars: int = 500) -> dict:
        """Printable summary without the full markup."""
        preview = self.html[:preview_chars] + ("..." if len(self.html) > preview_chars else "")
        return {
            "query": self.query,
            "url": self.url,
            "originalHtmlLength": self.original_html_length,
            "cleanedHtmlLength": self.cleaned_html_length,
            "savedPath": self.saved_path,
            "screenshotPath": self.screenshot_path,
            "htmlPreview": preview,
        }
