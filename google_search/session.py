import asyncio
import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from playwright.async_api import Browser, BrowserContext, Page, Playwright, Response, TimeoutError as PlaywrightTimeoutError

from google_search.block_detector import is_blocked
from google_search.browser_manager import launch_browser
from google_search.config.settings import MAX_BROWSER_ATTEMPTS, SEARCH_DOMAINS
from google_search.errors import VerificationExhausted, VerificationTimeout
from google_search.fingerprint import FingerprintManager
from google_search.models import FingerprintProfile, QueryRequest, SessionState
from google_search.state_store import SessionStateStore

logger = logging.getLogger(__name__)

T = TypeVar("T")
VerificationHook = Callable[[Page], Awaitable[None]]

CONTEXT_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => false });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
window.chrome = { runtime: {}, loadTimes: function() {}, csi: function() {}, app: {} };
if (typeof WebGLRenderingContext !== 'undefined') {
  const getParameter = WebGLRenderingContext.prototype.getParameter;
  WebGLRenderingContext.prototype.getParameter = function(parameter) {
    if (parameter === 37445) { return 'Intel Inc.'; }
    if (parameter === 37446) { return 'Intel Iris OpenGL Engine'; }
    return getParameter.call(this, parameter);
  };
}
"""

PAGE_INIT_SCRIPT = """
Object.defineProperty(window.screen, 'width', { get: () => 1920 });
Object.defineProperty(window.screen, 'height', { get: () => 1080 });
Object.defineProperty(window.screen, 'colorDepth', { get: () => 24 });
Object.defineProperty(window.screen, 'pixelDepth', { get: () => 24 });
"""


class BrowserMode(str, Enum):
    HEADLESS = "headless"
    HEADED_OWNED = "headed_owned"
    HEADED_FROM_SHARED_SOURCE = "headed_from_shared_source"

    @property
    def headless(self) -> bool:
        return self is BrowserMode.HEADLESS


class ChallengeDetected(Exception):
    """Raised inside an attempt when a headless session lands on a challenge page."""

    def __init__(self, checkpoint: str, url: str):
        super().__init__(f"Challenge page detected at {checkpoint}: {url}")
        self.checkpoint = checkpoint
        self.url = url


async def log_verification_hook(page: Page) -> None:
    """Default hook for the throwaway headed browser: nothing automated, just a log line."""
    logger.info(f"Verification browser opened at {page.url or 'about:blank'}; no automated handling configured")


async def _close_quietly(resource) -> None:
    try:
        await resource.close()
    except Exception as e:
        logger.warning(f"Error closing {type(resource).__name__}: {e}")


@dataclass
class BrowserHandle:
    browser: Browser
    owned: bool

    async def release(self) -> None:
        if self.owned:
            logger.info("Closing browser...")
            await self.browser.close()
        else:
            logger.info("Keeping shared browser instance open")


class Attempt:
    """One browser/context/page triple plus the checkpoint rule for the current mode."""

    def __init__(self, handle: BrowserHandle, context: BrowserContext, page: Page,
                 mode: BrowserMode, domain: str, timeout: int):
        self.handle = handle
        self.context = context
        self.page = page
        self.mode = mode
        self.domain = domain
        self.timeout = timeout

    async def navigate(self) -> Optional[Response]:
        logger.info(f"Navigating to {self.domain}")
        response = await self.page.goto(self.domain, timeout=self.timeout, wait_until="networkidle")
        await self.checkpoint("navigation", response)
        return response

    async def settle(self) -> None:
        await self.page.wait_for_load_state("networkidle", timeout=self.timeout)

    async def checkpoint(self, name: str, response: Optional[Response] = None) -> bool:
        """Check the page for a challenge.

        Headless sessions raise ChallengeDetected so the controller can escalate.
        Headed sessions wait up to twice the base timeout for the user to clear it.

        Returns:
            True when a challenge was cleared in headed mode, False when there was none.
        """
        response_url = response.url if response is not None else None
        if not is_blocked(self.page.url, response_url):
            return False
        if self.mode.headless:
            logger.warning(f"Human verification page detected ({name}), switching to headed mode...")
            raise ChallengeDetected(name, self.page.url)

        wait_ms = self.timeout * 2
        logger.warning(f"Human verification page detected ({name}), please complete the verification in the browser...")
        try:
            await self.page.wait_for_url(lambda url: not is_blocked(url), timeout=wait_ms)
        except PlaywrightTimeoutError as e:
            raise VerificationTimeout(f"Human verification was not completed within {wait_ms} ms") from e
        logger.info("Human verification complete, continuing...")
        await self.settle()
        return True

    async def close(self) -> None:
        await _close_quietly(self.page)
        await _close_quietly(self.context)
        await self.handle.release()


class BrowserSessionController:
    """Runs a browser step with the headless-first, headed-on-challenge escalation policy.

    A caller-supplied browser serves the first attempt only and is never closed
    here. After a challenge the next attempt runs headed on a browser this
    controller launches itself. The number of attempts is bounded.
    """

    def __init__(
        self,
        playwright: Playwright,
        request: QueryRequest,
        shared_browser: Optional[Browser] = None,
        state_store: Optional[SessionStateStore] = None,
        fingerprint_manager: Optional[FingerprintManager] = None,
        on_verification: VerificationHook = log_verification_hook,
        max_attempts: int = MAX_BROWSER_ATTEMPTS,
        domains: Sequence[str] = SEARCH_DOMAINS,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.playwright = playwright
        self.request = request
        self.shared_browser = shared_browser
        self.state_store = state_store or SessionStateStore(request.state_file)
        self.fingerprint_manager = fingerprint_manager or FingerprintManager()
        self.on_verification = on_verification
        self.max_attempts = max_attempts
        self.domains = list(domains)
        self.state: SessionState = self.state_store.load()
        self.mode = BrowserMode.HEADLESS
        self.transitions: List[Tuple[BrowserMode, BrowserMode, str]] = []

    @property
    def launch_timeout(self) -> int:
        return self.request.timeout * 2

    def resolve_fingerprint(self) -> FingerprintProfile:
        fingerprint = self.fingerprint_manager.resolve(self.state.fingerprint, self.request.locale)
        if fingerprint is not self.state.fingerprint:
            self.state.fingerprint = fingerprint
        return fingerprint

    def resolve_domain(self) -> str:
        if not self.state.engine_domain:
            self.state.engine_domain = random.choice(self.domains)
            logger.info(f"Selected search domain: {self.state.engine_domain}")
        return self.state.engine_domain

    def context_options(self) -> Dict:
        fingerprint = self.resolve_fingerprint()
        device = dict(self.playwright.devices[fingerprint.device_name])
        # Device descriptors carry a browser-type hint that new_context does not accept
        device.pop("default_browser_type", None)
        options = {
            **device,
            "locale": fingerprint.locale,
            "timezone_id": fingerprint.timezone_id,
            "color_scheme": fingerprint.color_scheme,
            "reduced_motion": fingerprint.reduced_motion,
            "forced_colors": fingerprint.forced_colors,
            "permissions": ["geolocation", "notifications"],
            "accept_downloads": True,
            "is_mobile": False,
            "has_touch": False,
            "java_script_enabled": True,
        }
        if self.state_store.has_storage_state():
            logger.info(f"Loading browser storage state from {self.state_store.storage_state_file}")
            options["storage_state"] = str(self.state_store.storage_state_file)
        return options

    async def run(self, step: Callable[[Attempt], Awaitable[T]]) -> T:
        """Execute ``step`` with escalation, persisting state when the run ends.

        Args:
            step: Coroutine function receiving the Attempt; it performs navigation,
                input and extraction, calling ``attempt.checkpoint`` where needed.

        Returns:
            Whatever ``step`` returns on the successful attempt.

        Raises:
            VerificationExhausted: A challenge was hit with no attempts left.
            VerificationTimeout: A headed challenge was not cleared in time.
            Exception: Any failure from ``step`` or the browser, unchanged.
        """
        shared = self.shared_browser
        for attempt_no in range(1, self.max_attempts + 1):
            attempt = await self._open_attempt(shared)
            shared = None
            try:
                result = await step(attempt)
            except ChallengeDetected as challenge:
                if attempt_no >= self.max_attempts:
                    await self._persist(attempt)
                    raise VerificationExhausted(
                        f"Challenge page at {challenge.checkpoint} with no browser attempts left"
                    ) from challenge
                escalation = challenge
            except asyncio.CancelledError:
                logger.warning(f"Browser attempt {attempt_no} cancelled in {self.mode.value} mode")
                await self._persist(attempt)
                raise
            except Exception as e:
                logger.error(f"Browser attempt {attempt_no} failed in {self.mode.value} mode: {e}")
                await self._persist(attempt)
                raise
            else:
                await self._persist(attempt)
                return result
            finally:
                await attempt.close()
            await self._escalate(attempt, escalation)
        raise VerificationExhausted("No browser attempts left")

    async def _open_attempt(self, shared: Optional[Browser]) -> Attempt:
        if shared is not None:
            logger.info("Using existing browser instance")
            handle = BrowserHandle(shared, owned=False)
        else:
            browser = await launch_browser(self.playwright, headless=self.mode.headless, timeout=self.launch_timeout)
            handle = BrowserHandle(browser, owned=True)
        context = None
        try:
            context = await handle.browser.new_context(**self.context_options())
            await context.add_init_script(CONTEXT_INIT_SCRIPT)
            page = await context.new_page()
            await page.add_init_script(PAGE_INIT_SCRIPT)
        except (Exception, asyncio.CancelledError):
            # Never leave a half-built context on a shared browser
            if context is not None:
                await _close_quietly(context)
            await handle.release()
            raise
        return Attempt(handle, context, page, self.mode, self.resolve_domain(), self.request.timeout)

    async def _escalate(self, attempt: Attempt, challenge: ChallengeDetected) -> None:
        if attempt.handle.owned:
            next_mode = BrowserMode.HEADED_OWNED
        else:
            next_mode = BrowserMode.HEADED_FROM_SHARED_SOURCE
            await self._verify_with_throwaway_browser()
        logger.info(f"Browser mode {self.mode.value} -> {next_mode.value} after challenge at {challenge.checkpoint}")
        self.transitions.append((self.mode, next_mode, challenge.checkpoint))
        self.mode = next_mode

    async def _verify_with_throwaway_browser(self) -> None:
        logger.info("Challenge hit on the shared browser, opening a separate headed browser for verification...")
        browser = await launch_browser(self.playwright, headless=False, timeout=self.launch_timeout)
        try:
            context = await browser.new_context(**self.context_options())
            page = await context.new_page()
            await self.on_verification(page)
        finally:
            await browser.close()

    async def _persist(self, attempt: Attempt) -> None:
        if not self.request.save_state:
            logger.info("Not saving browser state as per user settings")
            return
        await self.state_store.save_storage_state(attempt.context)
        self.state_store.save(self.state)
