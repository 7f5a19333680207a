import logging
import asyncio
from typing import Optional, Dict
from playwright.async_api import async_playwright, Browser, Playwright

from google_search.config.settings import SERVER_TIMEOUT

logger = logging.getLogger(__name__)

# Chromium flags that reduce automation tells and background noise
LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-features=IsolateOrigins,site-per-process",
    "--disable-site-isolation-trials",
    "--disable-web-security",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
    "--hide-scrollbars",
    "--mute-audio",
    "--disable-background-networking",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-breakpad",
    "--disable-component-extensions-with-background-pages",
    "--disable-extensions",
    "--disable-features=TranslateUI",
    "--disable-ipc-flooding-protection",
    "--disable-renderer-backgrounding",
    "--enable-features=NetworkService,NetworkServiceInProcess",
    "--force-color-profile=srgb",
    "--metrics-recording-only",
]

IGNORED_DEFAULT_ARGS = ["--enable-automation"]


def launch_options(headless: bool, timeout: int) -> Dict:
    """Options for ``playwright.chromium.launch``; ``timeout`` is the launch timeout in ms."""
    return {
        "headless": headless,
        "timeout": timeout,
        "args": list(LAUNCH_ARGS),
        "ignore_default_args": list(IGNORED_DEFAULT_ARGS),
    }


async def launch_browser(playwright: Playwright, headless: bool, timeout: int) -> Browser:
    """Launch a Chromium instance with the anti-automation flag set.

    Launch failures are logged and propagated unchanged.
    """
    logger.info(f"Launching browser in {'headless' if headless else 'headed'} mode...")
    try:
        return await playwright.chromium.launch(**launch_options(headless, timeout))
    except Exception as e:
        logger.error(f"Failed to launch browser: {e}", exc_info=True)
        raise


class BrowserManager:
    """
    Owns a Playwright driver and one shared headless browser for a long-lived process.
    Created at server start-up, handed to each search call, and released at shutdown.
    Searches open their own contexts on it and never close it.
    """

    def __init__(self, launch_timeout: int = SERVER_TIMEOUT * 2, headless: bool = True):
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.is_running = False
        self.launch_timeout = launch_timeout
        self.headless = headless
        self._lock = asyncio.Lock()

    @property
    def is_initialized(self) -> bool:
        """
        Check if the browser is initialized and running.
        """
        return self.is_running and self.browser is not None

    async def initialize_browser(self) -> Browser:
        """
        Start Playwright and launch the shared browser if not already running.
        Returns the browser instance.
        """
        async with self._lock:
            if not self.is_running:
                logger.info("Initializing shared Playwright browser instance...")
                try:
                    self.playwright = await async_playwright().start()
                    self.browser = await launch_browser(self.playwright, self.headless, self.launch_timeout)
                    self.is_running = True
                    logger.info("Shared browser instance initialized successfully")
                except Exception as e:
                    logger.error(f"Failed to initialize browser: {e}", exc_info=True)
                    if self.playwright:
                        await self.playwright.stop()
                    self.is_running = False
                    self.browser = None
                    self.playwright = None
                    raise RuntimeError(f"Failed to initialize Playwright browser: {e}") from e

            return self.browser

    async def clean_up(self):
        """
        Close the shared browser and stop Playwright. Any search still running on it is aborted.
        """
        async with self._lock:
            if not self.is_running:
                return
            logger.info("Cleaning up shared browser instance...")
            try:
                if self.browser:
                    await self.browser.close()
                    logger.info("Browser closed successfully")
                if self.playwright:
                    await self.playwright.stop()
                    logger.info("Playwright stopped successfully")
            except Exception as e:
                logger.error(f"Error during browser cleanup: {e}", exc_info=True)
            finally:
                self.browser = None
                self.playwright = None
                self.is_running = False

    def get_browser(self) -> Optional[Browser]:
        """
        Get the current browser instance if available.

        Returns:
            The browser instance or None if not initialized.
        """
        if self.is_running and self.browser:
            return self.browser
        return None

    async def __aenter__(self) -> "BrowserManager":
        await self.initialize_browser()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.clean_up()
