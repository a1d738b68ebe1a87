"""
Stealth browser driver for storefronts with bot detection.

Uses Playwright with a realistic fingerprint (viewport, user agent, locale,
headers) and hides the usual automation markers. One StealthCrawler is one
browser session: acquire it with ``async with`` and it is released on every
exit path, cancellation included.
"""

import asyncio
from typing import List, Optional

from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Page,
    Response,
    Error as PlaywrightError,
    TimeoutError as PlaywrightTimeoutError,
)
import logging

from ..config import BrowserSettings
from ..errors import BrowserCrashed, NavigationTimeout, ScraperError

logger = logging.getLogger(__name__)


# Playwright error fragments that mean the browser itself is gone
CRASH_MARKERS = (
    'target page, context or browser has been closed',
    'browser has been closed',
    'target closed',
    'connection closed',
    'browser closed',
)

STEALTH_INIT_SCRIPT = """
    Object.defineProperty(navigator, 'webdriver', {
        get: () => undefined
    });

    // Override plugins
    Object.defineProperty(navigator, 'plugins', {
        get: () => [1, 2, 3, 4, 5]
    });

    // Override languages
    Object.defineProperty(navigator, 'languages', {
        get: () => ['de-DE', 'de', 'en-US', 'en']
    });
"""


def is_browser_crash(error: BaseException) -> bool:
    """Check whether a Playwright error means the browser process died."""
    message = str(error).lower()
    return any(marker in message for marker in CRASH_MARKERS)


class StealthCrawler:
    """
    One Playwright browser session with anti-bot settings.

    Usage:
        async with StealthCrawler(browser_settings) as session:
            page = await session.new_page()
            await session.navigate(page, url)
            html = await page.content()
    """

    def __init__(self, settings: Optional[BrowserSettings] = None):
        """
        Initialize the crawler.

        Args:
            settings: Browser and timeout settings (defaults if omitted)
        """
        self.settings = settings or BrowserSettings()
        self._playwright = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._pages: List[Page] = []

    async def _init_browser(self):
        """Start Playwright, launch Chromium and create the browser context."""
        try:
            self._playwright = await async_playwright().start()

            logger.debug("Launching Chromium browser...")
            self._browser = await self._playwright.chromium.launch(
                headless=self.settings.headless,
                args=self.settings.launch_args,
                handle_sigint=False,
                handle_sigterm=False,
                handle_sighup=False,
            )

            self._context = await self._browser.new_context(
                viewport={
                    'width': self.settings.viewport_width,
                    'height': self.settings.viewport_height,
                },
                user_agent=self.settings.user_agent,
                locale=self.settings.locale,
                timezone_id=self.settings.timezone_id,
                extra_http_headers={
                    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8',
                    'Accept-Language': self.settings.accept_language,
                    'Upgrade-Insecure-Requests': '1',
                    'Sec-Fetch-Dest': 'document',
                    'Sec-Fetch-Mode': 'navigate',
                    'Sec-Fetch-Site': 'none',
                    'Sec-Fetch-User': '?1',
                }
            )

            # Hide automation indicators
            await self._context.add_init_script(STEALTH_INIT_SCRIPT)
            logger.debug("Browser initialization successful")

        except Exception as e:
            logger.error(f"Failed to initialize browser: {e}")
            # Clean up partial initialization
            await self._cleanup()
            raise BrowserCrashed(f"Failed to launch browser: {e}") from e

    async def new_page(self) -> Page:
        """Open a new page in this session."""
        if self._context is None:
            raise BrowserCrashed("Browser session is not open")
        try:
            page = await self._context.new_page()
        except PlaywrightError as e:
            if is_browser_crash(e):
                raise BrowserCrashed(f"Could not open page: {e}") from e
            raise ScraperError(f"Could not open page: {e}", stage='navigate') from e
        page.set_default_timeout(self.settings.selector_timeout * 1000)
        self._pages.append(page)
        return page

    async def navigate(self, page: Page, url: str, wait_until: str = 'domcontentloaded') -> Optional[Response]:
        """
        Navigate a page to a URL. Exactly one attempt is made.

        Args:
            page: Page from new_page()
            url: Absolute URL
            wait_until: Playwright load state to wait for

        Returns:
            The main resource response (may be None for same-document navigations)

        Raises:
            NavigationTimeout: On timeout, network error or HTTP status >= 400
            BrowserCrashed: If the browser died during navigation
        """
        timeout = self.settings.navigation_timeout
        try:
            response = await page.goto(url, wait_until=wait_until, timeout=int(timeout * 1000))
        except PlaywrightTimeoutError as e:
            raise NavigationTimeout(f"Timed out after {timeout:.0f}s loading {url}", url=url) from e
        except PlaywrightError as e:
            if is_browser_crash(e):
                raise BrowserCrashed(str(e)) from e
            raise NavigationTimeout(f"Navigation failed for {url}: {e}", url=url) from e

        if response and response.status >= 400:
            raise NavigationTimeout(f"HTTP {response.status} for {url}", url=url)
        return response

    async def _cleanup(self):
        """Clean up browser resources with timeouts to prevent hanging."""
        cleanup_timeout = self.settings.cleanup_timeout

        for page in self._pages:
            try:
                await asyncio.wait_for(page.close(), timeout=cleanup_timeout)
            except asyncio.TimeoutError:
                logger.warning("Page close timed out, forcing cleanup")
            except Exception as e:
                logger.debug(f"Error closing page: {e}")
        self._pages = []

        if self._context:
            try:
                await asyncio.wait_for(self._context.close(), timeout=cleanup_timeout)
            except asyncio.TimeoutError:
                logger.warning("Context close timed out, forcing cleanup")
            except Exception as e:
                logger.warning(f"Error closing context: {e}")
            self._context = None

        if self._browser:
            try:
                await asyncio.wait_for(self._browser.close(), timeout=cleanup_timeout)
            except asyncio.TimeoutError:
                logger.warning("Browser close timed out, forcing cleanup")
            except Exception as e:
                logger.warning(f"Error closing browser: {e}")
            self._browser = None

        if self._playwright:
            try:
                await asyncio.wait_for(self._playwright.stop(), timeout=cleanup_timeout)
            except asyncio.TimeoutError:
                logger.warning("Playwright stop timed out, forcing cleanup")
            except Exception as e:
                logger.warning(f"Error stopping playwright: {e}")
            self._playwright = None

    async def __aenter__(self):
        """Async context manager entry."""
        await self._init_browser()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self._cleanup()
