"""
Page readiness handling for rendered storefront search pages.

Before a page can be extracted it has to be made ready:
1. Dismiss the cookie consent banner (best effort)
2. Wait for product cards (primary selector, then fallbacks)
3. Scroll until lazy loading stops producing new cards
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from .config import BrowserSettings
from .crawlers.stealth import is_browser_crash
from .errors import BrowserCrashed, NoProductsFound, SelectorNotFound
from .models import SiteConfig

logger = logging.getLogger(__name__)


# Counts item nodes that are fully rendered (no skeleton placeholder inside)
COUNT_LOADED_ITEMS = """
([itemSelector, skeletonSelector]) => {
    const nodes = Array.from(document.querySelectorAll(itemSelector));
    if (!skeletonSelector) {
        return nodes.length;
    }
    return nodes.filter(
        (node) => !node.matches(skeletonSelector) && !node.querySelector(skeletonSelector)
    ).length;
}
"""

SCROLL_TO_BOTTOM = "() => window.scrollTo(0, document.body.scrollHeight)"


@dataclass
class LoadReport:
    """Outcome of the lazy-load scroll loop."""
    polls: int = 0
    final_count: int = 0
    stagnated: bool = False


@dataclass
class PageState:
    """What the readiness step found on the page."""
    selector: str
    consent_selector: Optional[str] = None
    load: Optional[LoadReport] = None


class PageReadyDetector:
    """
    Brings a navigated search page into an extractable state.

    All waits are bounded by the injected BrowserSettings. Only the item
    wait can fail the search (NoProductsFound); consent and lazy loading
    degrade to a log line.
    """

    def __init__(self, settings: BrowserSettings, log: Optional[logging.Logger] = None):
        self.settings = settings
        self.logger = log or logger

    def _raise_if_crashed(self, error: PlaywrightError):
        if is_browser_crash(error):
            raise BrowserCrashed(str(error)) from error

    async def dismiss_consent(self, page, selectors: Sequence[str]) -> Optional[str]:
        """
        Click the first consent button present on the page.

        Args:
            page: Playwright page
            selectors: Candidate button selectors in priority order

        Returns:
            The selector that was clicked, or None
        """
        if not selectors:
            return None

        # Give the banner time to render
        await asyncio.sleep(self.settings.consent_wait)

        for selector in selectors:
            try:
                button = await page.query_selector(selector)
            except PlaywrightError as e:
                self._raise_if_crashed(e)
                self.logger.debug(f"Consent selector {selector} failed: {e}")
                continue

            if button is None:
                continue

            try:
                await button.click(timeout=self.settings.consent_click_timeout * 1000)
            except PlaywrightError as e:
                self._raise_if_crashed(e)
                self.logger.warning(f"Consent button {selector} found but click failed: {e}")
                return None

            self.logger.info(f"Dismissed consent banner via {selector}")
            return selector

        self.logger.debug("No consent banner found")
        return None

    async def _wait_for(self, page, selector: str, timeout: float):
        try:
            await page.wait_for_selector(selector, timeout=timeout * 1000, state='attached')
        except PlaywrightTimeoutError as e:
            raise SelectorNotFound(f"'{selector}' did not appear within {timeout:.0f}s", selector=selector) from e
        except PlaywrightError as e:
            self._raise_if_crashed(e)
            raise SelectorNotFound(f"Waiting for '{selector}' failed: {e}", selector=selector) from e

    async def wait_for_items(self, page, primary: str, fallbacks: Sequence[str] = ()) -> str:
        """
        Wait for product cards, trying the primary selector first.

        Args:
            page: Playwright page
            primary: Primary item selector (waited for selector_timeout)
            fallbacks: Alternates (each waited for fallback_selector_timeout)

        Returns:
            The first selector that appeared

        Raises:
            NoProductsFound: If no selector appeared
        """
        candidates = [(primary, self.settings.selector_timeout)]
        candidates += [(selector, self.settings.fallback_selector_timeout) for selector in fallbacks]

        tried = []
        for selector, timeout in candidates:
            tried.append(selector)
            try:
                await self._wait_for(page, selector, timeout)
            except SelectorNotFound as e:
                self.logger.warning(f"Selector not found: {e.message}")
                continue

            if selector != primary:
                self.logger.info(f"Using fallback item selector {selector}")
            return selector

        raise NoProductsFound(f"No product items appeared after trying {len(tried)} selectors", selectors=tried)

    async def _count_items(self, page, item_selector: str, skeleton_selector: Optional[str]) -> int:
        return int(await page.evaluate(COUNT_LOADED_ITEMS, [item_selector, skeleton_selector]))

    async def load_all(self, page, item_selector: str, skeleton_selector: Optional[str] = None) -> LoadReport:
        """
        Scroll to the bottom until the number of loaded cards stops growing.

        Stops when two consecutive counts are equal or after
        max_scroll_rounds scrolls. A partially loaded set is accepted.

        Args:
            page: Playwright page
            item_selector: Selector counted after each scroll
            skeleton_selector: Cards containing this are still loading

        Returns:
            LoadReport with the number of polls and the last count
        """
        report = LoadReport()
        try:
            previous = await self._count_items(page, item_selector, skeleton_selector)
            report.polls = 1
            report.final_count = previous

            for _ in range(self.settings.max_scroll_rounds):
                await page.evaluate(SCROLL_TO_BOTTOM)
                await asyncio.sleep(self.settings.scroll_pause)

                current = await self._count_items(page, item_selector, skeleton_selector)
                report.polls += 1
                report.final_count = current
                if current == previous:
                    report.stagnated = True
                    break
                previous = current

        except PlaywrightError as e:
            self._raise_if_crashed(e)
            self.logger.warning(f"Lazy loading stopped early after {report.polls} polls: {e}")

        self.logger.info(
            f"Loaded {report.final_count} items after {report.polls} polls"
            f"{'' if report.stagnated else ' (scroll limit reached)'}"
        )
        return report

    async def prepare(self, page, site: SiteConfig) -> PageState:
        """
        Run consent dismissal, the item wait and lazy loading in order.

        Raises:
            NoProductsFound: If no item selector matched
        """
        consent = await self.dismiss_consent(page, site.consent_selectors)
        selector = await self.wait_for_items(page, site.item_selector, site.fallback_item_selectors)
        state = PageState(selector=selector, consent_selector=consent)
        if site.lazy_load:
            state.load = await self.load_all(page, selector, site.skeleton_selector)
        return state
