"""
Base class for the storefront search adapters.

This module defines the adapter lifecycle shared by every site:
acquire a browser session, navigate to the search page, make it ready,
extract the product cards and release the session.
"""

from typing import Any, Callable, List, Optional, Type
from datetime import datetime, timezone
from urllib.parse import quote_plus
import logging

from playwright.async_api import Error as PlaywrightError

from .config import BrowserSettings
from .crawlers.stealth import StealthCrawler, is_browser_crash
from .errors import BrowserCrashed, ExtractionError, ScraperError
from .extractor import ProductExtractor
from .models import ScrapedProduct, ScrapeResult, SiteConfig
from .observer import ScrapeObserver
from .page_ready import PageReadyDetector

logger = logging.getLogger(__name__)

# ANSI color codes for terminal output
class Colors:
    """ANSI color codes for colorized logging."""
    RESET = '\033[0m'
    BOLD = '\033[1m'

    # Colors
    GREEN = '\033[92m'
    RED = '\033[91m'
    CYAN = '\033[96m'

    @staticmethod
    def green(text):
        return f"{Colors.GREEN}{text}{Colors.RESET}"

    @staticmethod
    def red(text):
        return f"{Colors.RED}{text}{Colors.RESET}"

    @staticmethod
    def cyan(text):
        return f"{Colors.CYAN}{text}{Colors.RESET}"

    @staticmethod
    def bold(text):
        return f"{Colors.BOLD}{text}{Colors.RESET}"


# Anything usable as `async with factory(settings) as session`
CrawlerFactory = Callable[[BrowserSettings], Any]


class BaseScraper:
    """
    Base class for all storefront search adapters.

    Subclasses usually only bind a SiteConfig. Sites with unusual card
    markup set extractor_class to a ProductExtractor subclass.

    search() never raises for expected failures (navigation timeout,
    missing selectors, no products, unparseable page). Those end up as an
    empty list plus diagnostics in self.result. Browser crashes propagate.
    """

    extractor_class: Type[ProductExtractor] = ProductExtractor

    def __init__(
        self,
        config: SiteConfig,
        browser: Optional[BrowserSettings] = None,
        crawler_factory: Optional[CrawlerFactory] = None,
        observer: Optional[ScrapeObserver] = None,
    ):
        """
        Initialize the adapter.

        Args:
            config: Site configuration
            browser: Browser and timeout settings
            crawler_factory: Builds the browser session (StealthCrawler by default)
            observer: Receives stage and result events
        """
        self.config = config
        self.browser = browser or BrowserSettings()
        self.crawler_factory = crawler_factory or StealthCrawler
        self.observer = observer or ScrapeObserver()
        # Child loggers of 'scraper' share the handlers configured in api/main.py
        self.logger = logging.getLogger(f"scraper.{config.key}")
        self.page_ready = PageReadyDetector(self.browser, self.logger)
        self.extractor = self.extractor_class(config, self.logger)
        self.result = ScrapeResult(
            source=config.key,
            search_term='',
            started_at=datetime.now(timezone.utc)
        )

    @property
    def ceiling_seconds(self) -> float:
        """Upper bound for one search() call."""
        return self.browser.ceiling_for(self.config)

    def build_search_url(self, search_term: str) -> str:
        return self.config.search_url.format(term=quote_plus(search_term.strip()))

    def _set_stage(self, stage: str):
        self.result.stage = stage
        self.observer.on_stage(self.result, stage)

    async def _read_content(self, page) -> str:
        try:
            return await page.content()
        except PlaywrightError as e:
            if is_browser_crash(e):
                raise BrowserCrashed(str(e)) from e
            raise ExtractionError(f"Could not read rendered page: {e}") from e

    async def _scrape(self, search_term: str) -> List[ScrapedProduct]:
        url = self.build_search_url(search_term)
        self.result.url = url

        self._set_stage('acquire')
        async with self.crawler_factory(self.browser) as session:
            self._set_stage('navigate')
            page = await session.new_page()
            await session.navigate(page, url, wait_until=self.config.wait_until)

            self._set_stage('page_ready')
            state = await self.page_ready.prepare(page, self.config)
            self.result.selector_used = state.selector
            self.result.consent_selector = state.consent_selector
            if state.load:
                self.result.load_polls = state.load.polls

            html = await self._read_content(page)

        # The browser is released before parsing
        self._set_stage('extract')
        try:
            report = self.extractor.extract(html, state.selector)
        except Exception as e:
            raise ExtractionError(f"Could not parse rendered page: {e}") from e

        self.result.total = len(report.records)
        self.result.valid = len(report.valid)
        self.result.selector_stats = report.stats.to_dict()
        self.logger.debug(f"Selector stats: {self.result.selector_stats}")

        products = report.valid[:self.browser.max_products]
        self.result.returned = len(products)
        self.observer.on_extracted(self.result, report)
        self._set_stage('done')
        return products

    async def search(self, search_term: str) -> List[ScrapedProduct]:
        """
        Search the storefront and return its valid products.

        Args:
            search_term: Retailer search term (URL-encoded here)

        Returns:
            Up to max_products records, in page order; [] on expected failures
        """
        self.result = ScrapeResult(
            source=self.config.key,
            search_term=search_term,
            started_at=datetime.now(timezone.utc)
        )
        self.logger.info(f"{Colors.cyan('❯❯❯')} Searching {Colors.bold(self.config.name)} for '{search_term}'")

        try:
            products = await self._scrape(search_term)
        except ScraperError as e:
            stage = e.stage or self.result.stage
            self.result.record_error({
                'source': self.config.key,
                'search_term': search_term,
                **e.to_dict(),
                'stage': stage,
            })
            self.result.completed_at = datetime.now(timezone.utc)
            self.logger.warning(
                f"   {Colors.red('[ERR]')} {self.config.name} '{search_term}' failed at {stage}: {e.message}"
            )
            self.observer.on_failed(self.result, e)
            return []

        self.result.completed_at = datetime.now(timezone.utc)
        duration = self.result.duration_seconds or 0
        self.logger.info(
            f"   {Colors.green('[OK]')} {self.config.name}: {self.result.returned} products "
            f"({self.result.valid} valid of {self.result.total}) in {duration:.1f}s"
        )
        return products
