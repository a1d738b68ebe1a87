"""
Scraper Manager - fans a search term out to all storefront adapters.

Provides a unified interface for searching one site or all enabled sites
concurrently. Every adapter runs in its own task with its own browser
session and wall-clock ceiling; a failing or slow source degrades to an
empty list without affecting the others.
"""

import asyncio
from typing import Dict, List, Optional, Type
from datetime import datetime, timezone
import logging

from .base import BaseScraper, Colors, CrawlerFactory
from .config import SITES, BrowserSettings, get_enabled_sites
from .models import ScrapedProduct, ScrapeResult
from .observer import ScrapeObserver

from .sites.vestiaire import VestiaireScraper
from .sites.vinted import VintedScraper
from .sites.farfetch import FarfetchScraper
from .sites.ssense import SSENSEScraper

logger = logging.getLogger(__name__)


# Registry of implemented scrapers
SCRAPER_REGISTRY: Dict[str, Type[BaseScraper]] = {
    'vestiaire': VestiaireScraper,
    'vinted': VintedScraper,
    'farfetch': FarfetchScraper,
    'ssense': SSENSEScraper,
}

# Products per source key, each list in page order
CandidateSet = Dict[str, List[ScrapedProduct]]


class ScraperManager:
    """
    Manages and orchestrates all storefront adapters.

    Usage:
        manager = ScraperManager(BrowserSettings())

        # Search a single site
        products = await manager.search_site('vinted', 'lederjacke schwarz')

        # Search all enabled sites concurrently
        candidates = await manager.search_all('lederjacke schwarz')

        # Diagnostics for the last run
        summary = manager.get_results_summary()
    """

    def __init__(
        self,
        browser: Optional[BrowserSettings] = None,
        crawler_factory: Optional[CrawlerFactory] = None,
        observer: Optional[ScrapeObserver] = None,
        site_keys: Optional[List[str]] = None,
        stage_timeout: Optional[float] = None,
    ):
        """
        Initialize the scraper manager.

        Args:
            browser: Settings handed to every adapter
            crawler_factory: Browser session factory (StealthCrawler by default)
            observer: Receives adapter events
            site_keys: Sources to search (defaults to all enabled)
            stage_timeout: Bound for a whole search_all() call in seconds
        """
        self.browser = browser or BrowserSettings()
        self.crawler_factory = crawler_factory
        self.observer = observer
        self.site_keys = site_keys
        self.stage_timeout = stage_timeout
        self.results: Dict[str, ScrapeResult] = {}

    def get_scraper(self, site_key: str) -> Optional[BaseScraper]:
        """
        Get a fresh adapter instance for a site.

        Args:
            site_key: Site identifier (e.g., 'vinted')

        Returns:
            Adapter instance or None if not implemented
        """
        if site_key not in SCRAPER_REGISTRY:
            logger.warning(f"Scraper not implemented for site: {site_key}")
            return None

        scraper_class = SCRAPER_REGISTRY[site_key]
        return scraper_class(self.browser, self.crawler_factory, self.observer)

    def resolve_site_keys(self, site_keys: Optional[List[str]] = None) -> List[str]:
        """Pick the sources to search, keeping only implemented ones."""
        if site_keys is None:
            site_keys = self.site_keys
        if site_keys is None:
            site_keys = list(get_enabled_sites().keys())

        resolved = []
        for key in site_keys:
            if key in SCRAPER_REGISTRY:
                resolved.append(key)
            else:
                logger.warning(f"Skipping unknown source: {key}")
        return resolved

    def _failed_result(self, site_key: str, search_term: str, error: str, stage: str = 'init') -> ScrapeResult:
        now = datetime.now(timezone.utc)
        result = ScrapeResult(
            source=site_key,
            search_term=search_term,
            started_at=now,
            completed_at=now,
            stage=stage,
        )
        result.record_error({'source': site_key, 'search_term': search_term, 'stage': stage, 'error': error})
        return result

    async def search_site(self, site_key: str, search_term: str) -> List[ScrapedProduct]:
        """
        Search a single site, bounded by the adapter's ceiling.

        Args:
            site_key: Site identifier
            search_term: Retailer search term

        Returns:
            The adapter's products, or [] if it failed or ran out of time
        """
        scraper = self.get_scraper(site_key)
        if not scraper:
            self.results[site_key] = self._failed_result(
                site_key, search_term, f'Scraper not implemented for {site_key}'
            )
            return []

        ceiling = scraper.ceiling_seconds
        try:
            products = await asyncio.wait_for(scraper.search(search_term), timeout=ceiling)
        except asyncio.TimeoutError:
            result = scraper.result
            result.record_error({
                'source': site_key,
                'search_term': search_term,
                'type': 'Timeout',
                'stage': result.stage,
                'error': f'Exceeded {ceiling:.0f}s ceiling',
            })
            result.completed_at = datetime.now(timezone.utc)
            logger.warning(f"{Colors.red('[TIMEOUT]')} {site_key} exceeded {ceiling:.0f}s during {result.stage}")
            products = []

        self.results[site_key] = scraper.result
        return products

    async def search_all(self, search_term: str, site_keys: Optional[List[str]] = None) -> CandidateSet:
        """
        Search several sites concurrently and wait for every one to settle.

        Args:
            search_term: Retailer search term
            site_keys: Sites to search (defaults to the manager's selection)

        Returns:
            Dictionary mapping site_key to its product list (possibly empty)
        """
        keys = self.resolve_site_keys(site_keys)
        self.results = {}
        logger.info(f"Searching {len(keys)} sites for '{search_term}': {keys}")
        if not keys:
            return {}

        tasks = [
            asyncio.create_task(self.search_site(key, search_term), name=f"search:{key}")
            for key in keys
        ]
        try:
            _, pending = await asyncio.wait(tasks, timeout=self.stage_timeout)
            for task in pending:
                task.cancel()
            outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            # Caller cancelled us: do not leave browsers running
            for task in tasks:
                if not task.done():
                    task.cancel()

        candidates: CandidateSet = {}
        for key, outcome in zip(keys, outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError) and self.stage_timeout:
                    error = f'Cancelled after {self.stage_timeout:g}s stage timeout'
                else:
                    error = f'{type(outcome).__name__}: {outcome}'
                logger.error(f"{Colors.red('[ERR]')} {key} search failed: {error}")
                previous = self.results.get(key)
                self.results[key] = self._failed_result(
                    key, search_term, error, stage=previous.stage if previous else 'init'
                )
                candidates[key] = []
            else:
                candidates[key] = outcome

        counts = ', '.join(f"{key}={len(products)}" for key, products in candidates.items())
        logger.info(f"Search complete for '{search_term}': {counts}")
        return candidates

    def list_scrapers(self) -> List[Dict]:
        """
        List all configured sites and their implementation status.

        Returns:
            List of site info dictionaries
        """
        scrapers = []
        for key, config in SITES.items():
            scrapers.append({
                'key': key,
                'name': config.name,
                'enabled': config.enabled,
                'implemented': key in SCRAPER_REGISTRY,
                'url': config.search_url,
            })
        return scrapers

    def get_implemented_scrapers(self) -> List[str]:
        """Get list of implemented scraper keys."""
        return list(SCRAPER_REGISTRY.keys())

    def get_results_summary(self) -> Dict:
        """
        Get summary of the last search results.

        Returns:
            Summary dictionary with totals
        """
        if not self.results:
            return {
                'total_sites': 0,
                'successful': 0,
                'failed': 0,
                'total_products': 0,
            }

        successful = sum(1 for r in self.results.values() if r.success)
        failed = len(self.results) - successful

        return {
            'total_sites': len(self.results),
            'successful': successful,
            'failed': failed,
            'total_products': sum(r.returned for r in self.results.values()),
            'sites': {k: v.to_dict() for k, v in self.results.items()},
        }
