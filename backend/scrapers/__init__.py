"""
Playwright-based storefront scraper system for Fashion AI Search.

This module provides a unified search framework:
- One adapter per storefront (Vestiaire, Vinted, Farfetch, SSENSE)
- A stealth browser driver with guaranteed session release
- Page readiness (consent, item wait, lazy loading) and HTML extraction
- Concurrent fan-out with per-source ceilings
"""

from .base import BaseScraper
from .config import SITES, BrowserSettings, get_site_config, get_enabled_sites
from .models import FieldSelector, SiteConfig, ScrapedProduct, ScrapeResult
from .manager import ScraperManager, CandidateSet

__all__ = [
    'BaseScraper',
    'BrowserSettings',
    'FieldSelector',
    'SiteConfig',
    'ScrapedProduct',
    'ScrapeResult',
    'SITES',
    'get_site_config',
    'get_enabled_sites',
    'ScraperManager',
    'CandidateSet',
]
