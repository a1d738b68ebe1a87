"""
Farfetch scraper.

Site structure:
- Search page: `li[data-testid="productCard"]` cards, lazily rendered;
  cards still loading contain a `ProductCardSkeleton` component and are
  neither counted nor extracted
- Card parts are tagged with `data-component` (brand, description, price)
- Detail URLs contain `item-<id>`
"""

from ..base import BaseScraper
from ..config import get_site_config


class FarfetchScraper(BaseScraper):
    """Scraper for farfetch.com men's search."""

    def __init__(self, browser=None, crawler_factory=None, observer=None):
        config = get_site_config('farfetch')
        super().__init__(config, browser, crawler_factory, observer)
