"""
SSENSE scraper.

Site structure:
- Search page: `div.plp-products__column` cards
- Images are responsive `<picture>` sources; the 2560px source is
  preferred, then any source, then the plain `img`
- The product id is the last segment of the detail URL
"""

from ..base import BaseScraper
from ..config import get_site_config


class SSENSEScraper(BaseScraper):
    """Scraper for ssense.com men's search."""

    def __init__(self, browser=None, crawler_factory=None, observer=None):
        config = get_site_config('ssense')
        super().__init__(config, browser, crawler_factory, observer)
