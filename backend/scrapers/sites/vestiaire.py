"""
Vestiaire Collective scraper.

Site structure:
- Search page: `li` cards inside the catalog flex container; class names
  carry build hashes, so three fallback card selectors are configured
- Card text is tagged with `data-cy` attributes (brand, name, size, price)
- Detail URLs end in `<id>.shtml`
- A TrustCommander popin (`#popin_tc_privacy_button_2`) shows before
  the generic consent banners
"""

from ..base import BaseScraper
from ..config import get_site_config


class VestiaireScraper(BaseScraper):
    """Scraper for de.vestiairecollective.com search."""

    def __init__(self, browser=None, crawler_factory=None, observer=None):
        config = get_site_config('vestiaire')
        super().__init__(config, browser, crawler_factory, observer)
