"""Per-site scraper implementations."""

from .vestiaire import VestiaireScraper
from .vinted import VintedScraper
from .farfetch import FarfetchScraper
from .ssense import SSENSEScraper

__all__ = ['VestiaireScraper', 'VintedScraper', 'FarfetchScraper', 'SSENSEScraper']
