"""
Scraper error taxonomy.

Everything deriving from ScraperError is an expected operating failure:
a source adapter converts it into an empty result plus a diagnostic.
BrowserCrashed is process-level and is allowed to propagate.
"""

from typing import Optional, Sequence


class ScraperError(Exception):
    """Base class for recoverable scraping failures."""

    def __init__(self, message: str, stage: Optional[str] = None, selector: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.selector = selector

    def to_dict(self) -> dict:
        return {
            'type': type(self).__name__,
            'stage': self.stage,
            'selector': self.selector,
            'error': self.message,
        }


class NavigationTimeout(ScraperError):
    """Navigation did not complete (timeout, network error or HTTP error status)."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message, stage='navigate')
        self.url = url


class SelectorNotFound(ScraperError):
    """A selector the page-ready step depends on never appeared."""

    def __init__(self, message: str, selector: Optional[str] = None, stage: str = 'page_ready'):
        super().__init__(message, stage=stage, selector=selector)


class NoProductsFound(ScraperError):
    """Neither the primary item selector nor any fallback matched."""

    def __init__(self, message: str, selectors: Sequence[str] = ()):
        selectors = list(selectors)
        super().__init__(message, stage='page_ready', selector=', '.join(selectors) or None)
        self.selectors = selectors


class ExtractionError(ScraperError):
    """The rendered page could not be turned into records at all."""

    def __init__(self, message: str):
        super().__init__(message, stage='extract')


class ExtractionFieldMissing(Exception):
    """
    No candidate selector yielded a value for a field.

    Raised per field and absorbed by the extractor, which substitutes
    the field placeholder.
    """

    def __init__(self, field_name: str, candidates: Sequence[str] = ()):
        super().__init__(f"No selector matched for field '{field_name}'")
        self.field_name = field_name
        self.candidates = list(candidates)


class BrowserCrashed(Exception):
    """The browser process or its connection died."""
