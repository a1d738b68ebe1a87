"""Browser driver implementations."""

from .stealth import StealthCrawler, is_browser_crash

__all__ = ['StealthCrawler', 'is_browser_crash']
