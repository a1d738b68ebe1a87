"""
Site configurations for the fashion storefront sources.

Each site has a SiteConfig that defines:
- The search URL template and base URL
- Item selectors (primary plus fallbacks) and per-field selector chains
- Consent banner selectors and the id pattern for detail URLs

BrowserSettings holds the browser and timing knobs. It is built once by
the caller and handed to every adapter explicitly.
"""

from dataclasses import dataclass, field
from typing import List

from .models import FieldSelector, SiteConfig


# ============================================================
# BROWSER SETTINGS
# ============================================================

DEFAULT_USER_AGENT = (
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36'
)

DEFAULT_LAUNCH_ARGS = [
    '--disable-blink-features=AutomationControlled',
    '--disable-dev-shm-usage',
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-background-timer-throttling',
    '--disable-backgrounding-occluded-windows',
    '--disable-renderer-backgrounding',
    '--disable-gpu',
]


@dataclass
class BrowserSettings:
    """Browser, timeout and lazy-load settings for one adapter run (seconds)."""
    headless: bool = True
    user_agent: str = DEFAULT_USER_AGENT
    viewport_width: int = 1280
    viewport_height: int = 800
    locale: str = 'de-DE'
    timezone_id: str = 'Europe/Berlin'
    accept_language: str = 'de-DE,de;q=0.9,en-US;q=0.8,en;q=0.7'
    launch_args: List[str] = field(default_factory=lambda: list(DEFAULT_LAUNCH_ARGS))

    navigation_timeout: float = 60.0
    selector_timeout: float = 30.0
    fallback_selector_timeout: float = 10.0
    consent_wait: float = 2.0
    consent_click_timeout: float = 5.0
    max_scroll_rounds: int = 15
    scroll_pause: float = 2.0
    extraction_allowance: float = 10.0
    cleanup_timeout: float = 2.0

    max_products: int = 40

    def ceiling_for(self, site: SiteConfig) -> float:
        """
        Worst-case wall-clock duration of one search against a site.

        Sums navigation, consent handling, every selector wait, the full
        scroll budget, extraction and browser release.
        """
        ceiling = self.navigation_timeout
        if site.consent_selectors:
            ceiling += self.consent_wait + self.consent_click_timeout
        ceiling += self.selector_timeout
        ceiling += self.fallback_selector_timeout * len(site.fallback_item_selectors)
        if site.lazy_load:
            # One extra second per round for the scroll and count evaluations
            ceiling += self.max_scroll_rounds * (self.scroll_pause + 1.0)
        ceiling += self.extraction_allowance
        ceiling += self.cleanup_timeout * 4
        return ceiling

    @classmethod
    def from_settings(cls, settings) -> 'BrowserSettings':
        """Build from the application Settings object."""
        return cls(
            headless=settings.scraper_headless,
            user_agent=settings.scraper_user_agent,
            viewport_width=settings.scraper_viewport_width,
            viewport_height=settings.scraper_viewport_height,
            locale=settings.scraper_locale,
            timezone_id=settings.scraper_timezone,
            accept_language=settings.scraper_accept_language,
            navigation_timeout=settings.scraper_navigation_timeout,
            selector_timeout=settings.scraper_selector_timeout,
            fallback_selector_timeout=settings.scraper_fallback_selector_timeout,
            consent_wait=settings.scraper_consent_wait,
            max_scroll_rounds=settings.scraper_max_scroll_rounds,
            scroll_pause=settings.scraper_scroll_pause,
            max_products=settings.scraper_max_products,
        )


# ============================================================
# CONSENT BANNERS
# ============================================================

# OneTrust and the common hand-rolled banners, tried in order
COMMON_CONSENT_SELECTORS = [
    '#onetrust-accept-btn-handler',
    '.cookie-banner button[aria-label="accept cookies"]',
    'button[data-cy="cookie-banner-accept"]',
    'button[data-cy="cookie-banner-accept-all"]',
    'button.accept-cookies',
    'button.accept-all-cookies',
    '#accept-cookies',
    '#accept-all-cookies',
]


# ============================================================
# SITE CONFIGURATIONS
# ============================================================

SITES = {
    'vestiaire': SiteConfig(
        key='vestiaire',
        name='Vestiaire Collective',
        base_url='https://de.vestiairecollective.com/',
        search_url='https://de.vestiairecollective.com/search/?q={term}&pageSize=96',
        item_selector='.product-search_catalog__flexContainer__d3ts_ li',
        fallback_item_selectors=[
            '.product-card_productCard__sGjCz',
            '.product-search_catalog__resultContainer__xKWF9 ul li',
            '[data-cy^="catalog__productCard__"]',
        ],
        consent_selectors=['#popin_tc_privacy_button_2'] + COMMON_CONSENT_SELECTORS,
        id_pattern=r'(\d+)\.shtml',
        fields={
            'link': [FieldSelector('a[href]', 'href')],
            'image': [FieldSelector('img', 'src'), FieldSelector('img', 'data-src')],
            'brand': [FieldSelector('[data-cy="productCard__text__brand"]')],
            'name': [FieldSelector('[data-cy="productCard__text__name"]')],
            'price': [
                FieldSelector('[data-cy="productCard__text__price__discount"]'),
                FieldSelector('[data-cy^="productCard__text__price"]'),
            ],
            'size': [FieldSelector('[data-cy="productCard__text__size"]')],
        },
        default_condition='used',
    ),

    'vinted': SiteConfig(
        key='vinted',
        name='Vinted',
        base_url='https://www.vinted.de/',
        search_url='https://www.vinted.de/catalog?search_text={term}',
        item_selector='a.new-item-box__overlay.new-item-box__overlay--clickable',
        consent_selectors=list(COMMON_CONSENT_SELECTORS),
        id_pattern=r'/items/(\d+)',
        # Card text lives in the anchor's title attribute, see sites/vinted.py
        fields={
            'link': [FieldSelector('', 'href')],
            'title': [FieldSelector('', 'title')],
        },
    ),

    'farfetch': SiteConfig(
        key='farfetch',
        name='Farfetch',
        base_url='https://www.farfetch.com/',
        search_url='https://www.farfetch.com/de/shopping/men/search/items.aspx?q={term}',
        item_selector='li[data-testid="productCard"]',
        skeleton_selector='[data-component="ProductCardSkeleton"]',
        consent_selectors=list(COMMON_CONSENT_SELECTORS),
        id_pattern=r'item-(\d+)',
        fields={
            'link': [FieldSelector('a[data-component="ProductCardLink"]', 'href'), FieldSelector('a[href]', 'href')],
            'image': [FieldSelector('img[data-component="ProductCardImagePrimary"]', 'src'), FieldSelector('img', 'src')],
            'brand': [FieldSelector('p[data-component="ProductCardBrandName"]')],
            'name': [FieldSelector('p[data-component="ProductCardDescription"]')],
            'price': [FieldSelector('p[data-component="Price"]'), FieldSelector('p[data-component="PriceFinal"]')],
        },
    ),

    'ssense': SiteConfig(
        key='ssense',
        name='SSENSE',
        base_url='https://www.ssense.com/',
        search_url='https://www.ssense.com/en-de/men?q={term}',
        item_selector='div.plp-products__column',
        consent_selectors=list(COMMON_CONSENT_SELECTORS),
        # Last path segment of /<locale>/<gender>/product/<brand>/<slug>/<id>
        id_pattern=r'/product/(?:[^/?#]+/)*([^/?#]+)/?(?:[?#].*)?$',
        fields={
            'link': [FieldSelector('a[href]', 'href')],
            'image': [
                FieldSelector('picture source[media="(min-width: 2560px)"]', 'srcset'),
                FieldSelector('picture source', 'srcset'),
                FieldSelector('img', 'src'),
            ],
            'brand': [FieldSelector('span[data-test^="productBrandName"]')],
            'name': [FieldSelector('span[data-test^="productName"]')],
            'price': [FieldSelector('span[data-test^="productCurrentPrice"]')],
        },
    ),
}


# ============================================================
# HELPER FUNCTIONS
# ============================================================

def get_site_config(site_key: str) -> SiteConfig:
    """
    Get configuration for a site by its key.

    Args:
        site_key: Site identifier (e.g., 'vinted', 'ssense')

    Returns:
        SiteConfig for the site

    Raises:
        ValueError: If site_key is not found
    """
    if site_key not in SITES:
        valid_keys = ', '.join(sorted(SITES.keys()))
        raise ValueError(f"Unknown site: '{site_key}'. Valid sites: {valid_keys}")
    return SITES[site_key]


def get_enabled_sites() -> dict:
    """Get all enabled sites."""
    return {k: v for k, v in SITES.items() if v.enabled}


def get_site_summary() -> list:
    """Get a summary of all sites for display."""
    summary = []
    for key, config in SITES.items():
        summary.append({
            'key': key,
            'name': config.name,
            'enabled': config.enabled,
            'url': config.search_url,
        })
    return summary
