"""
Pytest configuration and fixtures for Fashion AI Search tests.

Browser sessions are replaced by FakeCrawler/FakePage, which serve fixed
HTML and answer the page-ready evaluations from a scripted list of counts.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from api.main import app, get_pipeline, get_scraper_manager
from assistant.models import Classification, RankedPick
from assistant.pipeline import ShoppingPipeline
from scrapers.config import BrowserSettings
from scrapers.config import SITES
from scrapers.errors import BrowserCrashed, NavigationTimeout
from scrapers.manager import ScraperManager
from scrapers.page_ready import COUNT_LOADED_ITEMS, SCROLL_TO_BOTTOM


# ============================================================
# HTML FIXTURES
# ============================================================

VESTIAIRE_HTML = """
<html><body>
<ul class="product-search_catalog__flexContainer__d3ts_">
  <li>
    <a href="/women-clothing/jackets/saint-laurent/black-leather-jacket-12345.shtml">
      <img src="https://images.vestiairecollective.com/12345.jpg">
      <span data-cy="productCard__text__brand">Saint Laurent</span>
      <span data-cy="productCard__text__name">Black leather jacket</span>
      <span data-cy="productCard__text__size">M</span>
      <span data-cy="productCard__text__price">1.250,00&nbsp;€</span>
    </a>
  </li>
  <li>
    <a href="/men-clothing/jackets/acne-studios/leather-jacket-67890.shtml">
      <span data-cy="productCard__text__brand">Acne Studios</span>
      <span data-cy="productCard__text__name">Leather biker jacket</span>
      <span data-cy="productCard__text__price__discount">450 €</span>
      <span data-cy="productCard__text__price">600 €</span>
    </a>
  </li>
  <li>
    <a href="/journal/how-to-wear-leather/">Editorial</a>
  </li>
</ul>
</body></html>
"""

VINTED_HTML = """
<html><body>
<div class="feed-grid">
  <div class="new-item-box__container">
    <div class="new-item-box__image-container">
      <img class="web_ui_Image__content" data-testid="product-item-id-111--image--img" src="https://images.vinted.net/111.jpg">
    </div>
    <a class="new-item-box__overlay new-item-box__overlay--clickable"
       href="https://www.vinted.de/items/111-lederjacke-schwarz?referrer=catalog"
       title="Lederjacke schwarz, marke: Zara, größe: M, zustand: Sehr gut, 45,00 €, 48,00 € inkl."></a>
  </div>
  <div class="new-item-box__container">
    <div class="new-item-box__image-container">
      <img class="web_ui_Image__content" data-testid="product-item-id-222--image--img" src="https://images.vinted.net/222.jpg">
    </div>
    <a class="new-item-box__overlay new-item-box__overlay--clickable"
       href="https://www.vinted.de/items/222-bikerjacke?referrer=promoted"
       title="Bikerjacke, marke: Promo, größe: L, zustand: Neu, 99,00 €"></a>
  </div>
  <div class="new-item-box__container">
    <a class="new-item-box__overlay new-item-box__overlay--clickable"
       href="https://www.vinted.de/items/333-jacke?referrer=catalog"
       title="Jacke, marke: Mango, 20,00 €"></a>
  </div>
</div>
</body></html>
"""

FARFETCH_HTML = """
<html><body>
<ul>
  <li data-testid="productCard">
    <a data-component="ProductCardLink" href="/de/shopping/men/acne-studios-leather-jacket-item-18811234.aspx">
      <img data-component="ProductCardImagePrimary" src="https://cdn-images.farfetch-contents.com/18811234.jpg">
      <p data-component="ProductCardBrandName">Acne Studios</p>
      <p data-component="ProductCardDescription">Leather biker jacket</p>
      <p data-component="Price">1.450 €</p>
    </a>
  </li>
  <li data-testid="productCard">
    <div data-component="ProductCardSkeleton"></div>
  </li>
</ul>
</body></html>
"""

SSENSE_HTML = """
<html><body>
<div class="plp-products__column">
  <a href="/en-de/men/product/our-legacy/black-leather-jacket/14562381">
    <picture>
      <source media="(min-width: 2560px)" srcset="https://img.ssensemedia.com/large.jpg 1x, https://img.ssensemedia.com/large@2x.jpg 2x">
      <source srcset="https://img.ssensemedia.com/small.jpg">
      <img src="https://img.ssensemedia.com/fallback.jpg">
    </picture>
    <span data-test="productBrandName0">Our Legacy</span>
    <span data-test="productName0">Black Leather Jacket</span>
    <span data-test="productCurrentPrice0">€ 890</span>
  </a>
</div>
</body></html>
"""

HTML_BY_SOURCE = {
    'vestiaire': VESTIAIRE_HTML,
    'vinted': VINTED_HTML,
    'farfetch': FARFETCH_HTML,
    'ssense': SSENSE_HTML,
}


# ============================================================
# BROWSER FAKES
# ============================================================

class FakeElement:
    """Clickable element returned by FakePage.query_selector."""

    def __init__(self, error=None):
        self.clicks = 0
        self.error = error

    async def click(self, timeout=None):
        if self.error:
            raise self.error
        self.clicks += 1


class FakePage:
    """
    Minimal stand-in for a Playwright page.

    Args:
        html: Returned by content()
        present: Selectors that wait_for_selector finds
        elements: query_selector results by selector
        counts: Successive results of the item count evaluation
            (the last value repeats)
    """

    def __init__(self, html='', present=(), elements=None, counts=(1,)):
        self.html = html
        self.present = set(present)
        self.elements = elements or {}
        self.counts = list(counts)
        self.scrolls = 0
        self.waited = []

    async def query_selector(self, selector):
        return self.elements.get(selector)

    async def wait_for_selector(self, selector, timeout=None, state=None):
        self.waited.append(selector)
        if selector not in self.present:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector}")
        return FakeElement()

    async def evaluate(self, script, arg=None):
        if script == SCROLL_TO_BOTTOM:
            self.scrolls += 1
            return None
        if script == COUNT_LOADED_ITEMS:
            if len(self.counts) > 1:
                return self.counts.pop(0)
            return self.counts[0]
        raise AssertionError(f"Unexpected script: {script}")

    async def content(self):
        return self.html


class FakeCrawler:
    """Async context manager mimicking StealthCrawler for one page."""

    def __init__(self, page, navigation_error=None, delay=0.0):
        self.page = page
        self.navigation_error = navigation_error
        self.delay = delay
        self.entered = False
        self.exited = False
        self.visited = []

    async def __aenter__(self):
        self.entered = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.exited = True

    async def new_page(self):
        return self.page

    async def navigate(self, page, url, wait_until='domcontentloaded'):
        self.visited.append(url)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.navigation_error:
            raise self.navigation_error
        return None


def page_for(source, html=None, counts=(2,)):
    """A FakePage where the source's primary item selector is present."""
    config = SITES[source]
    return FakePage(
        html=HTML_BY_SOURCE[source] if html is None else html,
        present=[config.item_selector],
        counts=counts,
    )


class CrawlerPlan:
    """
    crawler_factory that hands out one FakeCrawler per source.

    The source is recognized from the search URL host on navigate; since
    the factory is called before navigation, the plan picks the crawler
    lazily from the URL.
    """

    def __init__(self, failing=(), slow=None, crash=()):
        self.failing = set(failing)
        self.slow = slow or {}
        self.crash = set(crash)
        self.crawlers = []

    def __call__(self, settings):
        plan = self

        class _Routed(FakeCrawler):
            async def navigate(self, page, url, wait_until='domcontentloaded'):
                source = plan.source_for(url)
                self.page = page_for(source)
                if source in plan.crash:
                    raise BrowserCrashed("Target closed")
                if source in plan.failing:
                    self.navigation_error = NavigationTimeout(f"Timed out loading {url}", url=url)
                self.delay = plan.slow.get(source, 0.0)
                return await super().navigate(page, url, wait_until)

            async def new_page(self):
                return _LazyPage(self)

        crawler = _Routed(None)
        self.crawlers.append(crawler)
        return crawler

    @staticmethod
    def source_for(url):
        for source in ('vestiaire', 'vinted', 'farfetch', 'ssense'):
            if source in url:
                return source
        raise AssertionError(f"Unknown URL {url}")


class _LazyPage:
    """Forwards to the page the routed crawler picked during navigate."""

    def __init__(self, crawler):
        self.crawler = crawler

    def __getattr__(self, name):
        return getattr(self.crawler.page, name)


@pytest.fixture
def fast_browser():
    """BrowserSettings without pauses and with short ceilings."""
    return BrowserSettings(
        navigation_timeout=1.0,
        selector_timeout=0.1,
        fallback_selector_timeout=0.1,
        consent_wait=0.0,
        consent_click_timeout=0.1,
        max_scroll_rounds=5,
        scroll_pause=0.0,
        extraction_allowance=1.0,
        cleanup_timeout=0.1,
    )


@pytest.fixture
def crawler_plan():
    return CrawlerPlan()


# ============================================================
# COLLABORATOR STUBS
# ============================================================

class StubRewriter:
    def __init__(self, term='black leather jacket', error=None):
        self.term = term
        self.error = error
        self.calls = []

    async def rewrite(self, query):
        self.calls.append(query)
        if self.error:
            raise self.error
        return self.term


class StubClassifier:
    def __init__(self, classification=None, error=None):
        self.classification = classification or Classification(
            category='jacket', brand='', model='', color='black', collaboration=''
        )
        self.error = error
        self.calls = []

    async def classify(self, term):
        self.calls.append(term)
        if self.error:
            raise self.error
        return self.classification


class StubRanker:
    def __init__(self, picks=None, error=None):
        self.picks = picks or []
        self.error = error
        self.calls = []

    async def rank(self, classification, candidates):
        self.calls.append((classification, candidates))
        if self.error:
            raise self.error
        return [RankedPick(source=s, id=i) for s, i in self.picks]


@pytest.fixture
def stub_pipeline(fast_browser, crawler_plan):
    """ShoppingPipeline over stub collaborators and fake browsers."""
    return ShoppingPipeline(
        rewriter=StubRewriter(),
        classifier=StubClassifier(),
        ranker=StubRanker(picks=[('vestiaire', 0), ('ssense', 0), ('vinted', 99)]),
        scraper_factory=lambda: ScraperManager(fast_browser, crawler_factory=crawler_plan),
    )


@pytest.fixture(scope="function")
def client(stub_pipeline, fast_browser, crawler_plan):
    """Create a test client with pipeline and scraper overrides."""
    app.dependency_overrides[get_pipeline] = lambda: stub_pipeline
    app.dependency_overrides[get_scraper_manager] = lambda: ScraperManager(
        fast_browser, crawler_factory=crawler_plan
    )

    test_client = TestClient(app)
    yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def html_pages():
    """Rendered search page HTML per source."""
    return HTML_BY_SOURCE


@pytest.fixture
def make_page():
    """Factory for FakePage instances."""
    return FakePage


@pytest.fixture
def make_crawler():
    """Factory for FakeCrawler instances."""
    return FakeCrawler


@pytest.fixture
def source_page():
    """Factory for a FakePage serving a source's fixture HTML."""
    return page_for


@pytest.fixture
def make_element():
    """Factory for FakeElement instances."""
    return FakeElement
