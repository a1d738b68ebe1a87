"""
Tests for selector chains, normalizers and the product extractor.
"""

import pytest
from bs4 import BeautifulSoup

from scrapers.config import SITES
from scrapers.errors import ExtractionFieldMissing
from scrapers.extractor import PLACEHOLDERS, ProductExtractor, first_match, read_selector
from scrapers.models import FieldSelector, SiteConfig
from scrapers.utils import (
    absolute_url,
    clean_text,
    derive_external_id,
    extract_euro_price,
    extract_labeled_value,
    first_srcset_url,
    normalize_price,
)


def card(html):
    return BeautifulSoup(html, 'html.parser').find()


class TestUtilities:
    """Test the pure text and URL helpers."""

    def test_derive_external_id(self):
        pattern = r'(\d+)\.shtml'
        url = 'https://de.vestiairecollective.com/jacke-12345.shtml'
        assert derive_external_id(url, pattern) == '12345'
        assert derive_external_id(url, pattern) == derive_external_id(url, pattern)
        assert derive_external_id('https://de.vestiairecollective.com/journal/', pattern) is None
        assert derive_external_id(None, pattern) is None

    def test_first_srcset_url(self):
        assert first_srcset_url('https://img/a.jpg 1x, https://img/b.jpg 2x') == 'https://img/a.jpg'
        assert first_srcset_url('https://img/a.jpg') == 'https://img/a.jpg'
        assert first_srcset_url('') is None

    def test_euro_price_and_labels(self):
        assert extract_euro_price('Jacke, 1.250,00 €') == '1.250,00 €'
        assert extract_euro_price('12,50€ inkl.') == '12,50 €'
        assert extract_euro_price('no price') is None
        assert extract_labeled_value('Jacke, marke: Zara, größe: M', 'marke') == 'Zara'
        assert extract_labeled_value('Jacke, größe: M', 'zustand') is None

    def test_normalizers(self):
        assert clean_text('  Saint\xa0Laurent \n') == 'Saint Laurent'
        assert normalize_price('€ 450') == '€450'
        assert normalize_price('  89,00\xa0€ ') == '89,00 €'
        assert normalize_price('') is None
        assert absolute_url('https://www.ssense.com/', '//img.ssense.com/a.jpg') == 'https://img.ssense.com/a.jpg'
        assert absolute_url('https://www.ssense.com/', 'javascript:void(0)') is None


class TestSelectorChains:
    """Test field selector fallback order."""

    def test_first_non_empty_candidate_wins(self):
        node = card('<li><span class="a"> </span><span class="b">Acne</span><span class="c">Other</span></li>')
        value, candidate = first_match(
            node, [FieldSelector('.a'), FieldSelector('.b'), FieldSelector('.c')], 'brand'
        )
        assert value == 'Acne'
        assert candidate.css == '.b'

    def test_attribute_and_self_selectors(self):
        node = card('<a href="/items/1" title="Jacke"><img srcset="https://i/1.jpg 1x, https://i/2.jpg 2x"></a>')
        assert read_selector(node, FieldSelector('', 'href')) == '/items/1'
        assert read_selector(node, FieldSelector('img', 'srcset')) == 'https://i/1.jpg'
        assert read_selector(node, FieldSelector('img', 'src')) is None

    def test_no_candidate_raises_field_missing(self):
        node = card('<li></li>')
        with pytest.raises(ExtractionFieldMissing) as excinfo:
            first_match(node, [FieldSelector('.x'), FieldSelector('.y', 'title')], 'name')
        assert excinfo.value.field_name == 'name'
        assert excinfo.value.candidates == ['.x', '.y@title']


class TestProductExtractor:
    """Test card extraction against a minimal site configuration."""

    @pytest.fixture
    def config(self):
        return SiteConfig(
            key='shop',
            name='Shop',
            base_url='https://shop.example/',
            search_url='https://shop.example/search?q={term}',
            item_selector='li.card',
            id_pattern=r'/p/(\d+)',
            skeleton_selector='.skeleton',
            fields={
                'link': [FieldSelector('a', 'href')],
                'name': [FieldSelector('.name')],
                'brand': [FieldSelector('.brand')],
                'price': [FieldSelector('.sale'), FieldSelector('.price')],
            },
        )

    def test_placeholders_and_validity(self, config):
        html = """
        <ul>
          <li class="card"><a href="/p/1">x</a><span class="name">Coat</span>
              <span class="brand">Aspesi</span><span class="price">300 €</span></li>
          <li class="card"><a href="/p/2">x</a></li>
          <li class="card"><a href="/about">x</a><span class="name">Not a product</span></li>
          <li class="card"><div class="skeleton"></div></li>
        </ul>
        """
        report = ProductExtractor(config).extract(html)

        assert len(report.records) == 3
        assert [p.external_id for p in report.valid] == ['1', '2']

        full, sparse, invalid = report.records
        assert full.name == 'Coat'
        assert full.price == '300 €'
        assert full.detail_url == 'https://shop.example/p/1'
        assert sparse.name == PLACEHOLDERS['name']
        assert sparse.brand == PLACEHOLDERS['brand']
        assert sparse.price == PLACEHOLDERS['price']
        assert sparse.size is None
        assert invalid.external_id == 'unknown-2'
        assert invalid.is_valid is False

        stats = report.stats.to_dict()
        assert stats['cards'] == 4
        assert stats['skeletons'] == 1
        assert stats['with_valid_id'] == 2
        assert stats['missing']['name'] == 1

    def test_fallback_price_selector_counted(self, config):
        html = '<li class="card"><a href="/p/9">x</a><span class="sale">99 €</span><span class="price">120 €</span></li>'
        report = ProductExtractor(config).extract(html)
        assert report.valid[0].price == '99 €'
        assert report.stats.to_dict()['selector_hits']['price'] == {'.sale': 1}

    def test_card_failure_becomes_error_record(self, config):
        class Broken(ProductExtractor):
            def read_card(self, card, stats):
                raise RuntimeError("boom")

        report = Broken(config).extract('<li class="card"></li>')
        assert report.records[0].external_id == 'error-0'
        assert report.valid == []
        assert report.stats.card_errors == 1

    def test_extract_is_repeatable(self, html_pages):
        """The same HTML always yields the same ids."""
        extractor = ProductExtractor(SITES['vestiaire'])
        first = [p.external_id for p in extractor.extract(html_pages["vestiaire"]).valid]
        second = [p.external_id for p in extractor.extract(html_pages["vestiaire"]).valid]
        assert first == second == ['12345', '67890']
