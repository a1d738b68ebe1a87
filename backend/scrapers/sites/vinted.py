"""
Vinted scraper.

Vinted renders each product card as an overlay anchor whose `title`
attribute holds all card text in one string, e.g.:

    "Lederjacke schwarz, marke: Zara, größe: M, zustand: Sehr gut, 45,00 €, 48,00 € inkl."

Site structure:
- Search page: `a.new-item-box__overlay--clickable` anchors
- Sponsored cards link without `?referrer=catalog` and are skipped
- Images live in the surrounding `.new-item-box__container`
- Detail URLs look like `/items/<id>-<slug>`
"""

import re
from typing import Dict, Optional

from bs4 import Tag

from ..base import BaseScraper
from ..config import get_site_config
from ..extractor import ProductExtractor, SelectorStats
from ..utils.extractors import derive_external_id, extract_euro_price, extract_labeled_value
from ..utils.normalizers import absolute_url, clean_text


CATALOG_REFERRER = 'referrer=catalog'
PRODUCT_IMAGE_SELECTOR = 'img.web_ui_Image__content[data-testid^="product-item-id-"]'


def parse_vinted_title(title: str) -> Dict[str, Optional[str]]:
    """
    Split a Vinted card title into its fields.

    Examples:
        "Lederjacke, marke: Zara, größe: M, zustand: Gut, 45,00 €"
            -> {'name': 'Lederjacke', 'brand': 'Zara', 'size': 'M',
                'condition': 'Gut', 'price': '45,00 €'}

    The first euro amount is the item price; later ones include
    buyer protection.
    """
    title = clean_text(title)
    name = re.split(r',\s*marke:', title, maxsplit=1, flags=re.IGNORECASE)[0].strip()
    return {
        'name': name or None,
        'brand': extract_labeled_value(title, 'marke'),
        'size': extract_labeled_value(title, 'größe'),
        'condition': extract_labeled_value(title, 'zustand'),
        'price': extract_euro_price(title),
    }


class VintedExtractor(ProductExtractor):
    """Reads card fields from the anchor title instead of child nodes."""

    def accept_card(self, card: Tag) -> bool:
        return CATALOG_REFERRER in (card.get('href') or '')

    def _container(self, card: Tag) -> Optional[Tag]:
        container = card.find_parent(class_='new-item-box__container')
        if container is not None:
            return container
        node = card
        for _ in range(3):
            if node.parent is None:
                break
            node = node.parent
        return node if node is not card else None

    def find_image(self, card: Tag, item_id: Optional[str]) -> Optional[str]:
        """Prefer the product image tagged with this item's id."""
        container = self._container(card)
        if container is None:
            return None

        product_images = container.select(PRODUCT_IMAGE_SELECTOR)
        if product_images:
            if item_id:
                for image in product_images:
                    if item_id in (image.get('data-testid') or ''):
                        return image.get('src')
            return product_images[0].get('src')

        image = container.find('img')
        return image.get('src') if image else None

    def read_card(self, card: Tag, stats: SelectorStats) -> Dict[str, Optional[str]]:
        link = self.read_field(card, 'link', stats)
        title = self.read_field(card, 'title', stats) or ''
        values = parse_vinted_title(title)

        for field_name, value in values.items():
            if value:
                stats.record_hit(field_name, 'title')
            else:
                stats.record_miss(field_name)

        item_id = derive_external_id(absolute_url(self.config.base_url, link), self.config.id_pattern)
        image = self.find_image(card, item_id)
        if image:
            stats.record_hit('image', PRODUCT_IMAGE_SELECTOR)
        else:
            stats.record_miss('image')

        values['link'] = link
        values['image'] = image
        return values


class VintedScraper(BaseScraper):
    """Scraper for vinted.de catalog search."""

    extractor_class = VintedExtractor

    def __init__(self, browser=None, crawler_factory=None, observer=None):
        config = get_site_config('vinted')
        super().__init__(config, browser, crawler_factory, observer)
