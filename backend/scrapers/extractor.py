"""
Product extraction from rendered search result HTML.

Extraction is a pure function of the page HTML: the rendered DOM is
serialized with page.content() and parsed with BeautifulSoup. Each field
is read through an ordered selector chain; the first selector that yields
a non-empty value wins. Fields nothing matched get a placeholder, and
records whose id could not be derived from the detail URL are kept out of
the valid set.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup, Tag

from .errors import ExtractionFieldMissing
from .models import FieldSelector, ScrapedProduct, SiteConfig
from .utils.extractors import derive_external_id, first_srcset_url
from .utils.normalizers import absolute_url, clean_text, normalize_price

logger = logging.getLogger(__name__)


# Fields read for every card, in order
CARD_FIELDS = ['link', 'image', 'brand', 'name', 'price', 'size', 'condition']

PLACEHOLDERS = {
    'link': '',
    'image': '',
    'brand': 'Brand unavailable',
    'name': 'Name unavailable',
    'price': 'Price unavailable',
    'size': 'Size unavailable',
    'condition': 'Condition unavailable',
}

SRCSET_ATTRIBUTES = ('srcset', 'data-srcset')


def read_selector(node: Tag, candidate: FieldSelector) -> Optional[str]:
    """
    Read one candidate location inside a node.

    Returns:
        The stripped attribute value or text, or None if absent/empty
    """
    target = node.select_one(candidate.css) if candidate.css else node
    if target is None:
        return None

    if candidate.attr:
        value = target.get(candidate.attr)
        if isinstance(value, list):
            value = ' '.join(value)
        if value and candidate.attr in SRCSET_ATTRIBUTES:
            value = first_srcset_url(value)
        value = (value or '').strip()
        return value or None

    return clean_text(target.get_text(' ', strip=True)) or None


def first_match(node: Tag, candidates: Sequence[FieldSelector], field_name: str) -> Tuple[str, FieldSelector]:
    """
    Try candidates in priority order and return the first non-empty value.

    Raises:
        ExtractionFieldMissing: If no candidate yields a value
    """
    for candidate in candidates:
        value = read_selector(node, candidate)
        if value:
            return value, candidate
    raise ExtractionFieldMissing(field_name, [c.describe() for c in candidates])


class SelectorStats:
    """Hit counters per field and per selector. Observability only."""

    def __init__(self):
        self.cards = 0
        self.filtered = 0
        self.skeletons = 0
        self.card_errors = 0
        self.valid_ids = 0
        self.field_hits: Dict[str, int] = defaultdict(int)
        self.field_misses: Dict[str, int] = defaultdict(int)
        self.selector_hits: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))

    def record_hit(self, field_name: str, selector: str):
        self.field_hits[field_name] += 1
        self.selector_hits[field_name][selector] += 1

    def record_miss(self, field_name: str):
        self.field_misses[field_name] += 1

    def to_dict(self) -> Dict:
        data = {
            'cards': self.cards,
            'filtered': self.filtered,
            'skeletons': self.skeletons,
            'card_errors': self.card_errors,
            'with_valid_id': self.valid_ids,
        }
        for name, count in self.field_hits.items():
            data[f'with_{name}'] = count
        data['missing'] = dict(self.field_misses)
        data['selector_hits'] = {name: dict(hits) for name, hits in self.selector_hits.items()}
        return data


@dataclass
class ExtractionReport:
    """All extracted records, the valid subset and the selector stats."""
    records: List[ScrapedProduct] = field(default_factory=list)
    valid: List[ScrapedProduct] = field(default_factory=list)
    stats: SelectorStats = field(default_factory=SelectorStats)


class ProductExtractor:
    """
    Turns product cards into ScrapedProduct records using a SiteConfig.

    Sites with unusual markup subclass this and override:
    - accept_card(): Drop cards before parsing (e.g., sponsored)
    - read_card(): Produce the raw field values for one card
    """

    def __init__(self, config: SiteConfig, log: Optional[logging.Logger] = None):
        self.config = config
        self.logger = log or logger

    def accept_card(self, card: Tag) -> bool:
        return True

    def is_skeleton(self, card: Tag) -> bool:
        skeleton = self.config.skeleton_selector
        return bool(skeleton) and card.select_one(skeleton) is not None

    def read_field(self, card: Tag, field_name: str, stats: SelectorStats) -> Optional[str]:
        """
        Read one configured field from a card.

        Returns:
            The value, the field placeholder if no selector matched,
            or None if the site does not declare the field
        """
        candidates = self.config.fields.get(field_name)
        if not candidates:
            return None
        try:
            value, candidate = first_match(card, candidates, field_name)
        except ExtractionFieldMissing:
            stats.record_miss(field_name)
            return PLACEHOLDERS.get(field_name, '')
        stats.record_hit(field_name, candidate.describe())
        return value

    def read_card(self, card: Tag, stats: SelectorStats) -> Dict[str, Optional[str]]:
        return {name: self.read_field(card, name, stats) for name in CARD_FIELDS}

    def build_product(self, values: Dict[str, Optional[str]], index: int, stats: SelectorStats) -> ScrapedProduct:
        """Normalize raw field values into a record and derive its id."""
        detail_url = absolute_url(self.config.base_url, values.get('link'))
        external_id = derive_external_id(detail_url, self.config.id_pattern)
        if external_id:
            stats.valid_ids += 1

        return ScrapedProduct(
            source=self.config.key,
            external_id=external_id or f"unknown-{index}",
            name=values.get('name') or PLACEHOLDERS['name'],
            brand=values.get('brand') or PLACEHOLDERS['brand'],
            price=normalize_price(values.get('price')) or PLACEHOLDERS['price'],
            image_url=absolute_url(self.config.base_url, values.get('image')) or '',
            detail_url=detail_url or '',
            size=values.get('size'),
            condition=values.get('condition') or self.config.default_condition,
            id_derived=external_id is not None,
        )

    def error_product(self, index: int) -> ScrapedProduct:
        return ScrapedProduct(
            source=self.config.key,
            external_id=f"error-{index}",
            name=PLACEHOLDERS['name'],
            brand=PLACEHOLDERS['brand'],
            price=PLACEHOLDERS['price'],
            image_url='',
            detail_url='',
        )

    def extract(self, html: str, item_selector: Optional[str] = None) -> ExtractionReport:
        """
        Extract every card matched by the item selector.

        Args:
            html: Rendered page HTML
            item_selector: Selector that matched during page readiness
                (defaults to the site's primary selector)

        Returns:
            ExtractionReport; only report.valid should leave the adapter
        """
        selector = item_selector or self.config.item_selector
        soup = BeautifulSoup(html, 'html.parser')
        report = ExtractionReport()
        stats = report.stats

        for index, card in enumerate(soup.select(selector)):
            stats.cards += 1
            if self.is_skeleton(card):
                stats.skeletons += 1
                continue
            if not self.accept_card(card):
                stats.filtered += 1
                continue

            try:
                product = self.build_product(self.read_card(card, stats), index, stats)
            except Exception as e:
                stats.card_errors += 1
                self.logger.warning(f"Card {index} could not be parsed: {e}")
                product = self.error_product(index)
            report.records.append(product)

        report.valid = [p for p in report.records if p.is_valid]
        return report
