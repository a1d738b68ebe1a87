"""
Deterministic relevance scoring.

A local substitute for the language-model ranker. Each candidate gets a
weighted score from simple substring matches against the classification:

    category      +3    (name contains the category or one of its synonyms)
    brand         +2.5  (brand contains the classified brand)
    model         +2    (name contains the model)
    color         +1.5  (name or brand contains one of the colors)
    collaboration +1    (name or brand contains the collaboration)

Candidates scoring zero are left out.
"""

import logging
from typing import Dict, List

from scrapers.manager import CandidateSet
from scrapers.models import ScrapedProduct

from .models import Classification, RankedPick
from .ranking import MAX_RANKED_RESULTS

logger = logging.getLogger(__name__)


CATEGORY_WEIGHT = 3.0
BRAND_WEIGHT = 2.5
MODEL_WEIGHT = 2.0
COLOR_WEIGHT = 1.5
COLLABORATION_WEIGHT = 1.0

# Colors that mean "no particular color"
MULTI_COLOR_VALUES = {'mehrere', 'multiple', 'multi', 'multicolor', 'various'}

_TOPS = ['shirt', 't-shirt', 'hemd', 'bluse', 'blouse', 'top', 'pullover', 'sweater', 'sweatshirt', 'hoodie']
_TROUSERS = ['jeans', 'hose', 'pants', 'trousers', 'shorts', 'leggings']
_JACKETS = ['jacke', 'jacket', 'mantel', 'coat', 'blazer']
_DRESSES = ['kleid', 'dress']
_SKIRTS = ['rock', 'skirt']
_SHOES = ['schuh', 'shoe', 'sneaker', 'boots', 'sandalen', 'sandals', 'high heels']
_BAGS = ['tasche', 'bag', 'rucksack', 'backpack']
_ACCESSORIES = ['schmuck', 'jewelry', 'kette', 'necklace', 'armband', 'bracelet', 'ring',
                'schal', 'scarf', 'tuch', 'gürtel', 'belt', 'mütze', 'beanie']

CATEGORY_TERMS: Dict[str, List[str]] = {
    'oberteil': _TOPS,
    'top': _TOPS,
    'hose': _TROUSERS,
    'trousers': _TROUSERS,
    'pants': _TROUSERS,
    'jacke': _JACKETS,
    'jacket': _JACKETS,
    'kleid': _DRESSES,
    'dress': _DRESSES,
    'rock': _SKIRTS,
    'skirt': _SKIRTS,
    'schuhe': _SHOES,
    'shoes': _SHOES,
    'tasche': _BAGS,
    'bag': _BAGS,
    'accessoires': _ACCESSORIES,
    'accessories': _ACCESSORIES,
}


def matches_category(name: str, category: str) -> bool:
    """
    Check a lowercased product name against a category.

    Examples:
        ("leather jacket", "jacket") -> True
        ("wollmantel", "jacke") -> True   # synonym
        ("sneaker", "jacke") -> False
    """
    category = category.strip().lower()
    if not category:
        return False
    if category in name:
        return True
    return any(term in name for term in CATEGORY_TERMS.get(category, []))


def split_colors(color: str) -> List[str]:
    colors = [c.strip().lower() for c in color.split(',')]
    return [c for c in colors if c and c not in MULTI_COLOR_VALUES]


def score_product(product: ScrapedProduct, classification: Classification) -> float:
    """Weighted relevance of one candidate for a classification."""
    name = product.name.lower()
    brand = product.brand.lower()
    score = 0.0

    if matches_category(name, classification.category):
        score += CATEGORY_WEIGHT

    if classification.brand and classification.brand.lower() in brand:
        score += BRAND_WEIGHT

    if classification.model and classification.model.lower() in name:
        score += MODEL_WEIGHT

    if any(c in name or c in brand for c in split_colors(classification.color)):
        score += COLOR_WEIGHT

    collaboration = classification.collaboration.lower()
    if collaboration and (collaboration in name or collaboration in brand):
        score += COLLABORATION_WEIGHT

    return score


class LocalRanker:
    """Ranks candidates with score_product; ties keep source and page order."""

    def __init__(self, max_results: int = MAX_RANKED_RESULTS):
        self.max_results = max_results

    async def rank(self, classification: Classification, candidates: CandidateSet) -> List[RankedPick]:
        scored = []
        for source, products in candidates.items():
            for index, product in enumerate(products):
                score = score_product(product, classification)
                if score > 0:
                    scored.append((score, RankedPick(source=source, id=index)))

        # sort() is stable
        scored.sort(key=lambda item: item[0], reverse=True)
        logger.info(f"Local ranking scored {len(scored)} relevant candidates")
        return [pick for _, pick in scored[:self.max_results]]
