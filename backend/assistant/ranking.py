"""
Ranking input, ranker reply parsing and merge.

The ranker sees every candidate as {id, name, brand, price, size?,
condition?} where id is the candidate's position in its source list. It
answers with an ordered list of (source, id) picks. The merge keeps that
order exactly, drops picks that point nowhere and stops at 20.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from scrapers.config import SITES
from scrapers.manager import CandidateSet
from scrapers.models import ScrapedProduct

from .errors import MalformedRankerResponse
from .llm_client import iter_json_values, strip_code_fence
from .models import Classification, RankedPick, RankedProduct

logger = logging.getLogger(__name__)

MAX_RANKED_RESULTS = 20


def candidate_payload(product: ScrapedProduct, index: int) -> Dict[str, Any]:
    """Describe one candidate for the ranker; optional fields only when known."""
    payload = {
        'id': index,
        'name': product.name,
        'brand': product.brand,
        'price': product.price,
    }
    if product.size is not None:
        payload['size'] = product.size
    if product.condition is not None:
        payload['condition'] = product.condition
    return payload


def build_ranker_payload(classification: Classification, candidates: CandidateSet) -> Dict[str, Any]:
    """Build the ranker request body: classification plus candidates by source."""
    return {
        'classification': classification.model_dump(),
        'products': {
            source: [candidate_payload(product, index) for index, product in enumerate(products)]
            for source, products in candidates.items()
        },
    }


def _pick_items(value: Any) -> Optional[List[Any]]:
    """Return the raw pick entries if the value has an accepted shape."""
    if isinstance(value, dict) and 'products' in value:
        value = value['products']
    elif not isinstance(value, list):
        return None
    if not isinstance(value, list) or not all(isinstance(item, dict) for item in value):
        return None
    return value


def _as_picks(value: Any) -> Optional[List[RankedPick]]:
    """Validate one decoded value; entries that fail validation are dropped."""
    items = _pick_items(value)
    if items is None:
        return None
    picks = []
    for item in items:
        try:
            picks.append(RankedPick.model_validate(item))
        except ValidationError as e:
            logger.debug(f"Dropping invalid ranker pick {item!r}: {e.error_count()} error(s)")
    return picks


def parse_ranker_response(text: str) -> List[RankedPick]:
    """
    Decode a ranker reply into ordered picks.

    Accepted shapes:
    - {"products": [{"source": ..., "id": ...}, ...]}
    - [{"source": ..., "id": ...}, ...]
    either as the whole reply, inside a code fence, or embedded in
    explanatory text (the first embedded value of an accepted shape wins).

    Raises:
        MalformedRankerResponse: If no accepted shape is found
    """
    if not text or not text.strip():
        raise MalformedRankerResponse("Empty ranker reply", raw=text)

    body = strip_code_fence(text)
    try:
        whole = json.loads(body)
    except json.JSONDecodeError:
        pass
    else:
        picks = _as_picks(whole)
        if picks is None:
            raise MalformedRankerResponse("Ranker reply does not match the expected schema", raw=text)
        return picks

    for value in iter_json_values(body):
        picks = _as_picks(value)
        if picks is not None:
            return picks

    raise MalformedRankerResponse("No ranking found in ranker reply", raw=text)


def retailer_name(source: str) -> str:
    config = SITES.get(source)
    return config.name if config else source


def to_ranked_product(rank: int, source: str, index: int, product: ScrapedProduct) -> RankedProduct:
    return RankedProduct(
        rank=rank,
        source=source,
        index=index,
        id=product.external_id,
        retailer=retailer_name(source),
        brand=product.brand,
        name=product.name,
        size=product.size or '',
        price=product.price,
        condition=product.condition or '',
        image_url=product.image_url,
        product_url=product.detail_url,
    )


def resolve_ranking(
    picks: List[RankedPick],
    candidates: CandidateSet,
    limit: int = MAX_RANKED_RESULTS,
) -> List[RankedProduct]:
    """
    Map picks back to full records, keeping the ranker's order.

    Picks naming an unknown source, an index outside that source's list,
    or repeating an earlier pick are dropped. The output never exceeds
    limit entries.
    """
    resolved: List[RankedProduct] = []
    seen = set()

    for pick in picks:
        if len(resolved) >= limit:
            break

        products = candidates.get(pick.source)
        if products is None:
            logger.debug(f"Dropping pick for unknown source {pick.source}")
            continue
        if pick.id < 0 or pick.id >= len(products):
            logger.debug(f"Dropping out-of-range pick {pick.source}[{pick.id}] (have {len(products)})")
            continue
        key = (pick.source, pick.id)
        if key in seen:
            continue
        seen.add(key)

        resolved.append(to_ranked_product(len(resolved) + 1, pick.source, pick.id, products[pick.id]))

    dropped = len(picks) - len(resolved)
    if dropped > 0:
        logger.info(f"Ranker returned {len(picks)} picks, kept {len(resolved)}")
    return resolved


def select_top_per_source(
    candidates: CandidateSet,
    per_source: int = 4,
    limit: int = MAX_RANKED_RESULTS,
) -> List[RankedPick]:
    """First per_source candidates of every source, in source order."""
    picks = []
    for source, products in candidates.items():
        for index in range(min(per_source, len(products))):
            picks.append(RankedPick(source=source, id=index))
    return picks[:limit]
