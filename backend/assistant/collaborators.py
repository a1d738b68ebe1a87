"""
Language-model collaborators of the shopping pipeline.

- QueryRewriter: free text -> retailer search term (OpenAI)
- Classifier: search term -> Classification (Perplexity)
- LLMRanker: classification + candidates -> ordered picks (OpenAI)
"""

import json
import logging
from typing import List

from pydantic import ValidationError

from scrapers.manager import CandidateSet

from .errors import UpstreamCollaboratorError
from .llm_client import LLMClient, PerplexityClient, extract_json
from .models import Classification, RankedPick, SearchTermReply
from .ranking import MAX_RANKED_RESULTS, build_ranker_payload, parse_ranker_response

logger = logging.getLogger(__name__)


REWRITE_SYSTEM_PROMPT = """You are a fashion shopping assistant for second-hand and luxury marketplaces.
Turn the user's message into one short search term, the way a shopper would type it
into a store search box: product type, brand, model, color and material only.
Drop filler words, prices and questions. Keep brand and model names as written.

Respond ONLY with a JSON object of the form:
{"searchTerm": "<search term>"}"""


CLASSIFY_SYSTEM_PROMPT = """You are a fashion analyst who categorizes search queries for fashion items.
Analyze the query and fill in the following fields:

1. category: the product category (e.g. t-shirt, sweater, jeans, dress, shoes, belt, jacket).
   Avoid overly specific categories such as shoelaces or socks.
2. brand: the explicitly named or clearly implied brand, name only. Leave it empty when the
   query describes a generic product (e.g. "raw denim", "bomber jacket", "camo pants").
3. model: a specific model name, collection or product line.
4. color: the named color. If none is named, list the most common colors of the item in order
   of popularity, separated by commas (e.g. for "Air Force 1": "white, black, grey").
5. collaboration: only a collaboration between two brands (e.g. "Supreme x The North Face")
   or a special limited edition. Leave it empty otherwise.

If a piece of information cannot be determined, return an empty string for it.

Respond ONLY with this JSON object and no explanation:
{"category": string, "brand": string, "model": string, "color": string, "collaboration": string}"""


RANK_SYSTEM_PROMPT = f"""You rank fashion products by relevance to a classified search.
You receive the classification and, per source, a list of products. Each product has an "id"
that is its position in that source's list.

Weighting, most important first:
1. Category match (judged from the product "name")
2. Brand match
3. Model name match
4. Color match
5. Collaboration match

Return a SINGLE JSON object with exactly one property "products": an array of
{{"source": <source key>, "id": <product id>}} in descending order of relevance, e.g.
{{"products": [{{"source": "vestiaire", "id": 5}}, {{"source": "vinted", "id": 12}}]}}
Only use source keys and ids that appear in the input.
Return at most {MAX_RANKED_RESULTS} products and nothing besides the JSON object."""


class QueryRewriter:
    """Rewrites a user message into a retailer search term."""

    def __init__(self, llm: LLMClient):
        self.llm = llm

    async def rewrite(self, query: str) -> str:
        """
        Args:
            query: The user's free-text message

        Returns:
            Non-empty search term

        Raises:
            UpstreamCollaboratorError: On failure or an empty term
        """
        reply = await self.llm.call_with_schema(REWRITE_SYSTEM_PROMPT, query, SearchTermReply)
        term = ' '.join(reply.search_term.split())
        if not term:
            raise UpstreamCollaboratorError('rewrite', 'Empty search term')
        logger.info(f"Rewrote '{query}' -> '{term}'")
        return term


class Classifier:
    """Classifies a search term into category, brand, model, color, collaboration."""

    def __init__(self, client: PerplexityClient):
        self.client = client

    async def classify(self, search_term: str) -> Classification:
        text = await self.client.complete(CLASSIFY_SYSTEM_PROMPT, search_term)
        try:
            data = extract_json(text)
        except ValueError as e:
            raise UpstreamCollaboratorError('classify', f'No JSON in reply: {e}') from e
        if not isinstance(data, dict):
            raise UpstreamCollaboratorError('classify', 'Reply is not a JSON object')

        try:
            classification = Classification.model_validate(data)
        except ValidationError as e:
            raise UpstreamCollaboratorError('classify', f'Unexpected reply: {e}') from e

        logger.info(f"Classified '{search_term}': {classification.model_dump()}")
        return classification


class LLMRanker:
    """Asks the language model to order the candidates."""

    def __init__(self, llm: LLMClient):
        self.llm = llm

    async def rank(self, classification: Classification, candidates: CandidateSet) -> List[RankedPick]:
        """
        Returns:
            Picks in ranker order (not yet bounds-checked)

        Raises:
            UpstreamCollaboratorError: If the call fails
            MalformedRankerResponse: If the reply has no accepted shape
        """
        payload = build_ranker_payload(classification, candidates)
        text = await self.llm.complete(RANK_SYSTEM_PROMPT, json.dumps(payload, ensure_ascii=False))
        picks = parse_ranker_response(text)
        logger.info(f"Ranker returned {len(picks)} picks")
        return picks
