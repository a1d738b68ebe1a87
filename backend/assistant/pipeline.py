"""
Shopping pipeline - one conversational turn from free text to ranked products.

Stages run strictly in order:

    REWRITE_TERM -> CLASSIFY -> FAN_OUT_SCRAPE -> RANK -> RESPOND

Only the scrape stage is concurrent (one task per source). A failing
source degrades to an empty list; a failing language-model collaborator
aborts the turn with a PipelineError.
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, Dict, List, Optional

from scrapers.manager import CandidateSet, ScraperManager
from scrapers.models import ScrapeResult

from .errors import PipelineError, UpstreamCollaboratorError
from .models import Classification, RankedProduct, SourceSummary, TurnResult
from .ranking import MAX_RANKED_RESULTS, resolve_ranking, retailer_name, select_top_per_source

logger = logging.getLogger(__name__)


RESULTS_MESSAGE = 'Here are some items that match what you asked for with "{query}":'
NO_RESULTS_MESSAGE = (
    'Sorry, I could not find any products matching "{query}". '
    'Please try a different description.'
)


class TurnStage(str, Enum):
    """Stages of a turn, in execution order."""
    REWRITE_TERM = "rewrite_term"
    CLASSIFY = "classify"
    FAN_OUT_SCRAPE = "fan_out_scrape"
    RANK = "rank"
    RESPOND = "respond"


class PipelineMode(str, Enum):
    """RANKED classifies and ranks; SIMPLE shows the first items per source."""
    RANKED = "ranked"
    SIMPLE = "simple"


class ChatSink:
    """
    Persistence collaborator for finished turns.

    The base class stores nothing. A chat history backend subclasses it.
    """

    async def save_turn(self, result: TurnResult):
        pass


class ShoppingPipeline:
    """
    Runs conversational turns.

    Usage:
        pipeline = ShoppingPipeline(rewriter, classifier, ranker, lambda: ScraperManager(browser))
        result = await pipeline.run_turn("I need a black leather jacket")
    """

    def __init__(
        self,
        rewriter,
        classifier,
        ranker,
        scraper_factory: Callable[[], ScraperManager],
        mode: PipelineMode = PipelineMode.RANKED,
        max_results: int = MAX_RANKED_RESULTS,
        per_source: int = 4,
        collaborator_timeout: Optional[float] = None,
        sink: Optional[ChatSink] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            rewriter: Object with async rewrite(query) -> str
            classifier: Object with async classify(term) -> Classification
            ranker: Object with async rank(classification, candidates) -> picks
            scraper_factory: Builds a fresh ScraperManager for each turn
            mode: RANKED or SIMPLE
            max_results: Upper bound on returned products
            per_source: Items per source in SIMPLE mode
            collaborator_timeout: Bound for each collaborator call in seconds
            sink: Receives every finished turn
        """
        self.rewriter = rewriter
        self.classifier = classifier
        self.ranker = ranker
        self.scraper_factory = scraper_factory
        self.mode = PipelineMode(mode)
        self.max_results = max_results
        self.per_source = per_source
        self.collaborator_timeout = collaborator_timeout
        self.sink = sink or ChatSink()

    async def _call(self, stage: TurnStage, awaitable):
        """Await a collaborator call within the collaborator timeout."""
        if not self.collaborator_timeout:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, timeout=self.collaborator_timeout)
        except asyncio.TimeoutError as e:
            raise UpstreamCollaboratorError(
                stage.value, f'No reply within {self.collaborator_timeout:.0f}s', stage=stage.value
            ) from e

    async def _rank(self, classification: Optional[Classification], candidates: CandidateSet) -> List[RankedProduct]:
        if self.mode == PipelineMode.SIMPLE or classification is None:
            picks = select_top_per_source(candidates, self.per_source, self.max_results)
        elif not any(candidates.values()):
            logger.info("No candidates to rank")
            return []
        else:
            picks = await self._call(TurnStage.RANK, self.ranker.rank(classification, candidates))
        return resolve_ranking(picks, candidates, self.max_results)

    def _summarize(
        self,
        candidates: CandidateSet,
        products: List[RankedProduct],
        results: Dict[str, ScrapeResult],
    ) -> List[SourceSummary]:
        summary = []
        for source, source_products in candidates.items():
            result = results.get(source)
            error = None
            if result and result.error_details:
                error = result.error_details[0].get('error')
            summary.append(SourceSummary(
                source=source,
                name=retailer_name(source),
                scraped=len(source_products),
                ranked=sum(1 for p in products if p.source == source),
                error=error,
            ))
        return summary

    async def run_turn(self, query: str) -> TurnResult:
        """
        Run one turn.

        Args:
            query: The user's free-text message

        Returns:
            TurnResult with up to max_results products in ranked order

        Raises:
            PipelineError: If a collaborator fails; nothing partial is returned
        """
        query = query.strip()
        stage = TurnStage.REWRITE_TERM
        logger.info(f"Turn started ({self.mode.value}): '{query}'")

        try:
            if not query:
                raise PipelineError("Empty query")

            search_term = await self._call(stage, self.rewriter.rewrite(query))

            classification = None
            if self.mode == PipelineMode.RANKED:
                stage = TurnStage.CLASSIFY
                classification = await self._call(stage, self.classifier.classify(search_term))

            stage = TurnStage.FAN_OUT_SCRAPE
            manager = self.scraper_factory()
            candidates = await manager.search_all(search_term)

            stage = TurnStage.RANK
            products = await self._rank(classification, candidates)

            stage = TurnStage.RESPOND
            template = RESULTS_MESSAGE if products else NO_RESULTS_MESSAGE
            result = TurnResult(
                query=query,
                search_term=search_term,
                mode=self.mode.value,
                classification=classification,
                products=products,
                summary=self._summarize(candidates, products, manager.results),
                message=template.format(query=query),
            )
        except PipelineError as e:
            if e.stage is None:
                e.stage = stage.value
            logger.error(f"Turn failed at {e.stage}: {e.message}")
            raise

        counts = ', '.join(f"{s.source}={s.ranked}/{s.scraped}" for s in result.summary)
        logger.info(f"Turn complete: {len(result.products)} products ({counts})")

        try:
            await self.sink.save_turn(result)
        except Exception as e:
            logger.warning(f"Could not save turn: {e}")
        return result
