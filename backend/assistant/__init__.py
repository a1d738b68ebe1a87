"""
Conversational shopping pipeline for Fashion AI Search.

Rewrites a user message into a search term, classifies it, fans the term
out to the storefront scrapers and ranks the merged results.
"""

from .errors import PipelineError, UpstreamCollaboratorError, MalformedRankerResponse
from .models import Classification, RankedPick, RankedProduct, SourceSummary, TurnResult
from .pipeline import ShoppingPipeline, PipelineMode, TurnStage, ChatSink

__all__ = [
    'PipelineError',
    'UpstreamCollaboratorError',
    'MalformedRankerResponse',
    'Classification',
    'RankedPick',
    'RankedProduct',
    'SourceSummary',
    'TurnResult',
    'ShoppingPipeline',
    'PipelineMode',
    'TurnStage',
    'ChatSink',
]
