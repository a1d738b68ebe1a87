"""
Pipeline error taxonomy.

A PipelineError aborts the whole turn. The HTTP layer turns it into one
user-facing failure message; partial scrape results are discarded.
"""

from typing import Optional


class PipelineError(Exception):
    """Base class for turn-fatal failures."""

    user_message = "Sorry, something went wrong while searching. Please try again."

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage

    def to_dict(self) -> dict:
        return {
            'type': type(self).__name__,
            'stage': self.stage,
            'error': self.message,
        }


class UpstreamCollaboratorError(PipelineError):
    """A language-model collaborator failed, timed out or answered nonsense."""

    def __init__(self, collaborator: str, message: str, stage: Optional[str] = None):
        super().__init__(f"{collaborator}: {message}", stage=stage)
        self.collaborator = collaborator


class MalformedRankerResponse(PipelineError):
    """The ranker reply matched none of the accepted JSON shapes."""

    user_message = "Sorry, the results could not be ranked. Please try again."

    def __init__(self, message: str, raw: Optional[str] = None):
        super().__init__(message, stage='rank')
        self.raw = raw
