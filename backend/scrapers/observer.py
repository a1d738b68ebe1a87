"""
Observers for adapter runs.

Adapters report their progress to an injected observer instead of writing
debug files themselves. The base ScrapeObserver ignores every event;
ArtifactObserver dumps each run to a JSON file for offline inspection.
"""

import json
import logging
from pathlib import Path
from typing import Union

from .extractor import ExtractionReport
from .models import ScrapeResult

logger = logging.getLogger(__name__)


class ScrapeObserver:
    """Receives adapter events. Subclasses override what they need."""

    def on_stage(self, result: ScrapeResult, stage: str):
        pass

    def on_extracted(self, result: ScrapeResult, report: ExtractionReport):
        pass

    def on_failed(self, result: ScrapeResult, error: Exception):
        pass


class ArtifactObserver(ScrapeObserver):
    """Writes one JSON artifact per adapter run into a directory."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def _artifact_path(self, result: ScrapeResult) -> Path:
        stamp = result.started_at.strftime('%Y%m%d_%H%M%S_%f')
        return self.directory / f"{result.source}_{stamp}.json"

    def _write(self, result: ScrapeResult, payload: dict):
        path = self._artifact_path(result)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(payload, indent=2, ensure_ascii=False, default=str), encoding='utf-8')
        except OSError as e:
            logger.warning(f"Could not write scrape artifact {path}: {e}")
            return
        logger.debug(f"Wrote scrape artifact {path}")

    def on_extracted(self, result: ScrapeResult, report: ExtractionReport):
        self._write(result, {
            'result': result.to_dict(),
            'records': [p.to_dict() | {'valid': p.is_valid} for p in report.records],
        })

    def on_failed(self, result: ScrapeResult, error: Exception):
        self._write(result, {
            'result': result.to_dict(),
            'error': str(error),
        })
