"""
Field-map extractor.

Consumes output of an upstream OCR/LLM step that already produced the raw
field map (JSON). Used by the CLI and by retries that replay stored input.
"""

import json
import logging
from pathlib import Path

from .base import BaseExtractor, ExtractionResult, ExtractionUnavailable

logger = logging.getLogger(__name__)


class FieldMapExtractor(BaseExtractor):
    """Parses a JSON field map into an ExtractionResult."""

    @property
    def name(self) -> str:
        return "field_map"

    def extract(self, content: str) -> ExtractionResult:
        if not content or not content.strip():
            raise ExtractionUnavailable("Empty field map", strategy=self.name)

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ExtractionUnavailable(f"Field map is not valid JSON: {e}", strategy=self.name) from e

        if not isinstance(data, dict):
            raise ExtractionUnavailable("Field map is not an object", strategy=self.name)

        result = ExtractionResult.from_field_map(data, strategy=self.name)
        logger.debug("Field map yielded %d field(s)", len(result.fields))
        return result

    def extract_file(self, path: Path) -> ExtractionResult:
        """Read and parse a field map file."""
        try:
            content = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise ExtractionUnavailable(f"Cannot read field map {path}: {e}", strategy=self.name) from e
        return self.extract(content)
