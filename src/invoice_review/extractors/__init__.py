"""
Finance field extractors.

Provides:
- BaseExtractor / ExtractionResult: the extractor contract
- FieldMapExtractor: pre-extracted JSON field maps
- OllamaExtractor: LLM extraction over OCR text

The extractor itself is an external collaborator; the pipeline only relies
on the contract defined in base.py.
"""

from .base import BaseExtractor, ExtractionResult, ExtractionUnavailable, RawField
from .field_map_extractor import FieldMapExtractor
from .llm_extractor import OllamaExtractor

__all__ = [
    "BaseExtractor",
    "ExtractionResult",
    "ExtractionUnavailable",
    "RawField",
    "FieldMapExtractor",
    "OllamaExtractor",
]
