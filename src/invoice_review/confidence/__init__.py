"""
Confidence module.

Interprets the extractor's per-field confidence/ambiguity signals.
Confidence is consumed here, never computed from document content.
"""

from .scorer import ConfidenceScorer, ConfidenceThresholds, LowConfidenceField

__all__ = [
    "ConfidenceScorer",
    "ConfidenceThresholds",
    "LowConfidenceField",
]
