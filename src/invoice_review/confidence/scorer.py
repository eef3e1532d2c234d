"""
Confidence signal interpretation.
"""

from dataclasses import dataclass
from typing import Any, Optional

from ..schemas.document_record import DocumentRecord

# Fields checked for low confidence, in question order.
# vat_inclusive is absent: an untrusted flag is dropped by the Normalizer instead.
SCORED_FIELDS = (
    "vendor",
    "date",
    "amount",
    "currency",
    "tax_amount",
    "category",
    "transaction_type",
)


@dataclass
class ConfidenceThresholds:
    """Configurable thresholds for low-confidence flagging."""

    # Below this a field needs human confirmation
    low_confidence: float = 0.60


@dataclass(frozen=True)
class LowConfidenceField:
    """A populated field whose extractor signal is too weak to trust."""

    field_name: str
    current_value: Any
    confidence: Optional[float]
    ambiguous: bool


class ConfidenceScorer:
    """
    Flags record fields whose extractor signal is below threshold.

    Rules:
    - Only populated fields are flagged (missing ones are required-field gaps)
    - A field flagged ambiguous by the extractor is low confidence regardless of score
    - Fields without any signal are trusted
    """

    def __init__(self, thresholds: Optional[ConfidenceThresholds] = None):
        """Initialize scorer with thresholds."""
        self.thresholds = thresholds or ConfidenceThresholds()

    def is_low(self, confidence: Optional[float], ambiguous: bool = False) -> bool:
        if ambiguous:
            return True
        if confidence is None:
            return False
        return confidence < self.thresholds.low_confidence

    def low_confidence_fields(self, record: DocumentRecord) -> list[LowConfidenceField]:
        """Return low-confidence populated fields in stable field order."""
        flagged = []
        for field_name in SCORED_FIELDS:
            value = record.get_field(field_name)
            if value is None:
                continue
            confidence = record.field_confidence.get(field_name)
            ambiguous = field_name in record.ambiguous_fields
            if self.is_low(confidence, ambiguous):
                flagged.append(
                    LowConfidenceField(
                        field_name=field_name,
                        current_value=value,
                        confidence=confidence,
                        ambiguous=ambiguous,
                    )
                )
        return flagged

    def overall(self, record: DocumentRecord) -> Optional[float]:
        """Mean confidence over the signalled fields (display only)."""
        scores = [record.field_confidence[f] for f in SCORED_FIELDS if f in record.field_confidence]
        if not scores:
            return None
        return sum(scores) / len(scores)
