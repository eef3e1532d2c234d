"""
Validator: decides whether a record is trustworthy.

Deficiency checks, in priority order (they accumulate, never short-circuit):
1. Missing required fields (vendor, amount, date)
2. VAT ambiguity
3. Low-confidence extractor signals on populated fields
4. Category unresolved
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..confidence import ConfidenceScorer
from ..schemas.document_record import DocumentRecord, RecordStatus
from ..schemas.field_values import FIELD_LABELS
from ..vat import VATResolver
from .questions import QuestionGenerator

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("vendor", "amount", "date")


class DeficiencyKind(str, Enum):
    """Why a record is not yet trustworthy."""

    MISSING_FIELD = "missing_field"
    VAT_AMBIGUOUS = "vat_ambiguous"
    LOW_CONFIDENCE = "low_confidence"
    CATEGORY_UNRESOLVED = "category_unresolved"


@dataclass(frozen=True)
class Deficiency:
    """One reason a record needs review."""

    kind: DeficiencyKind
    field_name: str
    current_value: Any = None
    confidence: Optional[float] = None
    ambiguous: bool = False


@dataclass
class ValidationResult:
    """Outcome of validating a record."""

    deficiencies: list[Deficiency] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.deficiencies

    @property
    def reason(self) -> Optional[str]:
        return summarize(self.deficiencies)


def _join(items: list[str]) -> str:
    if len(items) == 1:
        return items[0]
    return f"{', '.join(items[:-1])} and {items[-1]}"


def summarize(deficiencies: list[Deficiency]) -> Optional[str]:
    """Short human summary, e.g. "Missing amount and VAT status"."""
    if not deficiencies:
        return None

    missing = []
    uncertain = []
    for d in deficiencies:
        label = FIELD_LABELS.get(d.field_name, d.field_name)
        if d.kind == DeficiencyKind.LOW_CONFIDENCE:
            uncertain.append(label)
        else:
            missing.append(label)

    parts = []
    if missing:
        parts.append(f"Missing {_join(missing)}")
    if uncertain:
        parts.append(f"Please confirm {_join(uncertain)}")
    return "; ".join(parts)


class Validator:
    """Classifies records as ok / needs_review and issues review questions."""

    def __init__(
        self,
        vat_resolver: Optional[VATResolver] = None,
        scorer: Optional[ConfidenceScorer] = None,
        question_generator: Optional[QuestionGenerator] = None,
    ):
        self.vat_resolver = vat_resolver or VATResolver()
        self.scorer = scorer or ConfidenceScorer()
        self.questions = question_generator or QuestionGenerator(self.vat_resolver.rate)

    def find_deficiencies(self, record: DocumentRecord) -> list[Deficiency]:
        """List deficiencies in priority order (pure, record untouched)."""
        deficiencies = [
            Deficiency(kind=DeficiencyKind.MISSING_FIELD, field_name=name)
            for name in REQUIRED_FIELDS
            if record.get_field(name) is None
        ]

        resolution = self.vat_resolver.resolve(
            record.amount, record.tax_amount, record.vat_inclusive
        )
        if resolution.ambiguous:
            deficiencies.append(
                Deficiency(kind=DeficiencyKind.VAT_AMBIGUOUS, field_name="vat_inclusive")
            )

        for flagged in self.scorer.low_confidence_fields(record):
            deficiencies.append(
                Deficiency(
                    kind=DeficiencyKind.LOW_CONFIDENCE,
                    field_name=flagged.field_name,
                    current_value=flagged.current_value,
                    confidence=flagged.confidence,
                    ambiguous=flagged.ambiguous,
                )
            )

        if record.category is None:
            deficiencies.append(
                Deficiency(kind=DeficiencyKind.CATEGORY_UNRESOLVED, field_name="category")
            )

        return deficiencies

    def validate(self, record: DocumentRecord) -> ValidationResult:
        """Validate and write status, review_reason and review_questions onto the record."""
        result = ValidationResult(deficiencies=self.find_deficiencies(record))

        if result.ok:
            record.status = RecordStatus.OK
            record.review_reason = None
            record.review_questions = []
        else:
            record.status = RecordStatus.NEEDS_REVIEW
            record.review_reason = result.reason
            record.review_questions = self.questions.generate(result.deficiencies, record)
            logger.debug(
                "Record %s needs review: %s",
                record.id if record.id is not None else record.source_ref,
                record.review_reason,
            )

        return result
