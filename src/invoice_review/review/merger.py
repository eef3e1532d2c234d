"""
Resolution Merger: applies human answers to a record under review.

The merge works on a copy of the record. Either every answer is valid and the
merged record is returned, or ReviewAnswerInvalid is raised and the caller's
record is left exactly as it was.
"""

import logging
from typing import Any, Optional

from ..schemas.document_record import DocumentRecord, RecordStatus
from ..schemas.field_values import FIELD_KINDS, FieldValue
from ..schemas.questions import InputType, Question
from ..vat import VATResolutionError
from .validator import Validator

logger = logging.getLogger(__name__)

# Answers allowed alongside a question for another field
COMPANION_FIELDS: dict[str, tuple[str, ...]] = {
    "vat_inclusive": ("amount",),
}


class ReviewAnswerInvalid(ValueError):
    """Raised when one or more answers cannot be applied.

    Attributes:
        errors: field_name -> reason for every rejected answer
    """

    def __init__(self, errors: dict[str, str]):
        self.errors = dict(errors)
        details = "; ".join(f"{name}: {reason}" for name, reason in sorted(self.errors.items()))
        super().__init__(f"Invalid review answers ({details})")


class ResolutionMerger:
    """
    Merges review answers into a record and re-validates it.

    - Empty answers approve the record as-is (status ok, questions cleared)
    - Answers are coerced per question input type, then per field kind
    - The VAT triple is always re-resolved after a merge
    - Remaining deficiencies produce a fresh question set (re-entrant)
    """

    def __init__(self, validator: Optional[Validator] = None):
        self.validator = validator or Validator()
        self.vat_resolver = self.validator.vat_resolver

    def resolve(self, record: DocumentRecord, answers: dict[str, Any]) -> DocumentRecord:
        """
        Merge answers into a copy of the record.

        Args:
            record: Current record (not modified)
            answers: field_name -> answer value

        Returns:
            The merged record

        Raises:
            ReviewAnswerInvalid: If any answer is rejected (nothing applied)
        """
        merged = record.copy()

        if record.status == RecordStatus.OK and not record.review_questions:
            unknown = {name: "unknown field" for name in answers if name not in FIELD_KINDS}
            if unknown:
                raise ReviewAnswerInvalid(unknown)
            logger.debug("Record %s is already ok; answers ignored", record.id)
            return merged

        if not answers:
            return self.approve(merged)

        coerced = self.coerce_answers(record, answers)

        if "tax_amount" not in coerced and (
            "vat_inclusive" in coerced or ("amount" in coerced and record.amount is not None)
        ):
            # Derived from the previous amount/flag, stale now
            merged.tax_amount = None

        for field_name, value in coerced.items():
            merged.apply(field_name, value)
            merged.mark_confirmed(field_name)

        answered_amount = merged.amount
        try:
            resolution = self.vat_resolver.apply(merged)
        except VATResolutionError as e:
            raise ReviewAnswerInvalid({"amount": str(e)}) from e

        if "tax_amount" in coerced and resolution.replaced_tax is not None:
            # A human-supplied figure is never silently overwritten
            raise ReviewAnswerInvalid(
                {
                    "tax_amount": (
                        f"VAT {resolution.replaced_tax} does not match amount "
                        f"{answered_amount} at rate {self.vat_resolver.rate}"
                    )
                }
            )

        merged.reviewed = True

        self.validator.validate(merged)
        logger.info(
            "Merged %d answer(s) into record %s: status=%s",
            len(coerced),
            record.id,
            merged.status.value,
        )
        return merged

    def approve(self, record: DocumentRecord) -> DocumentRecord:
        """Override path: accept the record as it stands."""
        record.status = RecordStatus.OK
        record.review_reason = None
        record.review_questions = []
        record.reviewed = True
        logger.info("Record %s approved as-is", record.id)
        return record

    def coerce_answers(
        self, record: DocumentRecord, answers: dict[str, Any]
    ) -> dict[str, FieldValue]:
        """Type every answer against the record's open questions.

        Raises:
            ReviewAnswerInvalid: Listing every rejected answer
        """
        questions = {q.field_name: q for q in record.review_questions}
        allowed = set(questions)
        for field_name in questions:
            allowed.update(COMPANION_FIELDS.get(field_name, ()))

        errors: dict[str, str] = {}
        coerced: dict[str, FieldValue] = {}
        for field_name, raw in answers.items():
            if field_name not in FIELD_KINDS:
                errors[field_name] = "unknown field"
                continue
            if field_name not in allowed:
                errors[field_name] = "no open question for this field"
                continue
            try:
                coerced[field_name] = self._coerce(field_name, questions.get(field_name), raw)
            except ValueError as e:
                errors[field_name] = str(e)

        if errors:
            logger.warning("Rejected answers for record %s: %s", record.id, errors)
            raise ReviewAnswerInvalid(errors)
        return coerced

    def _coerce(self, field_name: str, question: Optional[Question], raw: Any) -> FieldValue:
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            raise ValueError("answer is empty")

        kind = FIELD_KINDS[field_name]
        value = FieldValue.coerce(kind, raw)

        if question is not None and question.input_type == InputType.SELECT:
            offered = [FieldValue.coerce(kind, option).value for option in question.option_values]
            if value.value not in offered:
                raise ValueError(f"{raw!r} is not one of the offered options")
        return value
