"""
Review question generation.

Maps each deficiency to exactly one Question. The mapping is a pure
function of (deficiency, record): the same deficiency list always yields the
same ordered question list.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any

from ..schemas.field_values import FIELD_KINDS, FIELD_LABELS, Category, FieldKind
from ..schemas.questions import InputType, Question, QuestionOption

if TYPE_CHECKING:
    from ..schemas.document_record import DocumentRecord
    from .validator import Deficiency

# Required-field prompts: (question, hint)
REQUIRED_PROMPTS: dict[str, tuple[str, str]] = {
    "vendor": (
        "Who issued this invoice?",
        "Enter the vendor or merchant name as printed on the document",
    ),
    "amount": (
        "What is the invoice amount?",
        "Enter the number only, e.g. 1050.00",
    ),
    "date": (
        "What is the invoice date?",
        "Use the format YYYY-MM-DD",
    ),
}

VAT_OPTIONS = (
    QuestionOption(value=True, label="VAT Inclusive"),
    QuestionOption(value=False, label="VAT Exclusive"),
)

BOOLEAN_OPTIONS = (
    QuestionOption(value=True, label="Yes"),
    QuestionOption(value=False, label="No"),
)

CATEGORY_OPTIONS = tuple(QuestionOption(value=c.value, label=c.value) for c in Category)

# Field kind -> input type for questions that ask for a missing value
_INPUT_FOR_KIND = {
    FieldKind.TEXT: InputType.TEXT,
    FieldKind.NUMBER: InputType.NUMBER,
    FieldKind.DATE: InputType.DATE,
    FieldKind.BOOLEAN: InputType.SELECT,
    FieldKind.CATEGORY: InputType.SELECT,
}


def format_rate(rate: Decimal) -> str:
    """0.05 -> "5", 0.075 -> "7.5"."""
    return f"{rate * 100:.2f}".rstrip("0").rstrip(".")


class QuestionGenerator:
    """Turns deficiencies into structured questions the UI renders generically."""

    def __init__(self, vat_rate: Decimal = Decimal("0.05")):
        self.vat_rate = vat_rate

    def generate(self, deficiencies: list[Deficiency], record: DocumentRecord) -> list[Question]:
        return [self.for_deficiency(d, record) for d in deficiencies]

    def for_deficiency(self, deficiency: Deficiency, record: DocumentRecord) -> Question:
        # Imported here: validator imports this module for its generator
        from .validator import DeficiencyKind

        kind = deficiency.kind
        if kind == DeficiencyKind.MISSING_FIELD:
            return self.missing_field(deficiency.field_name)
        if kind == DeficiencyKind.VAT_AMBIGUOUS:
            return self.vat_status(record)
        if kind == DeficiencyKind.LOW_CONFIDENCE:
            return self.confirm_field(deficiency, record)
        if kind == DeficiencyKind.CATEGORY_UNRESOLVED:
            return self.category()
        raise ValueError(f"Unhandled deficiency kind: {kind}")

    def missing_field(self, field_name: str) -> Question:
        label = FIELD_LABELS.get(field_name, field_name)
        question, hint = REQUIRED_PROMPTS.get(
            field_name, (f"What is the {label}?", f"Enter the {label} as printed on the document")
        )
        input_type = _INPUT_FOR_KIND[FIELD_KINDS[field_name]]
        options: tuple[QuestionOption, ...] = ()
        if input_type == InputType.SELECT:
            options = (
                CATEGORY_OPTIONS
                if FIELD_KINDS[field_name] == FieldKind.CATEGORY
                else BOOLEAN_OPTIONS
            )
        return Question(
            field_name=field_name,
            question=question,
            input_type=input_type,
            hint=hint,
            options=options,
        )

    def vat_status(self, record: DocumentRecord) -> Question:
        rate = format_rate(self.vat_rate)
        if record.amount is not None:
            question = f"Does the amount of {record.amount} {record.currency} include VAT?"
        else:
            question = "Does the invoice amount include VAT?"
        return Question(
            field_name="vat_inclusive",
            question=question,
            input_type=InputType.SELECT,
            hint=f"VAT is {rate}%. Inclusive amounts are split into net amount and VAT.",
            options=VAT_OPTIONS,
        )

    def confirm_field(self, deficiency: Deficiency, record: DocumentRecord) -> Question:
        field_name = deficiency.field_name
        label = FIELD_LABELS.get(field_name, field_name)
        current: Any = deficiency.current_value
        question = f"Please confirm the {label}"

        if field_name == "amount" and record.vat_inclusive is True and record.gross_amount is not None:
            # Answers for amount are read as gross while the flag is inclusive
            current = record.gross_amount
            question = f"Please confirm the {label} (including VAT)"
        elif field_name == "amount" and record.vat_inclusive is False:
            question = f"Please confirm the {label} (excluding VAT)"

        if deficiency.ambiguous:
            hint = "The document allows more than one reading of this value"
        elif deficiency.confidence is not None:
            hint = f"Extracted with {deficiency.confidence:.0%} confidence"
        else:
            hint = None

        return Question(
            field_name=field_name,
            question=question,
            input_type=InputType.CONFIRM_OR_CORRECT,
            current_value=current,
            hint=hint,
        )

    def category(self) -> Question:
        return Question(
            field_name="category",
            question="Which expense category does this invoice belong to?",
            input_type=InputType.SELECT,
            hint="Pick the closest match",
            options=CATEGORY_OPTIONS,
        )
