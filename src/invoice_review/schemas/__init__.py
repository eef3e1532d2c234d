"""
SSOT (Single Source of Truth) schemas for the pipeline.

These canonical schemas are the ONLY models used across all modules.
No duplicated "near-same" models allowed.
"""

from .document_record import DocumentRecord, ParseFailure, RecordStatus
from .field_values import (
    FIELD_KINDS,
    FIELD_LABELS,
    Category,
    FieldKind,
    FieldValue,
    parse_bool,
    parse_category,
    parse_date,
    parse_decimal,
    parse_text,
)
from .questions import InputType, Question, QuestionOption

__all__ = [
    # Document record (canonical entity)
    "DocumentRecord",
    "RecordStatus",
    "ParseFailure",
    # Typed field values
    "Category",
    "FieldKind",
    "FieldValue",
    "FIELD_KINDS",
    "FIELD_LABELS",
    "parse_bool",
    "parse_category",
    "parse_date",
    "parse_decimal",
    "parse_text",
    # Review questions
    "InputType",
    "Question",
    "QuestionOption",
]
