"""
Canonical document record (SSOT).

This is THE single source of truth for an ingested invoice/receipt.
The Normalizer creates it, the Validator and Resolution Merger mutate
status/questions/fields, and the payment flag has its own narrow update path.

Invariants:
- status == NEEDS_REVIEW  <=>  review_questions is non-empty
- amount always means the NET amount once VAT has been resolved
- id is immutable once assigned by the state store
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from .field_values import FIELD_KINDS, Category, FieldValue, from_json_value, to_json_value
from .questions import Question


class RecordStatus(str, Enum):
    """
    Review status of a record.

    OK: trustworthy for downstream accounting use
    NEEDS_REVIEW: at least one open review question
    """

    OK = "ok"
    NEEDS_REVIEW = "needs_review"


@dataclass(frozen=True)
class ParseFailure:
    """A raw extracted value that could not be typed (recorded, never raised)."""

    field_name: str
    raw_value: Any
    reason: str

    def to_dict(self) -> dict:
        raw = self.raw_value
        if raw is not None and not isinstance(raw, (str, int, float, bool)):
            raw = str(raw)
        return {"field_name": self.field_name, "raw_value": raw, "reason": self.reason}


@dataclass
class DocumentRecord:
    """
    CANONICAL document record.

    Extracted fields are typed (Decimal, date, Category, tri-state bools);
    None always means "unknown".
    """

    # Identity (assigned by the state store)
    id: Optional[int] = None

    # Extracted fields
    vendor: Optional[str] = None
    date: Optional[date] = None
    amount: Optional[Decimal] = None  # Net once VAT is resolved
    currency: str = "AED"
    tax_amount: Optional[Decimal] = None
    category: Optional[Category] = None
    is_paid: Optional[bool] = None
    transaction_type: Optional[str] = None
    notes: Optional[str] = None

    # Control fields
    status: RecordStatus = RecordStatus.NEEDS_REVIEW
    review_reason: Optional[str] = None
    review_questions: list[Question] = field(default_factory=list)
    vat_inclusive: Optional[bool] = None
    reviewed: bool = False  # Set once a human resolved or approved the record

    # Extractor signals (kept for re-validation after merges)
    field_confidence: dict[str, float] = field(default_factory=dict)
    ambiguous_fields: list[str] = field(default_factory=list)
    parse_failures: list[ParseFailure] = field(default_factory=list)

    # Provenance
    source_ref: Optional[str] = None
    extraction_strategy: str = ""
    created_at: str = ""  # ISO timestamp

    # Optimistic concurrency token (0 = never persisted)
    version: int = 0

    @property
    def gross_amount(self) -> Optional[Decimal]:
        """Net + VAT; derivable, never stored."""
        if self.amount is None or self.tax_amount is None:
            return None
        return self.amount + self.tax_amount

    @property
    def question_fields(self) -> list[str]:
        return [q.field_name for q in self.review_questions]

    def get_field(self, field_name: str) -> Any:
        if field_name not in FIELD_KINDS:
            raise KeyError(field_name)
        return getattr(self, field_name)

    def apply(self, field_name: str, value: FieldValue) -> None:
        """Assign a typed value to a field (kind must match the field)."""
        expected = FIELD_KINDS.get(field_name)
        if expected is None:
            raise KeyError(field_name)
        if value.kind != expected:
            raise ValueError(
                f"Field '{field_name}' expects {expected.value}, got {value.kind.value}"
            )
        setattr(self, field_name, value.value)

    def mark_confirmed(self, field_name: str) -> None:
        """Record that a human supplied or confirmed this field."""
        self.field_confidence[field_name] = 1.0
        if field_name in self.ambiguous_fields:
            self.ambiguous_fields.remove(field_name)

    def copy(self) -> DocumentRecord:
        """Deep copy (merges work on copies so failures never leak)."""
        return copy.deepcopy(self)

    def fields_equal(self, other: DocumentRecord) -> bool:
        """Compare extracted and control fields, ignoring identity/provenance."""
        return self.to_dict(include_identity=False) == other.to_dict(include_identity=False)

    def to_dict(self, include_identity: bool = True) -> dict:
        """Serialize to dictionary for JSON storage."""
        data = {
            "vendor": self.vendor,
            "date": to_json_value(self.date),
            "amount": to_json_value(self.amount),
            "currency": self.currency,
            "tax_amount": to_json_value(self.tax_amount),
            "category": to_json_value(self.category),
            "is_paid": self.is_paid,
            "transaction_type": self.transaction_type,
            "notes": self.notes,
            "status": self.status.value,
            "review_reason": self.review_reason,
            "review_questions": [q.to_dict() for q in self.review_questions],
            "vat_inclusive": self.vat_inclusive,
            "reviewed": self.reviewed,
            "field_confidence": dict(self.field_confidence),
            "ambiguous_fields": list(self.ambiguous_fields),
            "parse_failures": [pf.to_dict() for pf in self.parse_failures],
        }
        if include_identity:
            data.update(
                {
                    "id": self.id,
                    "source_ref": self.source_ref,
                    "extraction_strategy": self.extraction_strategy,
                    "created_at": self.created_at,
                    "version": self.version,
                }
            )
        return data

    @classmethod
    def from_dict(cls, data: dict) -> DocumentRecord:
        """Deserialize from dictionary."""
        return cls(
            id=data.get("id"),
            vendor=data.get("vendor"),
            date=from_json_value("date", data.get("date")),
            amount=Decimal(data["amount"]) if data.get("amount") is not None else None,
            currency=data.get("currency") or "AED",
            tax_amount=(
                Decimal(data["tax_amount"]) if data.get("tax_amount") is not None else None
            ),
            category=Category.from_text(data.get("category")),
            is_paid=data.get("is_paid"),
            transaction_type=data.get("transaction_type"),
            notes=data.get("notes"),
            status=RecordStatus(data.get("status", RecordStatus.NEEDS_REVIEW.value)),
            review_reason=data.get("review_reason"),
            review_questions=[Question.from_dict(q) for q in data.get("review_questions", [])],
            vat_inclusive=data.get("vat_inclusive"),
            reviewed=bool(data.get("reviewed", False)),
            field_confidence={
                k: float(v) for k, v in (data.get("field_confidence") or {}).items()
            },
            ambiguous_fields=list(data.get("ambiguous_fields") or []),
            parse_failures=[
                ParseFailure(
                    field_name=pf["field_name"],
                    raw_value=pf.get("raw_value"),
                    reason=pf.get("reason", ""),
                )
                for pf in data.get("parse_failures") or []
            ],
            source_ref=data.get("source_ref"),
            extraction_strategy=data.get("extraction_strategy", ""),
            created_at=data.get("created_at", ""),
            version=data.get("version", 0),
        )
