"""
Typed field values (SSOT for field typing).

Raw extractor output and review answers arrive as loosely typed JSON.
Every value crosses into a DocumentRecord through FieldValue.coerce(), which
tags it with a FieldKind and converts it exactly once.

Parsers raise ValueError on failure; callers decide whether that is a
recorded parse failure (Normalizer) or a rejected answer (Resolution Merger).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any


class FieldKind(str, Enum):
    """Type tag of a record field."""

    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"
    CATEGORY = "category"


class Category(str, Enum):
    """Closed set of UAE business expense categories."""

    OCCUPANCY = "Occupancy & Facilities"
    TELECOM = "Telecom & Connectivity"
    TRAVEL = "Travel & Transport"
    IT_SOFTWARE = "IT, Software & Cloud"
    PROFESSIONAL = "Professional, Banking & Insurance"
    OFFICE_SUPPLIES = "Office Supplies"
    MARKETING = "Marketing & Advertising"
    OTHER = "Other Business Expenses"

    @classmethod
    def from_text(cls, text: str | None) -> Category | None:
        """Match a category by its display name (case/whitespace-insensitive)."""
        if not text:
            return None
        wanted = " ".join(str(text).split()).lower()
        for category in cls:
            if category.value.lower() == wanted:
                return category
        return None


# Answerable/extractable record fields and their kinds
FIELD_KINDS: dict[str, FieldKind] = {
    "vendor": FieldKind.TEXT,
    "date": FieldKind.DATE,
    "amount": FieldKind.NUMBER,
    "currency": FieldKind.TEXT,
    "tax_amount": FieldKind.NUMBER,
    "category": FieldKind.CATEGORY,
    "vat_inclusive": FieldKind.BOOLEAN,
    "is_paid": FieldKind.BOOLEAN,
    "transaction_type": FieldKind.TEXT,
    "notes": FieldKind.TEXT,
}

# Human-facing names used in questions and review reasons
FIELD_LABELS: dict[str, str] = {
    "vendor": "vendor",
    "date": "invoice date",
    "amount": "amount",
    "currency": "currency",
    "tax_amount": "VAT amount",
    "category": "category",
    "vat_inclusive": "VAT status",
    "is_paid": "payment status",
    "transaction_type": "transaction type",
    "notes": "notes",
}

_TRUE_STRINGS = {"true", "yes", "y", "1", "inclusive", "vat inclusive", "paid"}
_FALSE_STRINGS = {"false", "no", "n", "0", "exclusive", "vat exclusive", "unpaid"}

_DATE_FORMATS = (
    "%Y-%m-%d",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%d.%m.%Y",
    "%Y/%m/%d",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d, %Y",
    "%B %d, %Y",
)

_CURRENCY_NOISE = re.compile(r"(?i)\b(aed|dhs?|usd|eur|gbp|sar)\b|[$€£]")


def parse_text(raw: Any) -> str:
    """Normalize whitespace; empty text is not a value."""
    if raw is None:
        raise ValueError("empty text")
    text = " ".join(str(raw).split())
    if not text:
        raise ValueError("empty text")
    return text


def parse_decimal(raw: Any) -> Decimal:
    """Parse a non-negative monetary amount.

    Accepts numbers and strings like "1,234.50", "AED 99", "99.90 Dhs".
    """
    if raw is None or isinstance(raw, bool):
        raise ValueError(f"not a number: {raw!r}")
    if isinstance(raw, Decimal):
        value = raw
    elif isinstance(raw, (int, float)):
        value = Decimal(str(raw))
    else:
        cleaned = _CURRENCY_NOISE.sub("", str(raw)).replace(",", "").replace(" ", "").strip()
        if not cleaned:
            raise ValueError(f"not a number: {raw!r}")
        try:
            value = Decimal(cleaned)
        except InvalidOperation as e:
            raise ValueError(f"not a number: {raw!r}") from e

    if not value.is_finite():
        raise ValueError(f"not a finite number: {raw!r}")
    if value < 0:
        raise ValueError(f"amount must not be negative: {raw!r}")
    return value


def parse_date(raw: Any) -> date:
    """Parse a calendar date from ISO or common day-first invoice formats."""
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if raw is None:
        raise ValueError("empty date")

    text = str(raw).strip()
    if not text:
        raise ValueError("empty date")
    # ISO timestamps: keep the date part
    if len(text) > 10 and text[4:5] == "-" and text[10:11] in ("T", " "):
        text = text[:10]

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"unrecognized date: {raw!r}")


def parse_bool(raw: Any) -> bool:
    """Parse a boolean from JSON booleans or "true"/"false"-like strings."""
    if isinstance(raw, bool):
        return raw
    if raw is None:
        raise ValueError("empty boolean")
    text = str(raw).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise ValueError(f"not a boolean: {raw!r}")


def parse_category(raw: Any) -> Category:
    """Parse one of the closed categories."""
    if isinstance(raw, Category):
        return raw
    category = Category.from_text(raw)
    if category is None:
        raise ValueError(f"unknown category: {raw!r}")
    return category


_PARSERS = {
    FieldKind.TEXT: parse_text,
    FieldKind.NUMBER: parse_decimal,
    FieldKind.DATE: parse_date,
    FieldKind.BOOLEAN: parse_bool,
    FieldKind.CATEGORY: parse_category,
}


@dataclass(frozen=True)
class FieldValue:
    """A record field value tagged with its kind."""

    kind: FieldKind
    value: Any

    @classmethod
    def coerce(cls, kind: FieldKind, raw: Any) -> FieldValue:
        """Convert a raw value to the given kind.

        Raises:
            ValueError: If the raw value cannot be typed
        """
        parser = _PARSERS.get(kind)
        if parser is None:
            raise ValueError(f"Unhandled field kind: {kind}")
        return cls(kind=kind, value=parser(raw))

    @classmethod
    def for_field(cls, field_name: str, raw: Any) -> FieldValue:
        """Coerce a raw value using the kind registered for field_name."""
        kind = FIELD_KINDS.get(field_name)
        if kind is None:
            raise ValueError(f"Unknown field: {field_name}")
        return cls.coerce(kind, raw)


def to_json_value(value: Any) -> Any:
    """Serialize a typed value for JSON storage/transport."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    return value


def from_json_value(field_name: str, value: Any) -> Any:
    """Restore the typed value of a field from its JSON form (lenient)."""
    if value is None:
        return None
    kind = FIELD_KINDS.get(field_name)
    if kind is None:
        return value
    try:
        return FieldValue.coerce(kind, value).value
    except ValueError:
        return value
