"""Test fixtures and utilities."""

import json
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from invoice_review.config import Config
from invoice_review.schemas import Category, DocumentRecord

# Field map as delivered by an upstream OCR/LLM step
SAMPLE_DEWA_FIELD_MAP = {
    "fields": {
        "vendor": {"value": "dubai electricity & water authority", "confidence": 0.95},
        "date": {"value": "01/03/2024", "confidence": 0.9},
        "amount": {"value": "1,050.00", "confidence": 0.92},
        "currency": {"value": "aed", "confidence": 0.99},
        "tax_amount": {"value": "50.00", "confidence": 0.85},
        "vat_inclusive": {"value": True, "confidence": 0.9},
        "transaction_type": {"value": "invoice", "confidence": 0.8},
    }
}

SAMPLE_UNCERTAIN_FIELD_MAP = {
    "fields": {
        "vendor": {"value": "Al Noor Trading LLC", "confidence": 0.45},
        "date": {"value": "2024-03-10", "confidence": 0.9},
        "amount": {"value": "1000", "confidence": 0.9},
        "vat_inclusive": {"value": True, "confidence": 0.3, "ambiguous": True},
        "category": {"value": "Office Supplies", "confidence": 0.8},
    }
}


@pytest.fixture
def temp_db(tmp_path) -> Path:
    """Temporary database path for testing."""
    return tmp_path / "test_state.db"


@pytest.fixture
def config(temp_db) -> Config:
    """Default configuration pointing at the temporary database."""
    return Config(state_db_path=temp_db)


@pytest.fixture
def dewa_field_map() -> dict:
    """Complete, trustworthy DEWA bill field map."""
    return json.loads(json.dumps(SAMPLE_DEWA_FIELD_MAP))


@pytest.fixture
def uncertain_field_map() -> dict:
    """Field map with a weak vendor reading and an ambiguous VAT flag."""
    return json.loads(json.dumps(SAMPLE_UNCERTAIN_FIELD_MAP))


@pytest.fixture
def complete_record() -> DocumentRecord:
    """Record with every required field and a net VAT amount."""
    return DocumentRecord(
        vendor="Etisalat",
        date=date(2024, 3, 5),
        amount=Decimal("300.00"),
        currency="AED",
        tax_amount=Decimal("15.00"),
        vat_inclusive=False,
        category=Category.TELECOM,
        source_ref="inbox/etisalat-2024-03.pdf",
    )


@pytest.fixture
def vat_ambiguous_record() -> DocumentRecord:
    """Record whose amount is known but not whether it includes VAT."""
    return DocumentRecord(
        vendor="Acme Trading",
        date=date(2024, 3, 1),
        amount=Decimal("1000"),
        category=Category.OFFICE_SUPPLIES,
        source_ref="inbox/acme-0301.pdf",
    )


@pytest.fixture
def missing_vendor_record() -> DocumentRecord:
    """Record with everything except the vendor."""
    return DocumentRecord(
        vendor=None,
        date=date(2024, 3, 1),
        amount=Decimal("200"),
        vat_inclusive=False,
        category=Category.OTHER,
        source_ref="inbox/unknown-vendor.pdf",
    )
