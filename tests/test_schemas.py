"""Tests for typed field values, questions and the document record."""

import json
from datetime import date
from decimal import Decimal

import pytest

from invoice_review.schemas import (
    Category,
    DocumentRecord,
    FieldKind,
    FieldValue,
    InputType,
    ParseFailure,
    Question,
    QuestionOption,
    RecordStatus,
    parse_bool,
    parse_date,
    parse_decimal,
)


class TestParseDecimal:
    """Tests for monetary amount parsing."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("1,234.50", Decimal("1234.50")),
            ("AED 99", Decimal("99")),
            ("99.90 Dhs", Decimal("99.90")),
            (250, Decimal("250")),
            (12.5, Decimal("12.5")),
            (Decimal("7.25"), Decimal("7.25")),
        ],
    )
    def test_accepted_formats(self, raw, expected):
        assert parse_decimal(raw) == expected

    @pytest.mark.parametrize("raw", ["abc", "", None, True, "-5", "NaN"])
    def test_rejected_values(self, raw):
        with pytest.raises(ValueError):
            parse_decimal(raw)


class TestParseDate:
    """Tests for invoice date parsing."""

    @pytest.mark.parametrize(
        "raw",
        ["2024-03-01", "01/03/2024", "01-03-2024", "01.03.2024", "1 Mar 2024", "2024-03-01T10:15:00Z"],
    )
    def test_accepted_formats(self, raw):
        assert parse_date(raw) == date(2024, 3, 1)

    def test_unrecognized(self):
        with pytest.raises(ValueError):
            parse_date("next tuesday")


class TestParseBool:
    """Tests for tri-state flag parsing."""

    @pytest.mark.parametrize("raw", [True, "true", "Yes", "inclusive", "VAT Inclusive"])
    def test_true_values(self, raw):
        assert parse_bool(raw) is True

    @pytest.mark.parametrize("raw", [False, "false", "no", "exclusive"])
    def test_false_values(self, raw):
        assert parse_bool(raw) is False

    def test_garbage(self):
        with pytest.raises(ValueError):
            parse_bool("maybe")


class TestCategory:
    """Tests for the closed category set."""

    def test_eight_categories(self):
        assert len(list(Category)) == 8

    def test_from_text_is_case_and_space_insensitive(self):
        assert Category.from_text("  telecom &  connectivity ") == Category.TELECOM

    def test_unknown(self):
        assert Category.from_text("Groceries") is None
        assert Category.from_text(None) is None


class TestFieldValue:
    """Tests for kind-tagged coercion."""

    def test_for_field_uses_registered_kind(self):
        value = FieldValue.for_field("amount", "1,000")

        assert value.kind == FieldKind.NUMBER
        assert value.value == Decimal("1000")

    def test_unknown_field(self):
        with pytest.raises(ValueError):
            FieldValue.for_field("iban", "AE07")

    def test_category_coercion(self):
        assert FieldValue.coerce(FieldKind.CATEGORY, "Other Business Expenses").value == Category.OTHER


class TestQuestion:
    """Tests for the question variant invariants."""

    def test_select_requires_options(self):
        with pytest.raises(ValueError):
            Question(field_name="category", question="Which?", input_type=InputType.SELECT)

    def test_only_select_carries_options(self):
        with pytest.raises(ValueError):
            Question(
                field_name="vendor",
                question="Who?",
                input_type=InputType.TEXT,
                options=(QuestionOption(value="x", label="x"),),
            )

    def test_dict_round_trip(self):
        question = Question(
            field_name="amount",
            question="Please confirm the amount",
            input_type=InputType.CONFIRM_OR_CORRECT,
            current_value=Decimal("1050.00"),
            hint="Extracted with 40% confidence",
        )
        restored = Question.from_dict(json.loads(json.dumps(question.to_dict())))

        assert restored == question


class TestDocumentRecord:
    """Tests for the canonical record."""

    def test_defaults_need_review(self):
        record = DocumentRecord()

        assert record.status == RecordStatus.NEEDS_REVIEW
        assert record.currency == "AED"
        assert record.is_paid is None

    def test_gross_amount(self, complete_record):
        assert complete_record.gross_amount == Decimal("315.00")

    def test_apply_checks_kind(self):
        record = DocumentRecord()
        with pytest.raises(ValueError):
            record.apply("amount", FieldValue(kind=FieldKind.TEXT, value="ten"))

    def test_mark_confirmed(self):
        record = DocumentRecord(field_confidence={"vendor": 0.3}, ambiguous_fields=["vendor"])
        record.mark_confirmed("vendor")

        assert record.field_confidence["vendor"] == 1.0
        assert record.ambiguous_fields == []

    def test_json_round_trip(self, complete_record):
        complete_record.parse_failures.append(
            ParseFailure(field_name="currency", raw_value="dollars", reason="not an ISO code")
        )
        complete_record.field_confidence["vendor"] = 0.9
        data = json.loads(json.dumps(complete_record.to_dict()))
        restored = DocumentRecord.from_dict(data)

        assert restored.fields_equal(complete_record)
        assert restored.amount == Decimal("300.00")
        assert restored.date == date(2024, 3, 5)
        assert restored.category == Category.TELECOM
        assert restored.source_ref == complete_record.source_ref

    def test_copy_is_deep(self, complete_record):
        clone = complete_record.copy()
        clone.field_confidence["amount"] = 0.1

        assert "amount" not in complete_record.field_confidence
