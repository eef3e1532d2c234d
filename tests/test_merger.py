"""Tests for merging review answers into records."""

from datetime import date
from decimal import Decimal

import pytest

from invoice_review.review import ResolutionMerger, ReviewAnswerInvalid, Validator
from invoice_review.schemas import Category, DocumentRecord, RecordStatus


@pytest.fixture
def merger() -> ResolutionMerger:
    return ResolutionMerger()


@pytest.fixture
def validator(merger) -> Validator:
    return merger.validator


def under_review(validator: Validator, record: DocumentRecord) -> DocumentRecord:
    validator.validate(record)
    assert record.status == RecordStatus.NEEDS_REVIEW
    return record


class TestVATAnswers:
    """Answering the VAT status question."""

    def test_inclusive_with_amount(self, merger, validator, vat_ambiguous_record):
        record = under_review(validator, vat_ambiguous_record)
        merged = merger.resolve(record, {"vat_inclusive": True, "amount": 1000})

        assert merged.amount == Decimal("952.38")
        assert merged.tax_amount == Decimal("47.62")
        assert merged.vat_inclusive is True
        assert merged.status == RecordStatus.OK
        assert merged.review_questions == []

    def test_exclusive(self, merger, validator, vat_ambiguous_record):
        record = under_review(validator, vat_ambiguous_record)
        merged = merger.resolve(record, {"vat_inclusive": "VAT Exclusive"})

        assert merged.amount == Decimal("1000")
        assert merged.tax_amount == Decimal("50.00")
        assert merged.status == RecordStatus.OK

    def test_stale_extracted_tax_cleared(self, merger, validator):
        record = DocumentRecord(
            vendor="Acme",
            date=date(2024, 3, 1),
            amount=Decimal("1000"),
            tax_amount=Decimal("80"),
            category=Category.OTHER,
        )
        under_review(validator, record)
        merged = merger.resolve(record, {"vat_inclusive": False})

        assert merged.tax_amount == Decimal("50.00")

    def test_flag_outside_offered_options(self, merger, validator, vat_ambiguous_record):
        record = under_review(validator, vat_ambiguous_record)

        with pytest.raises(ReviewAnswerInvalid) as exc_info:
            merger.resolve(record, {"vat_inclusive": "perhaps"})
        assert "vat_inclusive" in exc_info.value.errors


class TestRequiredFieldAnswers:
    """Answering missing-field questions."""

    def test_missing_vendor(self, merger, validator, missing_vendor_record):
        record = under_review(validator, missing_vendor_record)
        merged = merger.resolve(record, {"vendor": "Acme"})

        assert merged.vendor == "Acme"
        assert merged.field_confidence["vendor"] == 1.0
        assert merged.status == RecordStatus.OK

    def test_partial_answers_regenerate_questions(self, merger, validator):
        record = under_review(validator, DocumentRecord())
        merged = merger.resolve(record, {"vendor": "DEWA", "date": "2024-03-01"})

        assert merged.vendor == "DEWA"
        assert merged.date == date(2024, 3, 1)
        assert merged.status == RecordStatus.NEEDS_REVIEW
        assert merged.question_fields == ["amount", "vat_inclusive", "category"]

    def test_answers_are_reentrant(self, merger, validator):
        record = under_review(validator, DocumentRecord())
        step = merger.resolve(record, {"vendor": "DEWA", "date": "01/03/2024"})
        step = merger.resolve(step, {"amount": "1,050.00", "vat_inclusive": True})
        final = merger.resolve(step, {"category": "Occupancy & Facilities"})

        assert final.status == RecordStatus.OK
        assert final.amount == Decimal("1000.00")
        assert final.tax_amount == Decimal("50.00")
        assert final.category == Category.OCCUPANCY

    def test_amount_answer_recomputes_tax(self, merger, validator, complete_record):
        complete_record.field_confidence["amount"] = 0.3
        record = under_review(validator, complete_record)
        merged = merger.resolve(record, {"amount": "400"})

        assert merged.amount == Decimal("400")
        assert merged.tax_amount == Decimal("20.00")
        assert merged.status == RecordStatus.OK


class TestLowConfidenceAnswers:
    """Confirming or correcting uncertain values."""

    def test_confirm_consistent_tax(self, merger, validator, complete_record):
        complete_record.field_confidence["tax_amount"] = 0.3
        record = under_review(validator, complete_record)
        merged = merger.resolve(record, {"tax_amount": "15.00"})

        assert merged.tax_amount == Decimal("15.00")
        assert merged.status == RecordStatus.OK

    def test_inconsistent_tax_answer_rejected(self, merger, validator, complete_record):
        """A corrected VAT figure that does not fit the amount is reported, not replaced."""
        complete_record.field_confidence["tax_amount"] = 0.3
        record = under_review(validator, complete_record)
        assert record.question_fields == ["tax_amount"]

        with pytest.raises(ReviewAnswerInvalid) as exc_info:
            merger.resolve(record, {"tax_amount": "40"})

        assert set(exc_info.value.errors) == {"tax_amount"}
        assert "300.00" in exc_info.value.errors["tax_amount"]
        assert record.tax_amount == Decimal("15.00")
        assert record.status == RecordStatus.NEEDS_REVIEW

    def test_confirm_same_value(self, merger, validator, complete_record):
        complete_record.field_confidence["vendor"] = 0.4
        record = under_review(validator, complete_record)
        merged = merger.resolve(record, {"vendor": "Etisalat"})

        assert merged.vendor == "Etisalat"
        assert merged.status == RecordStatus.OK

    def test_correct_ambiguous_date(self, merger, validator, complete_record):
        complete_record.ambiguous_fields.append("date")
        record = under_review(validator, complete_record)
        merged = merger.resolve(record, {"date": "2024-05-03"})

        assert merged.date == date(2024, 5, 3)
        assert merged.ambiguous_fields == []
        assert merged.status == RecordStatus.OK


class TestRejection:
    """Invalid answers reject the whole answer set."""

    def test_unknown_field(self, merger, validator, missing_vendor_record):
        record = under_review(validator, missing_vendor_record)

        with pytest.raises(ReviewAnswerInvalid) as exc_info:
            merger.resolve(record, {"vendor": "Acme", "iban": "AE07"})
        assert exc_info.value.errors == {"iban": "unknown field"}

    def test_field_without_open_question(self, merger, validator, missing_vendor_record):
        record = under_review(validator, missing_vendor_record)

        with pytest.raises(ReviewAnswerInvalid) as exc_info:
            merger.resolve(record, {"vendor": "Acme", "notes": "paid by card"})
        assert exc_info.value.errors == {"notes": "no open question for this field"}

    def test_nothing_applied_on_rejection(self, merger, validator):
        record = under_review(validator, DocumentRecord())
        before = record.copy()

        with pytest.raises(ReviewAnswerInvalid) as exc_info:
            merger.resolve(record, {"vendor": "Acme", "amount": "lots", "date": "someday"})

        assert set(exc_info.value.errors) == {"amount", "date"}
        assert record.fields_equal(before)

    def test_empty_answer(self, merger, validator, missing_vendor_record):
        record = under_review(validator, missing_vendor_record)

        with pytest.raises(ReviewAnswerInvalid) as exc_info:
            merger.resolve(record, {"vendor": "   "})
        assert exc_info.value.errors == {"vendor": "answer is empty"}

    def test_category_must_be_offered(self, merger, validator, complete_record):
        complete_record.category = None
        record = under_review(validator, complete_record)

        with pytest.raises(ReviewAnswerInvalid):
            merger.resolve(record, {"category": "Groceries"})

    def test_negative_amount(self, merger, validator):
        record = under_review(validator, DocumentRecord(vendor="Acme"))

        with pytest.raises(ReviewAnswerInvalid) as exc_info:
            merger.resolve(record, {"amount": "-10"})
        assert "amount" in exc_info.value.errors

    def test_is_value_error(self):
        assert issubclass(ReviewAnswerInvalid, ValueError)


class TestApproval:
    """Empty answers approve the record as it stands."""

    def test_approve_as_is(self, merger, validator, vat_ambiguous_record):
        record = under_review(validator, vat_ambiguous_record)
        merged = merger.resolve(record, {})

        assert merged.status == RecordStatus.OK
        assert merged.review_questions == []
        assert merged.review_reason is None
        assert merged.vat_inclusive is None
        assert merged.tax_amount is None
        assert merged.reviewed is True

    def test_input_record_untouched(self, merger, validator, vat_ambiguous_record):
        record = under_review(validator, vat_ambiguous_record)
        merger.resolve(record, {})

        assert record.status == RecordStatus.NEEDS_REVIEW


class TestOkRecords:
    """Resolving a record that is already ok."""

    def test_answers_are_ignored(self, merger, validator, complete_record):
        validator.validate(complete_record)
        merged = merger.resolve(complete_record, {"vendor": "Someone Else"})

        assert merged.fields_equal(complete_record)
        assert merged.reviewed is False

    def test_empty_answers_on_ok_record(self, merger, validator, complete_record):
        validator.validate(complete_record)

        assert merger.resolve(complete_record, {}).fields_equal(complete_record)

    def test_unknown_fields_still_rejected(self, merger, validator, complete_record):
        validator.validate(complete_record)

        with pytest.raises(ReviewAnswerInvalid):
            merger.resolve(complete_record, {"colour": "blue"})

    def test_resolving_twice_is_stable(self, merger, validator, vat_ambiguous_record):
        record = under_review(validator, vat_ambiguous_record)
        first = merger.resolve(record, {"vat_inclusive": True})
        second = merger.resolve(first, {"vat_inclusive": True})

        assert second.fields_equal(first)
