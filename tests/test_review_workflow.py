"""Tests for the store-backed review workflow."""

from decimal import Decimal

import pytest

from invoice_review.normalization import Normalizer
from invoice_review.review import ReviewAnswerInvalid, ReviewWorkflow, Validator
from invoice_review.schemas import RecordStatus
from invoice_review.state_store import ConcurrentModification, RecordNotFound, StateStore


@pytest.fixture
def store(temp_db) -> StateStore:
    return StateStore(temp_db)


@pytest.fixture
def workflow(store) -> ReviewWorkflow:
    return ReviewWorkflow(store)


@pytest.fixture
def pending(store, vat_ambiguous_record):
    """A stored record waiting for its VAT status."""
    Validator().validate(vat_ambiguous_record)
    return store.save_new_record(vat_ambiguous_record)


class TestPendingReviews:
    """Tests for listing records under review."""

    def test_lists_only_needs_review(self, store, workflow, pending, complete_record):
        Validator().validate(complete_record)
        store.save_new_record(complete_record)

        assert [r.id for r in workflow.get_pending_reviews()] == [pending.id]


class TestResolve:
    """Tests for resolving stored records."""

    def test_resolve_persists_and_bumps_version(self, store, workflow, pending):
        result = workflow.resolve(pending.id, {"vat_inclusive": True})

        assert result.resolved
        assert result.record.version == 2
        assert set(result.changes_made) == {"amount", "tax_amount", "vat_inclusive"}

        stored = store.get_record(pending.id)
        assert stored.status == RecordStatus.OK
        assert stored.amount == Decimal("952.38")
        assert stored.tax_amount == Decimal("47.62")

    def test_partial_resolve_keeps_reviewing(self, store, workflow):
        draft = Normalizer().scaffold(source_ref="inbox/blank.pdf")
        Validator().validate(draft)
        stored = store.save_new_record(draft)

        result = workflow.resolve(stored.id, {"vendor": "DEWA"})

        assert not result.resolved
        assert result.changes_made == ["vendor"]
        assert "vendor" not in result.record.question_fields

    def test_stale_version_rejected_before_merge(self, store, workflow, pending):
        workflow.resolve(pending.id, {"vat_inclusive": False})

        with pytest.raises(ConcurrentModification) as exc_info:
            workflow.resolve(pending.id, {"vat_inclusive": True}, expected_version=pending.version)

        assert exc_info.value.actual_version == 2
        assert store.get_record(pending.id).vat_inclusive is False

    def test_invalid_answers_write_nothing(self, store, workflow, pending):
        with pytest.raises(ReviewAnswerInvalid):
            workflow.resolve(pending.id, {"vat_inclusive": "sometimes"})

        stored = store.get_record(pending.id)
        assert stored.version == 1
        assert stored.status == RecordStatus.NEEDS_REVIEW

    def test_unknown_record(self, workflow):
        with pytest.raises(RecordNotFound):
            workflow.resolve(404, {"vendor": "Acme"})

    def test_noop_resolve_does_not_write(self, store, workflow, complete_record):
        Validator().validate(complete_record)
        stored = store.save_new_record(complete_record)

        result = workflow.resolve(stored.id, {"vendor": "Etisalat"})

        assert result.changes_made == []
        assert store.get_record(stored.id).version == 1


class TestApprove:
    """Tests for approving records as-is."""

    def test_approve(self, store, workflow, pending):
        result = workflow.approve(pending.id, expected_version=1)

        assert result.resolved
        assert result.changes_made == []
        stored = store.get_record(pending.id)
        assert stored.status == RecordStatus.OK
        assert stored.review_questions == []
        assert stored.vat_inclusive is None


class TestSetPaid:
    """Tests for the payment flag path."""

    def test_set_paid_keeps_review_state(self, store, workflow, pending):
        updated = workflow.set_paid(pending.id, True)

        assert updated.is_paid is True
        stored = store.get_record(pending.id)
        assert stored.is_paid is True
        assert stored.status == RecordStatus.NEEDS_REVIEW
        assert stored.question_fields == ["vat_inclusive"]

    def test_reset_to_unknown(self, store, workflow, pending):
        workflow.set_paid(pending.id, False)
        workflow.set_paid(pending.id, None)

        assert store.get_record(pending.id).is_paid is None

    def test_stale_version(self, workflow, pending):
        workflow.set_paid(pending.id, True)

        with pytest.raises(ConcurrentModification):
            workflow.set_paid(pending.id, False, expected_version=1)
