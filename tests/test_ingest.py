"""Tests for the ingest pipeline."""

import json
from datetime import date
from decimal import Decimal

import pytest

from invoice_review.config import Config, NormalizationConfig, VATConfig
from invoice_review.extractors import ExtractionResult, FieldMapExtractor
from invoice_review.schemas import Category, RecordStatus
from invoice_review.services import IngestPipeline, build_pipeline, build_review_workflow
from invoice_review.state_store import StateStore


@pytest.fixture
def pipeline() -> IngestPipeline:
    return IngestPipeline()


class TestIngest:
    """End-to-end drafts from field maps."""

    def test_dewa_bill_is_ok(self, pipeline, dewa_field_map):
        record = pipeline.run(
            FieldMapExtractor(), json.dumps(dewa_field_map), source_ref="inbox/dewa.pdf"
        )

        assert record.vendor == "DEWA"
        assert record.date == date(2024, 3, 1)
        assert record.amount == Decimal("1000.00")
        assert record.tax_amount == Decimal("50.00")
        assert record.vat_inclusive is True
        assert record.category == Category.OCCUPANCY
        assert record.status == RecordStatus.OK
        assert record.source_ref == "inbox/dewa.pdf"
        assert record.extraction_strategy == "field_map"

    def test_uncertain_fields_need_review(self, pipeline, uncertain_field_map):
        record = pipeline.run(FieldMapExtractor(), json.dumps(uncertain_field_map))

        assert record.status == RecordStatus.NEEDS_REVIEW
        assert record.question_fields == ["vat_inclusive", "vendor"]
        assert record.review_reason == "Missing VAT status; Please confirm vendor"
        assert record.tax_amount is None

    def test_unavailable_extraction_yields_scaffold(self, pipeline):
        record = pipeline.run(FieldMapExtractor(), "{broken", source_ref="inbox/scan.pdf")

        assert record.status == RecordStatus.NEEDS_REVIEW
        assert record.extraction_strategy == "unavailable"
        assert record.source_ref == "inbox/scan.pdf"
        assert record.question_fields == ["vendor", "amount", "date", "vat_inclusive", "category"]

    def test_same_input_same_draft(self, pipeline, uncertain_field_map):
        content = json.dumps(uncertain_field_map)
        first = pipeline.run(FieldMapExtractor(), content, created_at="2024-03-10T00:00:00Z")
        second = pipeline.run(FieldMapExtractor(), content, created_at="2024-03-10T00:00:00Z")

        assert first.fields_equal(second)
        assert first.created_at == second.created_at

    def test_parse_failure_becomes_question(self, pipeline):
        extraction = ExtractionResult.from_field_map(
            {"vendor": "Acme", "date": "2024-03-01", "amount": "n/a", "vat_inclusive": False}
        )
        record = pipeline.process_extraction(extraction)

        assert [pf.field_name for pf in record.parse_failures] == ["amount"]
        assert record.question_fields[0] == "amount"


class TestBuildPipeline:
    """Wiring from configuration."""

    def test_configured_rate_and_fallback(self, config: Config):
        config.vat = VATConfig(rate=Decimal("0.10"))
        config.normalization = NormalizationConfig(category_fallback="other")
        pipeline = build_pipeline(config)

        record = pipeline.process_extraction(
            ExtractionResult.from_field_map(
                {"vendor": "Corner Bakery", "date": "2024-03-01", "amount": "100", "vat_inclusive": False}
            )
        )

        assert record.tax_amount == Decimal("10.00")
        assert record.category == Category.OTHER
        assert record.status == RecordStatus.OK

    def test_malformed_rules_rejected(self, config: Config):
        config.normalization = NormalizationConfig(
            category_rules=[{"keywords": [], "category": "Other Business Expenses"}]
        )

        with pytest.raises(ValueError):
            build_pipeline(config)

    def test_review_workflow_shares_vat_settings(self, config: Config, vat_ambiguous_record):
        config.vat = VATConfig(rate=Decimal("0.10"))
        store = StateStore(config.state_db_path)
        workflow = build_review_workflow(config, store)

        workflow.merger.validator.validate(vat_ambiguous_record)
        stored = store.save_new_record(vat_ambiguous_record)
        result = workflow.resolve(stored.id, {"vat_inclusive": False})

        assert result.record.tax_amount == Decimal("100.00")
        assert "10%" in vat_ambiguous_record.review_questions[0].hint
