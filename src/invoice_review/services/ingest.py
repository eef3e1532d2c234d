"""
Ingest pipeline: Extractor -> Normalizer -> VAT Resolver -> Validator.

Deterministic for a given raw input, so re-running it after a partial
failure yields the same record.
"""

import logging
from typing import Optional

from ..config import Config
from ..confidence import ConfidenceScorer, ConfidenceThresholds
from ..extractors.base import BaseExtractor, ExtractionResult, ExtractionUnavailable
from ..normalization import Normalizer, RuleTables
from ..review import QuestionGenerator, ResolutionMerger, ReviewWorkflow, Validator
from ..schemas.document_record import DocumentRecord, ParseFailure
from ..state_store import StateStore
from ..vat import VATResolutionError, VATResolver

logger = logging.getLogger(__name__)


class IngestPipeline:
    """Turns extractor output into a validated DocumentRecord draft."""

    def __init__(
        self,
        normalizer: Optional[Normalizer] = None,
        validator: Optional[Validator] = None,
    ):
        self.normalizer = normalizer or Normalizer()
        self.validator = validator or Validator()
        self.vat_resolver = self.validator.vat_resolver

    def run(
        self,
        extractor: BaseExtractor,
        content: str,
        source_ref: Optional[str] = None,
        created_at: str = "",
    ) -> DocumentRecord:
        """
        Extract, normalize, resolve VAT and validate one document.

        An unavailable extractor yields an all-null scaffold that is
        guaranteed to need review.
        """
        try:
            extraction = extractor.extract(content)
        except ExtractionUnavailable as e:
            logger.warning(
                "Extraction unavailable for %s (%s): %s",
                source_ref or "document",
                e.strategy or extractor.name,
                e,
            )
            draft = self.normalizer.scaffold(source_ref=source_ref, created_at=created_at)
            return self.finalize(draft)

        return self.process_extraction(extraction, source_ref=source_ref, created_at=created_at)

    def process_extraction(
        self,
        extraction: ExtractionResult,
        source_ref: Optional[str] = None,
        created_at: str = "",
    ) -> DocumentRecord:
        draft = self.normalizer.normalize(extraction, source_ref=source_ref, created_at=created_at)
        return self.finalize(draft)

    def finalize(self, draft: DocumentRecord) -> DocumentRecord:
        """Resolve VAT and validate a normalized draft."""
        try:
            self.vat_resolver.apply(draft)
        except VATResolutionError as e:
            # Leave the triple unknown; the Validator asks for it
            logger.warning("VAT resolution failed for %s: %s", draft.source_ref, e)
            draft.parse_failures.append(
                ParseFailure(field_name="amount", raw_value=str(draft.amount), reason=str(e))
            )
            draft.amount = None
            draft.tax_amount = None

        result = self.validator.validate(draft)
        logger.info(
            "Ingested %s: status=%s%s",
            draft.source_ref or "document",
            draft.status.value,
            f" ({result.reason})" if result.reason else "",
        )
        return draft


def build_pipeline(config: Config) -> IngestPipeline:
    """Wire the pipeline from configuration.

    Raises:
        ValueError: If configured rule tables are malformed
    """
    scorer = ConfidenceScorer(
        ConfidenceThresholds(low_confidence=config.review.confidence_threshold)
    )
    vat_resolver = VATResolver(config.vat)
    normalizer = Normalizer(
        rules=RuleTables.from_config(config.normalization),
        config=config.normalization,
        scorer=scorer,
    )
    validator = Validator(
        vat_resolver=vat_resolver,
        scorer=scorer,
        question_generator=QuestionGenerator(vat_rate=config.vat.rate),
    )
    return IngestPipeline(normalizer=normalizer, validator=validator)


def build_review_workflow(config: Config, store: StateStore) -> ReviewWorkflow:
    """Store-backed review workflow sharing the pipeline's validator."""
    pipeline = build_pipeline(config)
    return ReviewWorkflow(store, ResolutionMerger(pipeline.validator))
