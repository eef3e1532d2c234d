"""
Review workflow management.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from ..schemas.document_record import DocumentRecord, RecordStatus
from ..schemas.field_values import FIELD_KINDS
from ..state_store import ConcurrentModification, StateStore
from .merger import ResolutionMerger

logger = logging.getLogger(__name__)


@dataclass
class ReviewResult:
    """Result of resolving a record."""

    record: DocumentRecord
    changes_made: list[str] = field(default_factory=list)  # Fields whose value changed

    @property
    def resolved(self) -> bool:
        return self.record.status == RecordStatus.OK


class ReviewWorkflow:
    """
    Manages the review workflow against the state store.

    Responsibilities:
    - List records waiting for review
    - Resolve records with answers (single writer per record via versioning)
    - Approve records as-is
    - Update the payment flag
    """

    def __init__(self, store: StateStore, merger: Optional[ResolutionMerger] = None):
        """Initialize with state store."""
        self.store = store
        self.merger = merger or ResolutionMerger()

    def get_pending_reviews(self) -> list[DocumentRecord]:
        """Get all records pending review."""
        return self.store.list_records(status=RecordStatus.NEEDS_REVIEW)

    def resolve(
        self,
        record_id: int,
        answers: dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> ReviewResult:
        """
        Apply answers to a stored record.

        Args:
            record_id: Record to resolve
            answers: field_name -> answer value
            expected_version: Version at which the caller read the questions.
                Defaults to the version loaded here.

        Raises:
            RecordNotFound: If the record does not exist
            ReviewAnswerInvalid: If any answer is rejected (nothing written)
            ConcurrentModification: If the record changed since expected_version
        """
        current = self.store.get_record(record_id)
        version = current.version if expected_version is None else expected_version
        if version != current.version:
            # Fail before merging: the questions the caller answered are stale
            raise ConcurrentModification(record_id, version, current.version)

        merged = self.merger.resolve(current, answers)
        changes = [name for name in FIELD_KINDS if merged.get_field(name) != current.get_field(name)]

        if merged.fields_equal(current):
            logger.debug("Resolve of record %s changed nothing", record_id)
            return ReviewResult(record=current, changes_made=[])

        stored = self.store.update_record(merged, expected_version=version)
        logger.info(
            "Resolved record %s -> %s (version %s)",
            record_id,
            stored.status.value,
            stored.version,
        )
        return ReviewResult(record=stored, changes_made=changes)

    def approve(self, record_id: int, expected_version: Optional[int] = None) -> ReviewResult:
        """Approve a record as-is (resolve with no answers)."""
        return self.resolve(record_id, {}, expected_version=expected_version)

    def set_paid(
        self,
        record_id: int,
        is_paid: Optional[bool],
        expected_version: Optional[int] = None,
    ) -> DocumentRecord:
        """
        Set the payment flag (None resets it to unknown).

        Never touches status or review questions.
        """
        record = self.store.get_record(record_id)
        version = record.version if expected_version is None else expected_version
        record.is_paid = is_paid
        stored = self.store.update_record(record, expected_version=version)
        logger.info("Record %s payment status set to %s", record_id, is_paid)
        return stored
