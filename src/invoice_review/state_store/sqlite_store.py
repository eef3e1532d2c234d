"""
SQLite-based state store implementation.

Tables:
- documents: One row per document record (record JSON + control columns)
- extraction_jobs: Background extraction queue

Records are written with optimistic versioning: every write bumps `version`
and is guarded by `WHERE version = ?`, so a writer holding a stale copy is
rejected instead of silently overwriting newer answers.
"""

import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from ..schemas.document_record import DocumentRecord, RecordStatus

logger = logging.getLogger(__name__)


def _now() -> str:
    return _timestamp(datetime.now(timezone.utc))


def _timestamp(moment: datetime) -> str:
    # Fixed width so stored timestamps compare correctly as strings
    stamp = moment.astimezone(timezone.utc).isoformat(timespec="microseconds")
    return stamp.replace("+00:00", "Z")


class RecordNotFound(LookupError):
    """Raised when a record id does not exist."""

    def __init__(self, record_id: int):
        self.record_id = record_id
        super().__init__(f"Record {record_id} not found")


class ConcurrentModification(Exception):
    """Raised when a record changed since the caller read it."""

    def __init__(self, record_id: int, expected_version: int, actual_version: int):
        self.record_id = record_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Record {record_id} was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )


class JobStatus(str, Enum):
    """Status of an extraction job."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


ACTIVE_JOB_STATUSES = (JobStatus.PENDING.value, JobStatus.PROCESSING.value)


@dataclass
class ExtractionJob:
    """Record of a queued extraction."""

    id: int
    source_ref: str
    status: JobStatus
    scheduled_at: str
    started_at: str | None
    completed_at: str | None
    record_id: int | None
    error_message: str | None
    retry_count: int
    max_retries: int

    @property
    def can_retry(self) -> bool:
        return self.retry_count < self.max_retries

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "ExtractionJob":
        """Create from database row."""
        return cls(
            id=row["id"],
            source_ref=row["source_ref"],
            status=JobStatus(row["status"]),
            scheduled_at=row["scheduled_at"],
            started_at=row["started_at"],
            completed_at=row["completed_at"],
            record_id=row["record_id"],
            error_message=row["error_message"],
            retry_count=row["retry_count"],
            max_retries=row["max_retries"],
        )


def _record_from_row(row: sqlite3.Row) -> DocumentRecord:
    data = json.loads(row["record_json"])
    data.update(
        {
            "id": row["id"],
            "source_ref": row["source_ref"],
            "extraction_strategy": row["extraction_strategy"],
            "created_at": row["created_at"],
            "version": row["version"],
        }
    )
    return DocumentRecord.from_dict(data)


class StateStore:
    """
    SQLite-based state store for the review pipeline.

    Provides persistent tracking of:
    - Document records (versioned)
    - Extraction jobs (at most one active job per source document)

    Thread-safe for single-writer scenarios; concurrent writers to the same
    record are detected through the version column.
    """

    SCHEMA_VERSION = 1

    def __init__(self, db_path: Path | str):
        """
        Initialize state store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection with row factory."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    source_ref TEXT UNIQUE,
                    status TEXT NOT NULL,
                    version INTEGER NOT NULL DEFAULT 1,
                    record_json TEXT NOT NULL,
                    extraction_strategy TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_documents_status ON documents (status)"
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS extraction_jobs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    source_ref TEXT NOT NULL,

                    -- Status: PENDING, PROCESSING, COMPLETED, FAILED
                    status TEXT NOT NULL DEFAULT 'PENDING',

                    scheduled_at TEXT NOT NULL,
                    started_at TEXT,
                    completed_at TEXT,

                    record_id INTEGER,
                    error_message TEXT,

                    -- Retry tracking
                    retry_count INTEGER NOT NULL DEFAULT 0,
                    max_retries INTEGER NOT NULL DEFAULT 3
                )
            """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_extraction_jobs_pending
                ON extraction_jobs (status, scheduled_at)
            """
            )
            # At most one PENDING/PROCESSING job per source document
            conn.execute(
                """
                CREATE UNIQUE INDEX IF NOT EXISTS idx_extraction_jobs_active_source
                ON extraction_jobs (source_ref)
                WHERE status IN ('PENDING', 'PROCESSING')
            """
            )

            conn.execute(
                "INSERT OR IGNORE INTO schema_version (version) VALUES (?)",
                (self.SCHEMA_VERSION,),
            )

    # Record methods

    def save_new_record(self, record: DocumentRecord) -> DocumentRecord:
        """Insert a record. Returns the stored record (id assigned, version 1)."""
        now = _now()
        created_at = record.created_at or now

        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO documents
                (source_ref, status, version, record_json, extraction_strategy, created_at, updated_at)
                VALUES (?, ?, 1, ?, ?, ?, ?)
            """,
                (
                    record.source_ref,
                    record.status.value,
                    json.dumps(record.to_dict(include_identity=False)),
                    record.extraction_strategy,
                    created_at,
                    now,
                ),
            )
            record_id = cursor.lastrowid

        stored = record.copy()
        stored.id = record_id
        stored.version = 1
        stored.created_at = created_at
        logger.info(
            "Stored record %s (source=%s, status=%s)",
            record_id,
            record.source_ref,
            record.status.value,
        )
        return stored

    def upsert_record_for_source(self, record: DocumentRecord) -> DocumentRecord:
        """
        Insert or replace the record extracted from record.source_ref.

        Re-running extraction on the same source replaces the previous draft
        in place (same id, version bumped), so retries never duplicate records.
        A record a human has already reviewed is kept and returned unchanged.
        """
        if not record.source_ref:
            return self.save_new_record(record)

        existing = self.find_record_by_source(record.source_ref)
        if existing is None:
            return self.save_new_record(record)

        if existing.reviewed:
            logger.warning(
                "Record %s for %s was already reviewed; keeping it over the new extraction",
                existing.id,
                record.source_ref,
            )
            return existing

        replacement = record.copy()
        replacement.id = existing.id
        replacement.created_at = existing.created_at
        return self.update_record(replacement, expected_version=existing.version)

    def get_record(self, record_id: int) -> DocumentRecord:
        """Get a record by ID.

        Raises:
            RecordNotFound: If no record has this id
        """
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM documents WHERE id = ?", (record_id,)).fetchone()
        if row is None:
            raise RecordNotFound(record_id)
        return _record_from_row(row)

    def find_record_by_source(self, source_ref: str) -> DocumentRecord | None:
        """Get the record extracted from a source document, if any."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM documents WHERE source_ref = ?", (source_ref,)
            ).fetchone()
            return _record_from_row(row) if row else None

    def list_records(self, status: RecordStatus | None = None) -> list[DocumentRecord]:
        """List records, optionally filtered by status, oldest first."""
        with self._transaction() as conn:
            if status is None:
                rows = conn.execute("SELECT * FROM documents ORDER BY id ASC").fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM documents WHERE status = ? ORDER BY id ASC",
                    (RecordStatus(status).value,),
                ).fetchall()
            return [_record_from_row(row) for row in rows]

    def update_record(
        self, record: DocumentRecord, expected_version: int | None = None
    ) -> DocumentRecord:
        """
        Write a record back, guarded by its version.

        Args:
            record: Record to store (must have an id)
            expected_version: Version the caller read; defaults to record.version

        Returns:
            The stored record with its new version

        Raises:
            RecordNotFound: If the record does not exist
            ConcurrentModification: If the stored version differs
        """
        if record.id is None:
            raise ValueError("Cannot update a record that was never stored")
        expected = record.version if expected_version is None else expected_version

        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE documents
                SET status = ?, record_json = ?, extraction_strategy = ?,
                    version = version + 1, updated_at = ?
                WHERE id = ? AND version = ?
            """,
                (
                    record.status.value,
                    json.dumps(record.to_dict(include_identity=False)),
                    record.extraction_strategy,
                    _now(),
                    record.id,
                    expected,
                ),
            )
            if cursor.rowcount == 0:
                row = conn.execute(
                    "SELECT version FROM documents WHERE id = ?", (record.id,)
                ).fetchone()
                if row is None:
                    raise RecordNotFound(record.id)
                raise ConcurrentModification(record.id, expected, row["version"])

        stored = record.copy()
        stored.version = expected + 1
        logger.debug("Updated record %s to version %s", record.id, stored.version)
        return stored

    def delete_record(self, record_id: int) -> bool:
        """Delete a record. Returns True if a row was removed."""
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM documents WHERE id = ?", (record_id,))
            deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Deleted record %s", record_id)
        return deleted

    # Extraction job methods

    def schedule_extraction_job(self, source_ref: str, max_retries: int = 3) -> int | None:
        """
        Queue an extraction for a source document.

        Returns:
            Job ID if scheduled, None if an active job already exists
        """
        try:
            with self._transaction() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO extraction_jobs (source_ref, status, scheduled_at, max_retries)
                    VALUES (?, ?, ?, ?)
                """,
                    (source_ref, JobStatus.PENDING.value, _now(), max_retries),
                )
                return cursor.lastrowid
        except sqlite3.IntegrityError:
            return None

    def get_extraction_job(self, job_id: int) -> ExtractionJob | None:
        """Get a job by ID."""
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM extraction_jobs WHERE id = ?", (job_id,)).fetchone()
            return ExtractionJob.from_row(row) if row else None

    def get_active_job_for_source(self, source_ref: str) -> ExtractionJob | None:
        """Get the PENDING/PROCESSING job for a source document, if any."""
        with self._transaction() as conn:
            row = conn.execute(
                """
                SELECT * FROM extraction_jobs
                WHERE source_ref = ? AND status IN (?, ?)
            """,
                (source_ref, *ACTIVE_JOB_STATUSES),
            ).fetchone()
            return ExtractionJob.from_row(row) if row else None

    def get_next_extraction_jobs(self, limit: int = 1) -> list[ExtractionJob]:
        """Get pending jobs, oldest first."""
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT * FROM extraction_jobs
                WHERE status = ?
                ORDER BY scheduled_at ASC, id ASC
                LIMIT ?
            """,
                (JobStatus.PENDING.value, limit),
            ).fetchall()
            return [ExtractionJob.from_row(row) for row in rows]

    def start_extraction_job(self, job_id: int) -> bool:
        """Mark a PENDING job as PROCESSING. Returns False if it was not pending."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE extraction_jobs
                SET status = ?, started_at = ?
                WHERE id = ? AND status = ?
            """,
                (JobStatus.PROCESSING.value, _now(), job_id, JobStatus.PENDING.value),
            )
            return cursor.rowcount > 0

    def complete_extraction_job(self, job_id: int, record_id: int) -> None:
        """Mark a job as COMPLETED and link the record it produced."""
        with self._transaction() as conn:
            conn.execute(
                """
                UPDATE extraction_jobs
                SET status = ?, completed_at = ?, record_id = ?, error_message = NULL
                WHERE id = ?
            """,
                (JobStatus.COMPLETED.value, _now(), record_id, job_id),
            )

    def fail_extraction_job(
        self, job_id: int, error_message: str, can_retry: bool = True
    ) -> JobStatus | None:
        """
        Record a job failure.

        The job goes back to PENDING while retries remain, else FAILED.

        Returns:
            The job's new status, None if the job does not exist
        """
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT retry_count, max_retries FROM extraction_jobs WHERE id = ?", (job_id,)
            ).fetchone()
            if row is None:
                return None

            retry_count = row["retry_count"] + 1
            status = (
                JobStatus.PENDING
                if can_retry and retry_count < row["max_retries"]
                else JobStatus.FAILED
            )
            conn.execute(
                """
                UPDATE extraction_jobs
                SET status = ?, error_message = ?, retry_count = ?,
                    started_at = NULL, completed_at = ?
                WHERE id = ?
            """,
                (
                    status.value,
                    error_message,
                    retry_count,
                    _now() if status == JobStatus.FAILED else None,
                    job_id,
                ),
            )
            return status

    def requeue_stuck_jobs(self, started_before: datetime) -> int:
        """Put PROCESSING jobs started before the cutoff back to PENDING."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE extraction_jobs
                SET status = ?, started_at = NULL
                WHERE status = ? AND started_at < ?
            """,
                (JobStatus.PENDING.value, JobStatus.PROCESSING.value, _timestamp(started_before)),
            )
            return cursor.rowcount

    def get_queue_stats(self) -> dict[str, int]:
        """Count jobs per status."""
        stats = {status.value.lower(): 0 for status in JobStatus}
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT status, COUNT(*) as count FROM extraction_jobs GROUP BY status"
            ).fetchall()
        for row in rows:
            stats[row["status"].lower()] = row["count"]
        return stats

    # Statistics

    def get_stats(self) -> dict[str, Any]:
        """Get pipeline statistics."""
        with self._transaction() as conn:
            total = conn.execute("SELECT COUNT(*) as count FROM documents").fetchone()
            needs_review = conn.execute(
                "SELECT COUNT(*) as count FROM documents WHERE status = ?",
                (RecordStatus.NEEDS_REVIEW.value,),
            ).fetchone()
            ok = conn.execute(
                "SELECT COUNT(*) as count FROM documents WHERE status = ?",
                (RecordStatus.OK.value,),
            ).fetchone()

        queue = self.get_queue_stats()
        return {
            "records_total": total["count"] if total else 0,
            "needs_review": needs_review["count"] if needs_review else 0,
            "ok": ok["count"] if ok else 0,
            "jobs_pending": queue["pending"],
            "jobs_processing": queue["processing"],
            "jobs_failed": queue["failed"],
        }
