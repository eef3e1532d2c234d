"""
Extraction Job Queue Service.

Provides scheduling and processing of background extraction jobs.

Contracts:
- At most one active (PENDING/PROCESSING) job per source document
- At-least-once delivery: failed jobs are retried up to max_retries, and a
  retry replaces the record for that source instead of duplicating it
- Stuck PROCESSING jobs can be re-dispatched
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Optional

from ..config import QueueConfig
from ..extractors.base import BaseExtractor
from ..schemas.document_record import DocumentRecord
from ..state_store import ExtractionJob, JobStatus, StateStore
from .ingest import IngestPipeline

logger = logging.getLogger(__name__)


class ExtractionQueueService:
    """
    Service for managing the extraction job queue.

    Handles scheduling, processing, retries and stuck-job recovery.
    """

    def __init__(
        self,
        state_store: StateStore,
        pipeline: IngestPipeline,
        config: Optional[QueueConfig] = None,
    ):
        """
        Initialize the extraction queue service.

        Args:
            state_store: State store for job and record persistence
            pipeline: Ingest pipeline run for each job
            config: Queue settings
        """
        self.store = state_store
        self.pipeline = pipeline
        self.config = config or QueueConfig()

    def schedule(self, source_ref: str) -> Optional[int]:
        """
        Schedule extraction for a source document.

        Returns:
            Job ID if scheduled, None if an active job already exists
        """
        job_id = self.store.schedule_extraction_job(
            source_ref, max_retries=self.config.max_retries
        )
        if job_id:
            logger.info("Scheduled extraction job #%s for %s", job_id, source_ref)
        else:
            logger.debug("Extraction job already active for %s", source_ref)
        return job_id

    def process_next(
        self,
        extractor: BaseExtractor,
        text_loader: Callable[[str], str],
    ) -> Optional[DocumentRecord]:
        """
        Process the oldest pending job.

        Args:
            extractor: Extractor to run
            text_loader: Loads document content for a source_ref

        Returns:
            The stored record, None if the queue is empty or the job failed
        """
        jobs = self.store.get_next_extraction_jobs(limit=1)
        if not jobs:
            return None
        return self.process_job(jobs[0], extractor, text_loader)

    def process_job(
        self,
        job: ExtractionJob,
        extractor: BaseExtractor,
        text_loader: Callable[[str], str],
    ) -> Optional[DocumentRecord]:
        """
        Process a single extraction job.

        Returns:
            The stored record if successful, None otherwise
        """
        if not self.store.start_extraction_job(job.id):
            logger.warning("Could not start job #%s - may already be processing", job.id)
            return None

        logger.info("Processing extraction job #%s for %s", job.id, job.source_ref)

        try:
            content = text_loader(job.source_ref)
            draft = self.pipeline.run(extractor, content, source_ref=job.source_ref)
            stored = self.store.upsert_record_for_source(draft)
        except Exception as e:
            status = self.store.fail_extraction_job(job.id, str(e), can_retry=True)
            logger.error(
                "Extraction job #%s failed (%s): %s",
                job.id,
                status.value if status else "unknown",
                e,
            )
            return None

        self.store.complete_extraction_job(job.id, stored.id)
        logger.info(
            "Extraction job #%s completed: record %s (%s)",
            job.id,
            stored.id,
            stored.status.value,
        )
        return stored

    def requeue_stuck(self, older_than: Optional[timedelta] = None) -> int:
        """Re-dispatch PROCESSING jobs started longer ago than older_than."""
        age = older_than
        if age is None:
            age = timedelta(minutes=self.config.stuck_after_minutes)
        count = self.store.requeue_stuck_jobs(datetime.now(timezone.utc) - age)
        if count:
            logger.info("Re-queued %d stuck extraction job(s)", count)
        return count

    def get_queue_stats(self) -> dict[str, int]:
        """Get queue statistics."""
        return self.store.get_queue_stats()

    def is_active(self, source_ref: str) -> bool:
        job = self.store.get_active_job_for_source(source_ref)
        return job is not None and job.status in (JobStatus.PENDING, JobStatus.PROCESSING)
