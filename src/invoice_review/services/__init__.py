"""
Services layer: ingest pipeline and background extraction queue.
"""

from .extraction_queue import ExtractionQueueService
from .ingest import IngestPipeline, build_pipeline, build_review_workflow

__all__ = [
    "ExtractionQueueService",
    "IngestPipeline",
    "build_pipeline",
    "build_review_workflow",
]
