"""
State Store (SQLite-based).

Lightweight persistent DB for tracking:
- Document records (with optimistic version column)
- Extraction jobs

Enforces at most one active extraction job per source document.
"""

from .sqlite_store import (
    ConcurrentModification,
    ExtractionJob,
    JobStatus,
    RecordNotFound,
    StateStore,
)

__all__ = [
    "StateStore",
    "ExtractionJob",
    "JobStatus",
    "ConcurrentModification",
    "RecordNotFound",
]
