"""
CLI runner module.

Provides commands:
- ingest: Run a document through extraction, normalization, VAT and validation
- list / show: Inspect stored records
- resolve / approve: Answer review questions
- mark-paid: Update the payment status
- recurring / vat-summary: Insights
- status: Pipeline statistics
"""

from .main import create_cli, main

__all__ = [
    "create_cli",
    "main",
]
