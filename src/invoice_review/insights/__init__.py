"""
Read-only insights over document records.
"""

from .recurring import RecurringExpenseCandidate, RecurringExpenseDetector, infer_expense_type
from .vat_summary import VATSummary, summarize_vat

__all__ = [
    "RecurringExpenseCandidate",
    "RecurringExpenseDetector",
    "infer_expense_type",
    "VATSummary",
    "summarize_vat",
]
