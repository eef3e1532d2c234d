"""
Invoice → Extraction → Normalization → VAT → Human-in-the-loop review

A deterministic, testable pipeline that turns OCR/LLM extractions of invoices
and receipts into validated records, reconciles UAE VAT figures, asks targeted
review questions when the extraction cannot be trusted, and mines the record
set for recurring vendor charges.
"""

__version__ = "0.1.0"
