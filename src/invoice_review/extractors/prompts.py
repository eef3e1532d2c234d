"""Prompt templates for LLM field extraction.

Prompts are versioned so stored extractions can be traced to the template
that produced them.
"""

from __future__ import annotations

from dataclasses import dataclass

# v1.0: Initial UAE invoice/receipt extraction prompt
PROMPT_VERSION = "v1.0"


@dataclass
class ExtractionPrompt:
    """Prompt template for invoice/receipt field extraction.

    Attributes:
        version: Prompt version for provenance.
        system_prompt: System message setting LLM behavior.
        user_template: Template for user message with placeholders.
    """

    version: str = PROMPT_VERSION

    system_prompt: str = """You extract structured fields from UAE invoices and receipts.

Rules:
1. Only report values that are printed on the document
2. Use null when a field is missing or unreadable
3. Dates use YYYY-MM-DD
4. Amounts are plain numbers without currency symbols or thousands separators
5. vat_inclusive is true when the amount includes VAT, false when VAT is added on top,
   null when the document does not say
6. Give every field a confidence from 0.0 to 1.0 and set ambiguous to true when
   several readings are plausible

Respond in JSON format:
{
    "vendor": {"value": "DEWA", "confidence": 0.9, "ambiguous": false},
    "date": {"value": "2024-03-01", "confidence": 0.8, "ambiguous": false},
    "amount": {"value": "1050.00", "confidence": 0.7, "ambiguous": false},
    "currency": {"value": "AED", "confidence": 0.95, "ambiguous": false},
    "tax_amount": {"value": "50.00", "confidence": 0.6, "ambiguous": false},
    "vat_inclusive": {"value": true, "confidence": 0.5, "ambiguous": true},
    "category": {"value": "Occupancy & Facilities", "confidence": 0.6, "ambiguous": false},
    "transaction_type": {"value": "invoice", "confidence": 0.8, "ambiguous": false}
}"""

    user_template: str = """Extract the fields from this document.

Allowed categories:
{categories}

Document text:
---
{content}
---

Provide the fields in JSON format."""

    def format_user_message(self, content: str, categories: list[str], max_chars: int = 6000) -> str:
        """Format the user message; long documents are truncated."""
        text = content.strip() if content else ""
        if len(text) > max_chars:
            text = text[:max_chars] + "\n[...truncated]"
        return self.user_template.format(
            categories="\n".join(f"- {c}" for c in categories),
            content=text or "(empty document)",
        )
