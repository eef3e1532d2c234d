"""
VAT year summary (dashboard insight).
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from ..schemas.document_record import DocumentRecord
from ..vat import round_money


@dataclass(frozen=True)
class VATSummary:
    """VAT totals for one calendar year in one currency."""

    year: int
    vat_total: Decimal
    invoice_count: int
    invoices_with_vat_count: int
    missing_vat_count: int
    estimated_missing_vat_total: Decimal
    currency: str

    def to_dict(self) -> dict:
        return {
            "year": self.year,
            "vat_total": str(self.vat_total),
            "invoice_count": self.invoice_count,
            "invoices_with_vat_count": self.invoices_with_vat_count,
            "missing_vat_count": self.missing_vat_count,
            "estimated_missing_vat_total": str(self.estimated_missing_vat_total),
            "currency": self.currency,
        }


def summarize_vat(
    records: Iterable[DocumentRecord],
    year: int,
    rate: Decimal = Decimal("0.05"),
    currency: str = "AED",
) -> VATSummary:
    """
    Summarize VAT for records dated in `year` and billed in `currency`.

    Records without a VAT amount count as missing; those with an amount add
    round(amount * rate, 2) to the estimate.
    """
    vat_total = Decimal("0.00")
    estimated_missing = Decimal("0.00")
    invoice_count = 0
    with_vat = 0

    for record in records:
        if record.date is None or record.date.year != year or record.currency != currency:
            continue
        invoice_count += 1
        tax: Optional[Decimal] = record.tax_amount
        if tax is not None:
            with_vat += 1
            vat_total += tax
        elif record.amount is not None:
            estimated_missing += round_money(record.amount * rate)

    return VATSummary(
        year=year,
        vat_total=round_money(vat_total),
        invoice_count=invoice_count,
        invoices_with_vat_count=with_vat,
        missing_vat_count=invoice_count - with_vat,
        estimated_missing_vat_total=round_money(estimated_missing),
        currency=currency,
    )
