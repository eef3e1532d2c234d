"""
VAT Resolver (SSOT for tax arithmetic).

Reconciles the triple (amount, tax_amount, vat_inclusive).

Core Invariants:
- After resolution `amount` is the NET amount; gross is amount + tax_amount
- tax_amount == round(net * rate, 2) within tolerance whenever both are present
- Rounding is half-up to 2 places, applied only when a value is derived
- Re-running the resolver on its own output is a no-op

Rules (in order):
1. tax present and consistent with amount under an admissible interpretation:
   keep it; fill an unset flag; a gross reading moves amount to net
2. no tax, flag false (or unset and net-by-policy): tax = round(amount * rate, 2)
3. no tax, flag true: net = round(amount / (1 + rate), 2); tax = amount - net;
   amount := net
4. no tax, no flag: ambiguous, nothing is guessed
An extracted tax that is inconsistent under every admissible interpretation is
discarded in favour of the derived one once the flag is known.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional

from ..config import VATConfig
from ..schemas.document_record import DocumentRecord

logger = logging.getLogger(__name__)

# Rounding precision for currency amounts
CURRENCY_PRECISION = Decimal("0.01")


class VATResolutionError(ValueError):
    """Raised when the VAT triple cannot be reconciled (e.g. negative amounts)."""

    pass


class VATOutcome(str, Enum):
    """Which rule produced the resolution."""

    CONSISTENT = "consistent"  # Rule 1, kept as-is
    GROSS_CONSISTENT = "gross_consistent"  # Rule 1, gross reading moved to net
    NET = "net"  # Rule 2
    GROSS = "gross"  # Rule 3
    AMBIGUOUS = "ambiguous"  # Rule 4
    AWAITING_AMOUNT = "awaiting_amount"  # Nothing to reconcile yet


def round_money(value: Decimal) -> Decimal:
    """Half-up rounding to currency precision."""
    return value.quantize(CURRENCY_PRECISION, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class VATResolution:
    """Result of reconciling one VAT triple."""

    amount: Optional[Decimal]
    tax_amount: Optional[Decimal]
    vat_inclusive: Optional[bool]
    outcome: VATOutcome
    replaced_tax: Optional[Decimal] = None  # Extracted tax discarded as inconsistent

    @property
    def ambiguous(self) -> bool:
        return self.outcome == VATOutcome.AMBIGUOUS


class VATResolver:
    """Computes and validates VAT figures for a single jurisdiction rate."""

    def __init__(self, config: Optional[VATConfig] = None):
        self.config = config or VATConfig()

    @property
    def rate(self) -> Decimal:
        return self.config.rate

    def tax_for_net(self, net: Decimal) -> Decimal:
        return round_money(net * self.rate)

    def split_gross(self, gross: Decimal) -> tuple[Decimal, Decimal]:
        """Split a gross amount into (net, tax); tax absorbs the rounding."""
        net = round_money(gross / (Decimal("1") + self.rate))
        return net, gross - net

    def consistent_as_net(self, amount: Decimal, tax: Decimal) -> bool:
        return abs(self.tax_for_net(amount) - tax) <= self.config.tolerance

    def consistent_as_gross(self, amount: Decimal, tax: Decimal) -> bool:
        _, derived_tax = self.split_gross(amount)
        return abs(derived_tax - tax) <= self.config.tolerance

    def resolve(
        self,
        amount: Optional[Decimal],
        tax_amount: Optional[Decimal],
        vat_inclusive: Optional[bool],
    ) -> VATResolution:
        """
        Reconcile a VAT triple.

        Raises:
            VATResolutionError: If amount or tax_amount is negative
        """
        if amount is not None and amount < 0:
            raise VATResolutionError(f"Amount must not be negative, got {amount}")
        if tax_amount is not None and tax_amount < 0:
            raise VATResolutionError(f"VAT amount must not be negative, got {tax_amount}")

        assume_net = self.config.assume_net_when_unknown

        if amount is None:
            if tax_amount is None and vat_inclusive is None and not assume_net:
                return VATResolution(None, None, None, VATOutcome.AMBIGUOUS)
            return VATResolution(None, tax_amount, vat_inclusive, VATOutcome.AWAITING_AMOUNT)

        replaced_tax = None
        if tax_amount is not None:
            net_ok = self.consistent_as_net(amount, tax_amount)
            gross_ok = self.consistent_as_gross(amount, tax_amount)

            if net_ok:
                # Also covers flag=True on an already-resolved (net) record
                flag = False if vat_inclusive is None else vat_inclusive
                return VATResolution(amount, tax_amount, flag, VATOutcome.CONSISTENT)

            if gross_ok and vat_inclusive is not False:
                return VATResolution(
                    amount - tax_amount, tax_amount, True, VATOutcome.GROSS_CONSISTENT
                )

            if vat_inclusive is None and not assume_net:
                return VATResolution(amount, tax_amount, None, VATOutcome.AMBIGUOUS)

            logger.warning(
                "Extracted VAT %s inconsistent with amount %s at rate %s; deriving instead",
                tax_amount,
                amount,
                self.rate,
            )
            replaced_tax = tax_amount

        if vat_inclusive is True:
            net, tax = self.split_gross(amount)
            return VATResolution(net, tax, True, VATOutcome.GROSS, replaced_tax)

        if vat_inclusive is False or assume_net:
            return VATResolution(
                amount, self.tax_for_net(amount), False, VATOutcome.NET, replaced_tax
            )

        return VATResolution(amount, None, None, VATOutcome.AMBIGUOUS)

    def apply(self, record: DocumentRecord) -> VATResolution:
        """Resolve the record's triple and write the result back onto it.

        Callers that need atomicity pass a copy.
        """
        resolution = self.resolve(record.amount, record.tax_amount, record.vat_inclusive)
        if resolution.amount != record.amount:
            logger.debug("VAT resolution moved amount %s -> %s (net)", record.amount, resolution.amount)
        record.amount = resolution.amount
        record.tax_amount = resolution.tax_amount
        record.vat_inclusive = resolution.vat_inclusive
        return resolution
