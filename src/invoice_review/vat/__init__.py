"""
VAT module.

Reconciles amount, tax_amount and the VAT-inclusive flag for a
configurable jurisdiction rate (UAE 5% by default).
"""

from .resolver import (
    CURRENCY_PRECISION,
    VATOutcome,
    VATResolution,
    VATResolutionError,
    VATResolver,
    round_money,
)

__all__ = [
    "VATResolver",
    "VATResolution",
    "VATResolutionError",
    "VATOutcome",
    "CURRENCY_PRECISION",
    "round_money",
]
