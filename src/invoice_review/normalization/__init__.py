"""
Normalization module.

Turns raw extractor fields into a typed record draft and applies the
injected vendor/category rule tables.
"""

from .normalizer import Normalizer
from .rules import CategoryRule, RuleTables, VendorRule

__all__ = [
    "Normalizer",
    "RuleTables",
    "VendorRule",
    "CategoryRule",
]
