"""
Vendor and category rule tables.

Rule tables are injected configuration, never module-level mutable state.
Evaluation is ordered: the first matching rule wins.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from ..schemas.field_values import Category

if TYPE_CHECKING:
    from ..config import NormalizationConfig

MATCH_MODES = ("contains", "exact", "regex")


def _normalize(text: str) -> str:
    return " ".join(text.split()).lower()


def _word_pattern(keyword: str) -> re.Pattern:
    return re.compile(rf"(?<!\w){re.escape(_normalize(keyword))}(?!\w)")


@dataclass(frozen=True)
class VendorRule:
    """Collapses a vendor name variant to a canonical name."""

    pattern: str
    canonical: str
    match: str = "contains"

    def __post_init__(self) -> None:
        if self.match not in MATCH_MODES:
            raise ValueError(f"Unknown vendor rule match mode: {self.match}")
        if self.match == "regex":
            re.compile(self.pattern)

    def matches(self, vendor: str) -> bool:
        name = _normalize(vendor)
        if self.match == "exact":
            return name == _normalize(self.pattern)
        if self.match == "regex":
            return re.search(self.pattern, vendor, re.IGNORECASE) is not None
        # "contains" matches whole words so short aliases stay specific
        return _word_pattern(self.pattern).search(name) is not None


@dataclass(frozen=True)
class CategoryRule:
    """Maps keyword hits (whole words) to a category."""

    keywords: tuple[str, ...]
    category: Category
    _patterns: tuple[re.Pattern, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        patterns = tuple(_word_pattern(k) for k in self.keywords)
        object.__setattr__(self, "_patterns", patterns)

    def matches(self, text: str) -> bool:
        haystack = _normalize(text)
        return any(p.search(haystack) for p in self._patterns)


DEFAULT_VENDOR_RULES: tuple[VendorRule, ...] = (
    VendorRule("dubai electricity", "DEWA"),
    VendorRule("dewa", "DEWA"),
    VendorRule("sharjah electricity", "SEWA"),
    VendorRule("federal electricity", "FEWA"),
    VendorRule("abu dhabi distribution", "ADDC"),
    VendorRule("emirates integrated telecommunications", "du"),
    VendorRule("emirates telecommunications", "Etisalat"),
    VendorRule("etisalat", "Etisalat"),
    VendorRule("amazon web services", "AWS"),
    VendorRule(r"^microsoft\b", "Microsoft", match="regex"),
)

DEFAULT_CATEGORY_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(
        ("dewa", "sewa", "fewa", "addc", "electricity", "water", "rent", "lease",
         "tenancy", "facilities", "maintenance", "cleaning"),
        Category.OCCUPANCY,
    ),
    CategoryRule(
        ("etisalat", "du", "virgin mobile", "internet", "broadband", "telecom"),
        Category.TELECOM,
    ),
    CategoryRule(
        ("flydubai", "careem", "uber", "taxi", "salik", "enoc", "adnoc", "eppco",
         "fuel", "petrol", "hotel", "airline", "airways", "parking"),
        Category.TRAVEL,
    ),
    CategoryRule(
        ("microsoft", "google workspace", "aws", "azure", "adobe", "slack", "zoom",
         "github", "atlassian", "dropbox", "notion", "figma", "hosting", "software", "cloud"),
        Category.IT_SOFTWARE,
    ),
    CategoryRule(
        ("bank", "insurance", "takaful", "audit", "accounting", "consulting", "legal"),
        Category.PROFESSIONAL,
    ),
    CategoryRule(
        ("stationery", "office supplies", "printer", "toner", "paper"),
        Category.OFFICE_SUPPLIES,
    ),
    CategoryRule(
        ("advertising", "marketing", "google ads", "facebook ads", "meta ads", "linkedin"),
        Category.MARKETING,
    ),
)


@dataclass(frozen=True)
class RuleTables:
    """Ordered vendor and category rules."""

    vendor_rules: tuple[VendorRule, ...] = DEFAULT_VENDOR_RULES
    category_rules: tuple[CategoryRule, ...] = DEFAULT_CATEGORY_RULES

    def canonical_vendor(self, vendor: str) -> str:
        """Apply aliasing; unmatched vendors pass through unchanged."""
        for rule in self.vendor_rules:
            if rule.matches(vendor):
                return rule.canonical
        return vendor

    def categorize(self, *texts: Optional[str]) -> Optional[Category]:
        """First category rule matching any of the given texts."""
        candidates = [t for t in texts if t]
        for rule in self.category_rules:
            if any(rule.matches(text) for text in candidates):
                return rule.category
        return None

    @classmethod
    def from_config(cls, config: NormalizationConfig) -> RuleTables:
        """Compile raw YAML rule dicts; empty lists keep the built-in tables.

        Raises:
            ValueError: If a rule is malformed or names an unknown category
        """
        vendor_rules = DEFAULT_VENDOR_RULES
        if config.vendor_rules:
            vendor_rules = tuple(_vendor_rule(item) for item in config.vendor_rules)

        category_rules = DEFAULT_CATEGORY_RULES
        if config.category_rules:
            category_rules = tuple(_category_rule(item) for item in config.category_rules)

        return cls(vendor_rules=vendor_rules, category_rules=category_rules)


def _vendor_rule(item: dict[str, Any]) -> VendorRule:
    try:
        return VendorRule(
            pattern=str(item["pattern"]),
            canonical=str(item["canonical"]),
            match=item.get("match", "contains"),
        )
    except KeyError as e:
        raise ValueError(f"Vendor rule is missing {e}: {item}") from e


def _category_rule(item: dict[str, Any]) -> CategoryRule:
    category = Category.from_text(item.get("category"))
    if category is None:
        raise ValueError(f"Category rule names an unknown category: {item.get('category')!r}")
    keywords = item.get("keywords") or []
    if isinstance(keywords, str):
        keywords = [keywords]
    if not keywords:
        raise ValueError(f"Category rule has no keywords: {item}")
    return CategoryRule(keywords=tuple(str(k) for k in keywords), category=category)
