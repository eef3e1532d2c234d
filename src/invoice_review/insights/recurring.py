"""
Recurring Expense Detector.

Finds vendors billed on (roughly) the same day every month.

Algorithm per vendor:
1. Group by normalized vendor name; skip excluded (government/one-off) vendors
2. Cluster charges by day-of-month within a tolerance, in date order
3. Keep the largest cluster (ties: smaller day) with enough members
4. Every adjacent pair in the cluster must be one month apart (gap window);
   a single bad gap disqualifies the vendor
5. Average amount, last date, next expected date, type label

Pure and read-only: safe to run repeatedly on stale snapshots.
"""

from __future__ import annotations

import calendar
import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from ..config import RecurringConfig
from ..schemas.document_record import DocumentRecord
from ..schemas.field_values import Category
from ..vat import round_money

# Type labels (display only, never affect inclusion). First match wins.
EXPENSE_TYPE_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("utility", ("dewa", "sewa", "fewa", "addc", "electricity", "water", "power")),
    ("telecom", ("etisalat", "virgin mobile", "du")),
    (
        "subscription",
        (
            "microsoft 365", "microsoft", "google workspace", "adobe", "slack", "zoom",
            "aws", "azure", "dropbox", "notion", "figma", "github", "atlassian", "jira",
            "hubspot", "salesforce", "spotify", "netflix", "office 365",
        ),
    ),
    ("insurance", ("insurance", "takaful")),
    ("rent", ("rent", "lease", "tenancy")),
)


def normalize_vendor_key(vendor: str) -> str:
    """Case/whitespace-insensitive vendor grouping key."""
    return " ".join(vendor.split()).lower()


def _contains_word(text: str, keyword: str) -> bool:
    return re.search(rf"(?<!\w){re.escape(keyword.lower())}(?!\w)", text) is not None


def infer_expense_type(vendor: str, category: Optional[Category] = None) -> Optional[str]:
    """Label a recurring expense from its vendor name and category."""
    text = normalize_vendor_key(f"{vendor} {category.value if category else ''}")
    for label, keywords in EXPENSE_TYPE_KEYWORDS:
        if any(_contains_word(text, k) for k in keywords):
            return label
    return None


def occurrence_in_month(year: int, month: int, day: int) -> date:
    """The day-of-month in a given month, clamped to the month's last day."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def next_occurrence(day_of_month: int, today: date) -> date:
    """Next calendar occurrence of day_of_month strictly after today."""
    candidate = occurrence_in_month(today.year, today.month, day_of_month)
    if candidate > today:
        return candidate
    year, month = (today.year + 1, 1) if today.month == 12 else (today.year, today.month + 1)
    return occurrence_in_month(year, month, day_of_month)


@dataclass(frozen=True)
class RecurringExpenseCandidate:
    """A vendor inferred to bill monthly around the same day."""

    vendor: str
    average_amount: Decimal
    currency: str
    day_of_month: int
    occurrence_count: int
    last_date: date
    next_expected_date: date
    category: Optional[Category] = None
    inferred_type: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "vendor": self.vendor,
            "average_amount": str(self.average_amount),
            "currency": self.currency,
            "day_of_month": self.day_of_month,
            "occurrence_count": self.occurrence_count,
            "last_date": self.last_date.isoformat(),
            "next_expected_date": self.next_expected_date.isoformat(),
            "category": self.category.value if self.category else None,
            "inferred_type": self.inferred_type,
        }


class RecurringExpenseDetector:
    """Detects monthly recurring expenses across document records."""

    def __init__(self, config: Optional[RecurringConfig] = None):
        self.config = config or RecurringConfig()

    def is_excluded(self, vendor: str) -> bool:
        """Exclusion keywords match anywhere in the vendor name."""
        text = normalize_vendor_key(vendor)
        return any(k.lower() in text for k in self.config.exclude_keywords)

    def detect(
        self, records: Iterable[DocumentRecord], today: Optional[date] = None
    ) -> list[RecurringExpenseCandidate]:
        """
        Detect recurring expenses.

        Records without vendor, date or amount are ignored.

        Args:
            records: Any snapshot of document records
            today: Reference date for next_expected_date (defaults to today)

        Returns:
            Candidates sorted by next expected date
        """
        today = today or date.today()

        by_vendor: dict[str, list[DocumentRecord]] = {}
        for record in records:
            if not record.vendor or record.date is None or record.amount is None:
                continue
            by_vendor.setdefault(normalize_vendor_key(record.vendor), []).append(record)

        candidates = []
        for group in by_vendor.values():
            candidate = self._detect_vendor(group, today)
            if candidate is not None:
                candidates.append(candidate)

        return sorted(candidates, key=lambda c: (c.next_expected_date, c.vendor.lower()))

    def _detect_vendor(
        self, records: list[DocumentRecord], today: date
    ) -> Optional[RecurringExpenseCandidate]:
        if len(records) < self.config.min_occurrences:
            return None

        ordered = sorted(records, key=lambda r: (r.date, r.id or 0))
        display_vendor = ordered[0].vendor
        if self.is_excluded(display_vendor):
            return None

        day, cluster = self._largest_cluster(ordered)
        if len(cluster) < self.config.min_occurrences:
            return None

        for previous, current in zip(cluster, cluster[1:]):
            gap = (current.date - previous.date).days
            if not self.config.min_gap_days <= gap <= self.config.max_gap_days:
                return None

        average = round_money(sum((r.amount for r in cluster), Decimal("0")) / len(cluster))
        category = next((r.category for r in reversed(cluster) if r.category), None)

        return RecurringExpenseCandidate(
            vendor=display_vendor,
            average_amount=average,
            currency=cluster[-1].currency,
            day_of_month=day,
            occurrence_count=len(cluster),
            last_date=cluster[-1].date,
            next_expected_date=next_occurrence(day, today),
            category=category,
            inferred_type=infer_expense_type(display_vendor, category),
        )

    def _largest_cluster(self, ordered: list[DocumentRecord]) -> tuple[int, list[DocumentRecord]]:
        """Cluster by day-of-month; the first record of a cluster fixes its day."""
        clusters: dict[int, list[DocumentRecord]] = {}
        for record in ordered:
            day = record.date.day
            match = next(
                (
                    existing
                    for existing in sorted(clusters)
                    if abs(existing - day) <= self.config.day_tolerance
                ),
                None,
            )
            if match is None:
                clusters[day] = [record]
            else:
                clusters[match].append(record)

        day = min(clusters, key=lambda d: (-len(clusters[d]), d))
        return day, clusters[day]
