"""
Normalizer: raw extractor fields -> typed DocumentRecord draft.

Pure: no I/O, no clock unless the caller passes created_at. Running it twice
on the same raw input yields the same draft, which makes extraction retries
safe.
"""

import logging
import re
from typing import Any, Optional

from ..config import NormalizationConfig
from ..confidence import ConfidenceScorer
from ..extractors.base import ExtractionResult, RawField
from ..schemas.document_record import DocumentRecord, ParseFailure
from ..schemas.field_values import Category, FieldValue
from .rules import RuleTables

logger = logging.getLogger(__name__)

CURRENCY_ALIASES = {
    "DH": "AED",
    "DHS": "AED",
    "DIRHAM": "AED",
    "DIRHAMS": "AED",
    "د.إ": "AED",
    "$": "USD",
    "€": "EUR",
    "£": "GBP",
}

# Fields typed through the generic path (special-cased fields handled separately)
_GENERIC_FIELDS = ("vendor", "date", "amount", "tax_amount", "is_paid", "transaction_type", "notes")


class Normalizer:
    """
    Cleans and coerces raw extracted fields into a typed record draft.

    - Vendor: whitespace-collapsed, lower-case names title-cased, then aliased
    - Category: explicit category if valid, else rule tables, else fallback policy
    - Currency: upper-cased ISO code, default when absent
    - Parse failures are recorded on the draft and leave the field null
    """

    def __init__(
        self,
        rules: Optional[RuleTables] = None,
        config: Optional[NormalizationConfig] = None,
        scorer: Optional[ConfidenceScorer] = None,
    ):
        self.rules = rules or RuleTables()
        self.config = config or NormalizationConfig()
        self.scorer = scorer or ConfidenceScorer()

    def scaffold(
        self,
        source_ref: Optional[str] = None,
        strategy: str = "unavailable",
        created_at: str = "",
    ) -> DocumentRecord:
        """Minimal all-null draft used when extraction is unavailable."""
        return DocumentRecord(
            currency=self.config.default_currency,
            source_ref=source_ref,
            extraction_strategy=strategy,
            created_at=created_at,
        )

    def normalize(
        self,
        extraction: ExtractionResult,
        source_ref: Optional[str] = None,
        created_at: str = "",
    ) -> DocumentRecord:
        """Produce a typed draft from an extraction result."""
        record = self.scaffold(
            source_ref=source_ref,
            strategy=extraction.extraction_strategy,
            created_at=created_at,
        )

        for field_name in _GENERIC_FIELDS:
            raw = extraction.fields.get(field_name)
            value = self._coerce(record, raw)
            if value is None:
                continue
            if field_name == "vendor":
                value = self.normalize_vendor(value)
            setattr(record, field_name, value)
            self._keep_signal(record, raw)

        self._normalize_currency(record, extraction.fields.get("currency"))
        self._normalize_vat_flag(record, extraction.fields.get("vat_inclusive"))
        self._normalize_category(record, extraction.fields.get("category"))

        if record.parse_failures:
            logger.warning(
                "Normalization recorded %d parse failure(s): %s",
                len(record.parse_failures),
                ", ".join(pf.field_name for pf in record.parse_failures),
            )
        return record

    def normalize_vendor(self, vendor: str) -> str:
        """Clean a vendor name and apply rule-table aliasing."""
        name = " ".join(vendor.split()).strip(" ,.;:-")
        if name.islower():
            name = name.title()
        return self.rules.canonical_vendor(name)

    def _coerce(self, record: DocumentRecord, raw: Optional[RawField]) -> Any:
        if raw is None or raw.value is None or (isinstance(raw.value, str) and not raw.value.strip()):
            return None
        try:
            return FieldValue.for_field(raw.name, raw.value).value
        except ValueError as e:
            record.parse_failures.append(
                ParseFailure(field_name=raw.name, raw_value=raw.value, reason=str(e))
            )
            logger.debug("Could not parse %s: %s", raw.name, e)
            return None

    def _keep_signal(self, record: DocumentRecord, raw: Optional[RawField]) -> None:
        if raw is None:
            return
        if raw.confidence is not None:
            record.field_confidence[raw.name] = max(0.0, min(1.0, raw.confidence))
        if raw.ambiguous and raw.name not in record.ambiguous_fields:
            record.ambiguous_fields.append(raw.name)

    def _normalize_currency(self, record: DocumentRecord, raw: Optional[RawField]) -> None:
        if raw is None or raw.value is None or not str(raw.value).strip():
            return
        code = str(raw.value).strip().upper()
        code = CURRENCY_ALIASES.get(code, code)
        if re.fullmatch(r"[A-Z]{3}", code):
            record.currency = code
            self._keep_signal(record, raw)
        else:
            record.parse_failures.append(
                ParseFailure(field_name="currency", raw_value=raw.value, reason="not an ISO code")
            )

    def _normalize_vat_flag(self, record: DocumentRecord, raw: Optional[RawField]) -> None:
        value = self._coerce(record, raw)
        if value is None:
            return
        if self.scorer.is_low(raw.confidence, raw.ambiguous):
            # An untrusted flag would silently move amount between net and gross
            logger.info("Dropping low-confidence vat_inclusive=%s", value)
            return
        record.vat_inclusive = value

    def _normalize_category(self, record: DocumentRecord, raw: Optional[RawField]) -> None:
        raw_text = None
        if raw is not None and raw.value is not None:
            raw_text = str(raw.value)
            category = Category.from_text(raw_text)
            if category is not None:
                record.category = category
                self._keep_signal(record, raw)
                return

        category = self.rules.categorize(record.vendor, raw_text, record.notes)
        if category is None and self.config.category_fallback == "other":
            category = Category.OTHER
        if category is not None:
            logger.debug("Category for %r resolved by rules: %s", record.vendor, category.value)
        record.category = category
