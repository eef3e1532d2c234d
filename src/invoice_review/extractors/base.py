"""
Base extractor interface and common types.

The extractor is an external collaborator (OCR + LLM). This module fixes the
contract the rest of the pipeline consumes: a raw field map with per-field
confidence/ambiguity signals, or an explicit "extraction unavailable" signal.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from ..schemas.field_values import FIELD_KINDS


class ExtractionUnavailable(Exception):
    """The extractor failed or is unreachable.

    Recovered by the ingest pipeline with a minimal scaffold record.
    """

    def __init__(self, message: str, strategy: str = ""):
        self.strategy = strategy
        super().__init__(message)


@dataclass
class RawField:
    """One extracted field as delivered by the extractor (untyped)."""

    name: str
    value: Any = None
    confidence: Optional[float] = None  # 0.0 - 1.0, None = no signal
    ambiguous: bool = False

    @classmethod
    def from_json(cls, name: str, data: Any) -> "RawField":
        """Accept either {"value", "confidence", "ambiguous"} or a bare value."""
        if isinstance(data, dict) and "value" in data:
            try:
                confidence = float(data["confidence"]) if data.get("confidence") is not None else None
            except (TypeError, ValueError):
                confidence = None  # Unusable signal is treated as no signal
            return cls(
                name=name,
                value=data.get("value"),
                confidence=confidence,
                ambiguous=bool(data.get("ambiguous", False)),
            )
        return cls(name=name, value=data)


@dataclass
class ExtractionResult:
    """Result from an extraction attempt."""

    fields: dict[str, RawField] = field(default_factory=dict)

    # Metadata
    extraction_strategy: str = ""
    raw_matches: dict[str, Any] = field(default_factory=dict)  # Debug info

    def value(self, name: str) -> Any:
        raw = self.fields.get(name)
        return raw.value if raw else None

    def confidence(self, name: str) -> Optional[float]:
        raw = self.fields.get(name)
        return raw.confidence if raw else None

    @classmethod
    def from_field_map(cls, data: dict[str, Any], strategy: str = "field_map") -> "ExtractionResult":
        """
        Build a result from the inbound field-map contract.

        Accepted shapes:
            {"fields": {"vendor": {"value": "DEWA", "confidence": 0.9}, ...}}
            {"vendor": "DEWA", "amount": "100.00", ...}

        Unknown keys are kept in raw_matches and otherwise ignored.
        """
        payload = data.get("fields", data) if isinstance(data, dict) else {}
        if not isinstance(payload, dict):
            raise ExtractionUnavailable("Field map is not an object", strategy=strategy)

        fields: dict[str, RawField] = {}
        extras: dict[str, Any] = {}
        for name, item in payload.items():
            if name in FIELD_KINDS:
                fields[name] = RawField.from_json(name, item)
            else:
                extras[name] = item

        return cls(fields=fields, extraction_strategy=strategy, raw_matches=extras)


class BaseExtractor(ABC):
    """
    Base class for all extractors.

    Each extractor implements a specific strategy:
    - Pre-extracted field maps
    - LLM over OCR text
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Extractor name for logging and provenance."""
        pass

    @abstractmethod
    def extract(self, content: str) -> ExtractionResult:
        """
        Extract raw fields from document content.

        Args:
            content: OCR/text content

        Returns:
            ExtractionResult with raw values and confidence signals

        Raises:
            ExtractionUnavailable: If the extractor cannot produce a result
        """
        pass
