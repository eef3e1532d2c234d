"""
Configuration management (SSOT).

This module defines ALL configuration for the invoice review pipeline.
All config keys are defined here; no other module should invent config keys.

Key invariants:
- Configuration carries values, never behaviour
- Rule tables are plain data here and are compiled by the normalization package
- Monetary values (VAT rate, tolerance) are Decimals, never floats
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

CATEGORY_FALLBACK_POLICIES = ("review", "other")

DEFAULT_EXCLUDE_KEYWORDS = [
    "gdrfa",
    "amer",
    "tas-heel",
    "tasheel",
    "dha",
    "rta",
    "traffic",
    "fine",
    "penalty",
    "visa",
    "emirates id",
    "license",
    "registration",
    "government",
    "ministry",
    "municipality",
    "court",
    "legal",
]


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


@dataclass
class VATConfig:
    """VAT reconciliation settings (UAE regime by default)."""

    # Standard rate as a fraction (0.05 = 5%)
    rate: Decimal = Decimal("0.05")
    # Accepted drift between an extracted tax and the derived one
    tolerance: Decimal = Decimal("0.01")
    # Treat an unknown VAT flag as "amount is net" instead of asking
    assume_net_when_unknown: bool = False


@dataclass
class ReviewConfig:
    """Review question settings."""

    # Extractor confidence below this raises a confirm_or_correct question
    confidence_threshold: float = 0.60


@dataclass
class NormalizationConfig:
    """Normalizer settings.

    vendor_rules / category_rules are raw rule dicts as found in YAML:
    - vendor rule: {"pattern": "dewa", "canonical": "DEWA", "match": "contains"}
    - category rule: {"keywords": ["etisalat", "du"], "category": "Telecom & Connectivity"}

    Empty lists mean "use the built-in UAE tables".
    """

    default_currency: str = "AED"
    # "review": leave category null and ask; "other": assign Other Business Expenses
    category_fallback: str = "review"
    vendor_rules: list[dict[str, Any]] = field(default_factory=list)
    category_rules: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class RecurringConfig:
    """Recurring expense detection settings."""

    exclude_keywords: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_KEYWORDS))
    # Day-of-month clustering tolerance (days)
    day_tolerance: int = 1
    # Adjacent charges must be this many days apart (inclusive window)
    min_gap_days: int = 25
    max_gap_days: int = 38
    min_occurrences: int = 2


@dataclass
class LLMConfig:
    """Local LLM (Ollama) extractor configuration."""

    # Master enable/disable
    enabled: bool = False
    ollama_url: str = "http://localhost:11434"
    # Optional auth header for proxied deployments ("Bearer <token>" or "Header: value")
    auth_header: str | None = None
    model: str = "qwen2.5:7b-instruct-q4_K_M"
    timeout_seconds: int = 60


@dataclass
class QueueConfig:
    """Extraction job queue settings."""

    max_retries: int = 3
    # PROCESSING jobs older than this are considered stuck
    stuck_after_minutes: int = 30


@dataclass
class Config:
    """Application configuration (SSOT).

    All configuration is centralized here. No other module should define
    configuration keys or defaults.
    """

    vat: VATConfig = field(default_factory=VATConfig)
    review: ReviewConfig = field(default_factory=ReviewConfig)
    normalization: NormalizationConfig = field(default_factory=NormalizationConfig)
    recurring: RecurringConfig = field(default_factory=RecurringConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    state_db_path: Path = field(default_factory=lambda: Path("data/invoices.db"))

    def validate(self) -> list[str]:
        """Validate configuration completeness and consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []

        if not (Decimal("0") <= self.vat.rate < Decimal("1")):
            errors.append(f"vat.rate must be in [0, 1), got {self.vat.rate}")
        if self.vat.tolerance < 0:
            errors.append("vat.tolerance must not be negative")

        if not (0.0 <= self.review.confidence_threshold <= 1.0):
            errors.append("review.confidence_threshold must be between 0 and 1")

        currency = self.normalization.default_currency
        if not (len(currency) == 3 and currency.isalpha()):
            errors.append(f"normalization.default_currency must be a 3-letter code, got {currency!r}")
        if self.normalization.category_fallback not in CATEGORY_FALLBACK_POLICIES:
            errors.append(
                "normalization.category_fallback must be one of "
                f"{', '.join(CATEGORY_FALLBACK_POLICIES)}"
            )

        if self.recurring.min_gap_days > self.recurring.max_gap_days:
            errors.append("recurring.min_gap_days must be <= recurring.max_gap_days")
        if self.recurring.min_occurrences < 2:
            errors.append("recurring.min_occurrences must be at least 2")
        if self.recurring.day_tolerance < 0:
            errors.append("recurring.day_tolerance must not be negative")

        if self.llm.enabled and not self.llm.ollama_url:
            errors.append("llm.ollama_url is required when LLM is enabled")

        return errors


def _decimal(value: Any, default: str) -> Decimal:
    if value is None:
        return Decimal(default)
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ConfigValidationError([f"Invalid decimal value: {value!r}"]) from e


def load_config(config_path: Path, validate: bool = False) -> Config:
    """
    Load configuration from YAML file.

    Environment variables can override config values:
    - INVOICE_REVIEW_DB (state database path)
    - INVOICE_REVIEW_VAT_RATE (e.g. 0.05)
    - INVOICE_REVIEW_CONFIDENCE_THRESHOLD
    - INVOICE_REVIEW_DEFAULT_CURRENCY
    - INVOICE_REVIEW_LLM_ENABLED (true/false)
    - OLLAMA_URL
    - OLLAMA_MODEL
    - OLLAMA_TIMEOUT (request timeout in seconds)
    """
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    else:
        data = {}

    # VAT
    vat_data = data.get("vat", {})
    vat = VATConfig(
        rate=_decimal(os.environ.get("INVOICE_REVIEW_VAT_RATE", vat_data.get("rate")), "0.05"),
        tolerance=_decimal(vat_data.get("tolerance"), "0.01"),
        assume_net_when_unknown=vat_data.get("assume_net_when_unknown", False),
    )

    # Review
    review_data = data.get("review", {})
    threshold_env = os.environ.get("INVOICE_REVIEW_CONFIDENCE_THRESHOLD", "")
    threshold = review_data.get("confidence_threshold", 0.60)
    if threshold_env:
        try:
            threshold = float(threshold_env)
        except ValueError:
            pass  # Keep configured value
    review = ReviewConfig(confidence_threshold=float(threshold))

    # Normalization
    norm_data = data.get("normalization", {})
    normalization = NormalizationConfig(
        default_currency=os.environ.get(
            "INVOICE_REVIEW_DEFAULT_CURRENCY", norm_data.get("default_currency", "AED")
        ).upper(),
        category_fallback=norm_data.get("category_fallback", "review"),
        vendor_rules=norm_data.get("vendor_rules") or [],
        category_rules=norm_data.get("category_rules") or [],
    )

    # Recurring
    recurring_data = data.get("recurring", {})
    recurring = RecurringConfig(
        exclude_keywords=recurring_data.get("exclude_keywords", list(DEFAULT_EXCLUDE_KEYWORDS)),
        day_tolerance=recurring_data.get("day_tolerance", 1),
        min_gap_days=recurring_data.get("min_gap_days", 25),
        max_gap_days=recurring_data.get("max_gap_days", 38),
        min_occurrences=recurring_data.get("min_occurrences", 2),
    )

    # LLM
    llm_data = data.get("llm", {})
    llm_enabled_env = os.environ.get("INVOICE_REVIEW_LLM_ENABLED", "").lower()
    llm_enabled = llm_data.get("enabled", False)
    if llm_enabled_env == "true":
        llm_enabled = True
    elif llm_enabled_env == "false":
        llm_enabled = False

    llm = LLMConfig(
        enabled=llm_enabled,
        ollama_url=os.environ.get(
            "OLLAMA_URL", llm_data.get("ollama_url", "http://localhost:11434")
        ),
        auth_header=os.environ.get("OLLAMA_AUTH_HEADER", llm_data.get("auth_header")),
        model=os.environ.get("OLLAMA_MODEL", llm_data.get("model", "qwen2.5:7b-instruct-q4_K_M")),
        timeout_seconds=int(os.environ.get("OLLAMA_TIMEOUT", llm_data.get("timeout_seconds", 60))),
    )

    # Queue
    queue_data = data.get("queue", {})
    queue = QueueConfig(
        max_retries=queue_data.get("max_retries", 3),
        stuck_after_minutes=queue_data.get("stuck_after_minutes", 30),
    )

    state_db = os.environ.get("INVOICE_REVIEW_DB", data.get("state_db_path", "data/invoices.db"))

    config = Config(
        vat=vat,
        review=review,
        normalization=normalization,
        recurring=recurring,
        llm=llm,
        queue=queue,
        state_db_path=Path(state_db),
    )

    if validate:
        errors = config.validate()
        if errors:
            raise ConfigValidationError(errors)

    return config


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = """# Invoice review pipeline configuration

# SQLite database holding document records and extraction jobs
state_db_path: "data/invoices.db"

# VAT reconciliation (UAE standard rate)
vat:
  rate: 0.05                       # 5%
  tolerance: 0.01                  # Accepted rounding drift for extracted tax
  assume_net_when_unknown: false   # true: unknown flag means net; false: ask

# Review questions
review:
  confidence_threshold: 0.60       # Below this: ask the user to confirm the field

# Normalization
normalization:
  default_currency: "AED"
  category_fallback: "review"      # review: ask; other: "Other Business Expenses"
  # Leave empty to use the built-in UAE tables. First matching rule wins.
  vendor_rules: []
  #  - pattern: "dubai electricity"
  #    canonical: "DEWA"
  #    match: "contains"             # contains | exact | regex
  category_rules: []
  #  - keywords: ["dewa", "sewa"]
  #    category: "Occupancy & Facilities"

# Recurring expense detection
recurring:
  day_tolerance: 1
  min_gap_days: 25
  max_gap_days: 38
  min_occurrences: 2
  # exclude_keywords: ["traffic", "visa", ...]   # Defaults to government/one-off keywords

# Local LLM extractor (Ollama)
llm:
  enabled: false
  ollama_url: "http://localhost:11434"
  auth_header: null
  model: "qwen2.5:7b-instruct-q4_K_M"
  timeout_seconds: 60

# Extraction job queue
queue:
  max_retries: 3
  stuck_after_minutes: 30
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(default_config)
