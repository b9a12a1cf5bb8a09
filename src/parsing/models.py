"""Data contracts shared by the contract parsing stages.

Every object here is built fresh for a single parse call. ``ParseResult``
exposes ``to_dict`` so the CLI and API can serialize a whole parse without
extra mapping.
"""

from dataclasses import asdict, dataclass, field
from typing import Any

KEY_DATE_FIELDS: tuple[str, ...] = (
    "sail_date",
    "deposit_deadline",
    "final_payment_deadline",
    "option_expiration",
)


@dataclass(frozen=True)
class ParseHints:
    """Best-effort priors from upstream scans; they bias but never decide."""

    currency: str | None = None


@dataclass(frozen=True)
class ParseInput:
    """Raw contract text plus optional hints."""

    pdf_text: str
    hints: ParseHints | None = None


@dataclass
class CurrencyCandidate:
    """A currency with explicit textual evidence."""

    currency: str
    confidence: int
    evidence_count: int
    matches: list[str] = field(default_factory=list)


@dataclass
class CurrencyDetectionResult:
    """Outcome of currency detection."""

    success: bool
    needs_review: bool
    base_currency: str | None = None
    confidence: int = 0
    reason: str | None = None
    currency_candidates: list[CurrencyCandidate] = field(default_factory=list)


@dataclass
class CabinRow:
    """A cabin with an accepted price."""

    row_id: str
    cabin_number: str
    type: str | None
    cost_cents: int
    currency: str
    line_number: int
    raw_line: str


@dataclass
class UnparsedRow:
    """A cabin-like line that could not be turned into a priced cabin."""

    row_id: str
    line_number: int
    raw_line: str
    cabin_number: str | None
    issue: str


@dataclass
class CabinInventoryResult:
    """Cabins, leftovers, and the number of cabin-like lines seen."""

    cabins: list[CabinRow] = field(default_factory=list)
    unparsed_rows: list[UnparsedRow] = field(default_factory=list)
    partial: bool = False
    cabin_lines: int = 0


@dataclass
class KeyDates:
    """Booking deadlines as ISO ``YYYY-MM-DD`` strings."""

    sail_date: str | None = None
    deposit_deadline: str | None = None
    final_payment_deadline: str | None = None
    option_expiration: str | None = None

    def found(self) -> dict[str, str]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class KeyDatesResult:
    dates: KeyDates
    missing_fields: list[str]


@dataclass
class ParseTelemetry:
    """Per-call diagnostics, present on every outcome."""

    parser_version: str
    output_schema_version: str
    parse_time_ms: int
    contract_fingerprint: str
    parse_rate: int = 0
    failure_stage: str | None = None
    total_lines: int = 0
    cabins_parsed: int = 0
    cabins_unparsed: int = 0
    dates_found: int = 0
    currency_confidence: int = 0


@dataclass
class ParsedContract:
    """Structured booking data ready for validation and import."""

    base_currency: str | None
    cabin_inventory: list[CabinRow] = field(default_factory=list)
    key_dates: KeyDates = field(default_factory=KeyDates)
    base_currency_confidence: int = 0


@dataclass
class ParseResult:
    """Public result of :func:`src.parsing.contract_parser.parse_contract_text`.

    ``success`` with ``partial`` still allows auto-fill; ``needs_review``
    blocks it until a person resolves ``reason``.
    """

    success: bool
    needs_review: bool
    telemetry: ParseTelemetry
    partial: bool = False
    phase: str | None = None
    reason: str | None = None
    data: ParsedContract | None = None
    unparsed_rows: list[UnparsedRow] = field(default_factory=list)
    currency_candidates: list[CurrencyCandidate] = field(default_factory=list)
    missing_fields: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
