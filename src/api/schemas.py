"""Pydantic request/response schemas for the FastAPI endpoints."""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class ParseOutcome(StrEnum):
    """Terminal state of a parse."""

    SUCCESS = "success"
    PARTIAL = "partial"
    NEEDS_REVIEW = "needs_review"


class ParseHintsRequest(BaseModel):
    currency: str | None = None


class ParseRequest(BaseModel):
    """Request schema for parsing contract text."""

    pdf_text: str
    hints: ParseHintsRequest | None = None


class CabinRowSchema(BaseModel):
    row_id: str | None = None
    cabin_number: str | None = None
    type: str | None = None
    cost_cents: Any = None
    currency: str | None = None
    line_number: int | None = None
    raw_line: str | None = None


class KeyDatesSchema(BaseModel):
    sail_date: str | None = None
    deposit_deadline: str | None = None
    final_payment_deadline: str | None = None
    option_expiration: str | None = None


class ContractData(BaseModel):
    """Parsed or user-edited contract data.

    ``cost_cents`` is left untyped so the validator, not the schema,
    reports non-integer costs.
    """

    base_currency: str | None = None
    base_currency_confidence: int = 0
    cabin_inventory: list[CabinRowSchema] = Field(default_factory=list)
    key_dates: KeyDatesSchema = Field(default_factory=KeyDatesSchema)


class UnparsedRowSchema(BaseModel):
    row_id: str
    line_number: int
    raw_line: str
    cabin_number: str | None = None
    issue: str


class CurrencyCandidateSchema(BaseModel):
    currency: str
    confidence: int
    evidence_count: int
    matches: list[str] = Field(default_factory=list)


class TelemetrySchema(BaseModel):
    parser_version: str
    output_schema_version: str
    parse_time_ms: int
    contract_fingerprint: str
    parse_rate: int
    failure_stage: str | None = None
    total_lines: int
    cabins_parsed: int
    cabins_unparsed: int
    dates_found: int
    currency_confidence: int


class ParseResponse(BaseModel):
    """Response schema for a parse request."""

    outcome: ParseOutcome
    success: bool
    needs_review: bool
    partial: bool
    phase: str | None = None
    reason: str | None = None
    data: ContractData | None = None
    unparsed_rows: list[UnparsedRowSchema]
    currency_candidates: list[CurrencyCandidateSchema]
    missing_fields: list[str]
    warnings: list[str]
    errors: list[str]
    telemetry: TelemetrySchema


class ValidationResultResponse(BaseModel):
    """Response schema for a validation check result."""

    field_name: str
    is_valid: bool
    message: str
    rule_name: str
    severity: str


class ValidationResponse(BaseModel):
    valid: bool
    errors: list[str]
    warnings: list[str]
    results: list[ValidationResultResponse]


class ThresholdsResponse(BaseModel):
    """Parser constants exposed for display."""

    parser_version: str
    output_schema_version: str
    currency_confidence_threshold: int
    table_parse_rate_threshold: int
    dates_required_for_complete: int
    min_cabin_price_cents: int


class HealthResponse(BaseModel):
    """Response schema for the health check endpoint."""

    status: str
    version: str
    parser_version: str
