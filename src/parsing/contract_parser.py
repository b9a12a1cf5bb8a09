"""Cruise contract text parser.

Sequences currency detection, cabin extraction and date extraction over
raw contract text, validates the assembled booking data, and reports one
of three outcomes: success, partial success, or needs review. Document
problems are always returned as data; only a malformed call raises.
"""

import time
from collections.abc import Mapping
from typing import Any

from src.utils.config import ParserConfig
from src.utils.logger import get_logger
from src.validation.rules_engine import RulesEngine

from .cabin_extractor import extract_cabin_inventory
from .currency_detector import detect_currency
from .date_extractor import extract_key_dates
from .fingerprint import generate_fingerprint
from .models import ParsedContract, ParseHints, ParseInput, ParseResult, ParseTelemetry

logger = get_logger(__name__)

PARSER_VERSION = "1.1.0"
OUTPUT_SCHEMA_VERSION = "ocr.v1"
THRESHOLDS = ParserConfig()

# Built-in rules only; parsing never reads configuration from disk.
DEFAULT_RULES_ENGINE = RulesEngine(rules_path=None)

PHASE_CURRENCY = "currency_detection"
PHASE_VALIDATION = "validation"


def _coerce_hints(hints: Any) -> ParseHints | None:
    if hints is None or isinstance(hints, ParseHints):
        return hints
    if isinstance(hints, Mapping):
        return ParseHints(currency=hints.get("currency"))
    raise TypeError(f"hints must be a mapping or ParseHints, got {type(hints).__name__}")


def _coerce_input(parse_input: Any) -> ParseInput:
    """Validate the call shape; a bad shape is a caller bug, not a bad document."""
    if isinstance(parse_input, ParseInput):
        pdf_text, hints = parse_input.pdf_text, parse_input.hints
    elif isinstance(parse_input, Mapping):
        if "pdf_text" not in parse_input:
            raise TypeError("parse input requires a 'pdf_text' key")
        pdf_text, hints = parse_input["pdf_text"], parse_input.get("hints")
    else:
        raise TypeError(
            f"parse input must be a ParseInput or mapping, got {type(parse_input).__name__}"
        )

    if not isinstance(pdf_text, str):
        raise TypeError(f"pdf_text must be a str, got {type(pdf_text).__name__}")
    return ParseInput(pdf_text=pdf_text, hints=_coerce_hints(hints))


def _telemetry(text: str, started: float, **counters: Any) -> ParseTelemetry:
    return ParseTelemetry(
        parser_version=PARSER_VERSION,
        output_schema_version=OUTPUT_SCHEMA_VERSION,
        parse_time_ms=int((time.perf_counter() - started) * 1000),
        contract_fingerprint=generate_fingerprint(text),
        **counters,
    )


def parse_contract_text(
    parse_input: ParseInput | Mapping[str, Any],
    config: ParserConfig | None = None,
    rules_engine: RulesEngine | None = None,
) -> ParseResult:
    """Parse cruise contract text into structured booking data.

    Args:
        parse_input: ``ParseInput`` or a mapping with ``pdf_text`` and an
            optional ``hints`` mapping.
        config: Parser thresholds; defaults to :data:`THRESHOLDS`.
        rules_engine: Validator for the assembled data; defaults to the
            built-in rules.

    Returns:
        The parse outcome with telemetry attached.

    Raises:
        TypeError: If the call shape is malformed.
    """
    started = time.perf_counter()
    request = _coerce_input(parse_input)
    cfg = config or THRESHOLDS
    text = request.pdf_text
    total_lines = len(text.splitlines())

    currency = detect_currency(text, request.hints, cfg)
    if not currency.success:
        result = ParseResult(
            success=False,
            needs_review=True,
            phase=PHASE_CURRENCY,
            reason=currency.reason,
            currency_candidates=currency.currency_candidates,
            telemetry=_telemetry(
                text, started, failure_stage="currency", total_lines=total_lines
            ),
        )
        log_parse_result(result)
        return result

    base_currency = currency.base_currency or ""
    inventory = extract_cabin_inventory(text, base_currency, cfg)
    key_dates = extract_key_dates(text)

    data = ParsedContract(
        base_currency=currency.base_currency,
        base_currency_confidence=currency.confidence,
        cabin_inventory=inventory.cabins,
        key_dates=key_dates.dates,
    )
    report = (rules_engine or DEFAULT_RULES_ENGINE).validate(data)

    parsed_lines = inventory.cabin_lines - len(inventory.unparsed_rows)
    parse_rate = (
        round(parsed_lines * 100 / inventory.cabin_lines) if inventory.cabin_lines else 0
    )
    dates_found = len(key_dates.dates.found())
    counters = {
        "parse_rate": parse_rate,
        "total_lines": total_lines,
        "cabins_parsed": len(inventory.cabins),
        "cabins_unparsed": len(inventory.unparsed_rows),
        "dates_found": dates_found,
        "currency_confidence": currency.confidence,
    }

    if not report.valid:
        result = ParseResult(
            success=False,
            needs_review=True,
            phase=PHASE_VALIDATION,
            reason="; ".join(report.errors),
            data=data,
            unparsed_rows=inventory.unparsed_rows,
            currency_candidates=currency.currency_candidates,
            missing_fields=key_dates.missing_fields,
            warnings=report.warnings,
            errors=report.errors,
            telemetry=_telemetry(text, started, failure_stage="validation", **counters),
        )
        log_parse_result(result)
        return result

    warnings = list(report.warnings)
    if inventory.cabin_lines and parse_rate < cfg.table_parse_rate_threshold:
        warnings.append(
            f"{len(inventory.unparsed_rows)} cabin rows could not be parsed "
            f"({parse_rate}% parse rate)"
        )
    if dates_found < cfg.dates_required_for_complete:
        warnings.append(f"Missing dates: {', '.join(key_dates.missing_fields)}")

    result = ParseResult(
        success=True,
        needs_review=False,
        partial=bool(inventory.unparsed_rows),
        data=data,
        unparsed_rows=inventory.unparsed_rows,
        currency_candidates=currency.currency_candidates,
        missing_fields=key_dates.missing_fields,
        warnings=warnings,
        telemetry=_telemetry(text, started, **counters),
    )
    log_parse_result(result)
    return result


def log_parse_result(result: ParseResult) -> None:
    """Emit a one-line summary of a parse outcome."""
    t = result.telemetry
    logger.info(
        "Parser v%s currency=%s confidence=%d%% parsed=%d/%d (%d%%) "
        "success=%s partial=%s needs_review=%s stage=%s time=%dms fp=%s",
        t.parser_version,
        result.data.base_currency if result.data else "UNKNOWN",
        t.currency_confidence,
        t.cabins_parsed,
        t.cabins_parsed + t.cabins_unparsed,
        t.parse_rate,
        result.success,
        result.partial,
        result.needs_review,
        t.failure_stage or "-",
        t.parse_time_ms,
        t.contract_fingerprint,
    )
