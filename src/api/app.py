"""FastAPI application for the cruise contract parser.

Provides REST endpoints for parsing contract text, re-validating edited
contract data, reading parser thresholds, and health checks.
"""

from pathlib import Path

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from src.parsing.contract_parser import (
    OUTPUT_SCHEMA_VERSION,
    PARSER_VERSION,
    parse_contract_text,
)
from src.parsing.models import ParseResult
from src.utils.config import AppConfig, load_config
from src.utils.logger import get_logger
from src.validation.rules_engine import RulesEngine

from .schemas import (
    ContractData,
    HealthResponse,
    ParseOutcome,
    ParseRequest,
    ParseResponse,
    ThresholdsResponse,
    ValidationResponse,
    ValidationResultResponse,
)

logger = get_logger(__name__)

app = FastAPI(
    title="Cruise Contract Parser API",
    description="Extract currency, cabins and key dates from cruise contract text",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _get_components() -> tuple[AppConfig, RulesEngine]:
    """Load configuration and the validation rules engine.

    Returns:
        Tuple of (app_config, rules_engine).
    """
    config = load_config()
    return config, RulesEngine(Path(config.validation.rules_path))


def _outcome(result: ParseResult) -> ParseOutcome:
    if result.needs_review:
        return ParseOutcome.NEEDS_REVIEW
    return ParseOutcome.PARTIAL if result.partial else ParseOutcome.SUCCESS


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Return system health status."""
    return HealthResponse(status="healthy", version="1.0.0", parser_version=PARSER_VERSION)


@app.get("/thresholds", response_model=ThresholdsResponse)
async def thresholds() -> ThresholdsResponse:
    """Return the parser version and the thresholds currently in effect."""
    config, _ = _get_components()
    return ThresholdsResponse(
        parser_version=PARSER_VERSION,
        output_schema_version=OUTPUT_SCHEMA_VERSION,
        currency_confidence_threshold=config.parser.currency_confidence_threshold,
        table_parse_rate_threshold=config.parser.table_parse_rate_threshold,
        dates_required_for_complete=config.parser.dates_required_for_complete,
        min_cabin_price_cents=config.parser.min_cabin_price_cents,
    )


@app.post("/parse", response_model=ParseResponse)
async def parse_contract(request: ParseRequest) -> ParseResponse:
    """Parse cruise contract text.

    Args:
        request: Contract text plus optional hints.

    Returns:
        The parse outcome. Documents that need review are still a 200.
    """
    try:
        config, rules_engine = _get_components()
        hints = request.hints.model_dump() if request.hints else None
        result = parse_contract_text(
            {"pdf_text": request.pdf_text, "hints": hints},
            config=config.parser,
            rules_engine=rules_engine,
        )
        return ParseResponse(outcome=_outcome(result), **result.to_dict())
    except TypeError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except Exception as exc:
        logger.error("Parse failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@app.post("/validate", response_model=ValidationResponse)
async def validate_contract(data: ContractData) -> ValidationResponse:
    """Re-validate contract data after a person has edited it."""
    try:
        _, rules_engine = _get_components()
        report = rules_engine.validate(data.model_dump())
    except TypeError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except Exception as exc:
        logger.error("Validation failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    return ValidationResponse(
        valid=report.valid,
        errors=report.errors,
        warnings=report.warnings,
        results=[
            ValidationResultResponse(
                field_name=r.field_name,
                is_valid=r.is_valid,
                message=r.message,
                rule_name=r.rule_name,
                severity=r.severity,
            )
            for r in report.results
        ],
    )
