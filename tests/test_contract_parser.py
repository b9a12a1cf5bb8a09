"""Tests for the contract parse orchestrator."""

import logging
from pathlib import Path

import pytest
import yaml

from src.parsing.contract_parser import (
    OUTPUT_SCHEMA_VERSION,
    PARSER_VERSION,
    THRESHOLDS,
    parse_contract_text,
)
from src.parsing.currency_detector import REASON_EMPTY_INPUT, REASON_NO_EVIDENCE
from src.parsing.models import ParseHints, ParseInput
from src.validation.rules_engine import RulesEngine, validate_parsed_data


class TestScenarios:
    """End-to-end outcomes for representative contracts."""

    def test_clean_contract(self) -> None:
        text = "All amounts are in USD\nCabin 12345 - Balcony - $3,500.00\nSail Date: 06/15/2025"
        result = parse_contract_text({"pdf_text": text})

        assert result.success is True
        assert result.needs_review is False
        assert result.partial is False
        assert result.data.base_currency == "USD"
        assert len(result.data.cabin_inventory) == 1
        cabin = result.data.cabin_inventory[0]
        assert cabin.cabin_number == "12345"
        assert cabin.cost_cents == 350000
        assert cabin.type == "Balcony"
        assert result.data.key_dates.sail_date == "2025-06-15"

    def test_bare_dollar_needs_review(self) -> None:
        result = parse_contract_text({"pdf_text": "Total: $5,000.00"})
        assert result.success is False
        assert result.needs_review is True
        assert result.phase == "currency_detection"
        assert result.reason == REASON_NO_EVIDENCE
        assert result.telemetry.failure_stage == "currency"
        assert result.data is None

    def test_duplicate_cabin_keeps_highest_price(self) -> None:
        text = "Currency: CAD\nCabin 12345 - Deposit $500.00\nCabin 12345 - Total $3,500.00"
        result = parse_contract_text({"pdf_text": text})
        assert result.success is True
        assert [(c.cabin_number, c.cost_cents) for c in result.data.cabin_inventory] == [
            ("12345", 350000)
        ]
        assert result.data.cabin_inventory[0].currency == "CAD"

    def test_empty_input_needs_review(self) -> None:
        result = parse_contract_text({"pdf_text": ""})
        assert result.needs_review is True
        assert result.reason == REASON_EMPTY_INPUT
        assert result.telemetry.failure_stage == "currency"

    def test_unpriced_cabin_is_partial_success(self) -> None:
        text = (
            "All amounts are in USD\n"
            "Cabin 10234 - Interior - $1,200.00\n"
            "Cabin 10236 - Balcony - TBD\n"
            "Sail Date: 06/15/2025"
        )
        result = parse_contract_text({"pdf_text": text})
        assert result.success is True
        assert result.partial is True
        assert len(result.unparsed_rows) >= 1
        assert [c.cabin_number for c in result.data.cabin_inventory] == ["10234"]
        assert result.telemetry.parse_rate == 50
        assert any("parse rate" in w for w in result.warnings)

    def test_ambiguous_currency(self) -> None:
        text = "Cabin 1001 $1,500.00 USD\nCabin 1002 $2,000.00 CAD"
        result = parse_contract_text({"pdf_text": text})
        assert result.needs_review is True
        assert result.phase == "currency_detection"
        assert len(result.currency_candidates) >= 2


class TestProperties:
    def test_deterministic_ids(self, sample_contract: str) -> None:
        first = parse_contract_text({"pdf_text": sample_contract})
        second = parse_contract_text({"pdf_text": sample_contract})
        assert first.telemetry.contract_fingerprint == second.telemetry.contract_fingerprint
        assert [c.row_id for c in first.data.cabin_inventory] == [
            c.row_id for c in second.data.cabin_inventory
        ]

    def test_fingerprint_ignores_case_and_spacing(self, sample_contract: str) -> None:
        noisy = "  " + sample_contract.upper().replace("\n", "\n\n  ")
        assert (
            parse_contract_text({"pdf_text": noisy}).telemetry.contract_fingerprint
            == parse_contract_text({"pdf_text": sample_contract}).telemetry.contract_fingerprint
        )

    def test_no_guess_across_amounts(self) -> None:
        for amount in ("$1,500.00", "$25.00", "$99,999.99"):
            result = parse_contract_text({"pdf_text": f"Cabin 12345 total {amount}"})
            assert result.success is False
            assert result.needs_review is True

    def test_price_floor(self) -> None:
        text = "All amounts are in USD\nCabin 12345 - Port fee $25.00\nCabin 12346 $2,000.00"
        result = parse_contract_text({"pdf_text": text})
        assert [c.cabin_number for c in result.data.cabin_inventory] == ["12346"]

    def test_round_trip_validation(self, sample_contract: str) -> None:
        result = parse_contract_text({"pdf_text": sample_contract})
        assert result.success is True
        assert validate_parsed_data(result.data).valid is True
        assert validate_parsed_data(result.to_dict()["data"]).valid is True


class TestTelemetry:
    def test_success_telemetry(self, sample_contract: str) -> None:
        t = parse_contract_text({"pdf_text": sample_contract}).telemetry
        assert t.parser_version == PARSER_VERSION
        assert t.output_schema_version == OUTPUT_SCHEMA_VERSION == "ocr.v1"
        assert t.contract_fingerprint.startswith("fp_")
        assert t.parse_rate == 100
        assert t.failure_stage is None
        assert t.total_lines == 8
        assert t.cabins_parsed == 2
        assert t.cabins_unparsed == 0
        assert t.dates_found == 3
        assert t.currency_confidence == 30
        assert t.parse_time_ms >= 0

    def test_no_cabin_lines_reports_zero_rate(self) -> None:
        result = parse_contract_text({"pdf_text": "All amounts are in USD\nSail Date: 06/15/2025"})
        assert result.success is True
        assert result.telemetry.parse_rate == 0
        assert "No cabins found - you may need to add them manually" in result.warnings

    def test_missing_dates_warning(self) -> None:
        result = parse_contract_text({"pdf_text": "All amounts are in USD\nCabin 8254 $2,000.00"})
        assert result.success is True
        assert "Sail date not detected - please verify manually" in result.warnings
        assert any(w.startswith("Missing dates") for w in result.warnings)
        assert result.missing_fields == [
            "sail_date",
            "deposit_deadline",
            "final_payment_deadline",
            "option_expiration",
        ]

    def test_logs_one_info_line(
        self, sample_contract: str, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.INFO, logger="src.parsing.contract_parser"):
            parse_contract_text({"pdf_text": sample_contract})
        records = [r for r in caplog.records if r.name == "src.parsing.contract_parser"]
        assert len(records) == 1
        assert PARSER_VERSION in records[0].getMessage()

    def test_validation_adds_no_info_lines(
        self, sample_contract: str, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.INFO):
            parse_contract_text({"pdf_text": sample_contract})
        info = [r for r in caplog.records if r.levelno == logging.INFO]
        assert [r.name for r in info] == ["src.parsing.contract_parser"]

    def test_thresholds_are_exported(self) -> None:
        assert THRESHOLDS.currency_confidence_threshold == 30
        assert THRESHOLDS.table_parse_rate_threshold == 80
        assert THRESHOLDS.dates_required_for_complete == 1
        assert THRESHOLDS.min_cabin_price_cents == 10000


class TestInputContract:
    """Malformed calls raise; bad documents never do."""

    @pytest.mark.parametrize("bad", [None, 42, "raw text", ["pdf_text"]])
    def test_rejects_non_mapping(self, bad: object) -> None:
        with pytest.raises(TypeError):
            parse_contract_text(bad)

    def test_rejects_missing_key(self) -> None:
        with pytest.raises(TypeError, match="pdf_text"):
            parse_contract_text({"text": "Currency: USD"})

    def test_rejects_non_string_text(self) -> None:
        with pytest.raises(TypeError):
            parse_contract_text({"pdf_text": b"Currency: USD"})

    def test_rejects_bad_hints(self) -> None:
        with pytest.raises(TypeError):
            parse_contract_text({"pdf_text": "Currency: USD", "hints": "USD"})

    def test_accepts_parse_input(self) -> None:
        result = parse_contract_text(
            ParseInput(pdf_text="Booking total USD 2,000.00", hints=ParseHints(currency="USD"))
        )
        assert result.success is True
        assert result.data.base_currency == "USD"

    def test_hint_mapping(self) -> None:
        result = parse_contract_text(
            {"pdf_text": "Booking total USD 2,000.00", "hints": {"currency": "USD"}}
        )
        assert result.success is True

    def test_garbage_text_is_data_not_error(self) -> None:
        result = parse_contract_text({"pdf_text": "\x00\x01 lorem ipsum ₿ 💥"})
        assert result.needs_review is True


class TestValidationPhase:
    def test_hard_validation_error_needs_review(self, tmp_path: Path) -> None:
        rules = {
            "contract": {
                "key_dates.sail_date": [
                    {"type": "required", "severity": "error", "message": "Sail date required"}
                ]
            }
        }
        rules_path = tmp_path / "rules.yaml"
        with open(rules_path, "w") as f:
            yaml.dump(rules, f)

        result = parse_contract_text(
            {"pdf_text": "All amounts are in USD\nCabin 8254 $2,000.00"},
            rules_engine=RulesEngine(rules_path),
        )
        assert result.success is False
        assert result.needs_review is True
        assert result.phase == "validation"
        assert result.errors == ["Sail date required"]
        assert result.telemetry.failure_stage == "validation"
        assert result.data.cabin_inventory[0].cost_cents == 200000

    def test_default_rules_ignore_working_directory(
        self, sample_contract: str, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        before = parse_contract_text({"pdf_text": sample_contract})

        configs = tmp_path / "configs"
        configs.mkdir()
        rules = {
            "contract": {
                "key_dates.option_expiration": [
                    {"type": "required", "severity": "error", "message": "Option date required"}
                ]
            }
        }
        with open(configs / "validation_rules.yaml", "w") as f:
            yaml.dump(rules, f)
        monkeypatch.chdir(tmp_path)

        after = parse_contract_text({"pdf_text": sample_contract})
        assert after.success is before.success is True
        assert after.phase is None
        assert after.to_dict()["data"] == before.to_dict()["data"]
