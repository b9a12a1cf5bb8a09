"""Tests for the contract import workflow."""

import pytest

from src.billing.feature_gate import AgencyProfile
from src.importing.contract_import import (
    STATUS_FEATURE_LOCKED,
    STATUS_MANUAL_ENTRY,
    STATUS_PARSED,
    ContractImporter,
    DuplicateImportError,
    InMemoryImportRegistry,
    calculate_edits_diff,
)
from src.parsing.contract_parser import PARSER_VERSION
from src.utils.config import ImportConfig
from src.validation.rules_engine import as_plain_data

PRO_AGENCY = AgencyProfile(agency_id="agency-1", subscription_status="active", plan_key="pro")


class TestRunParse:
    """Tests for ContractImporter.run_parse."""

    def setup_method(self) -> None:
        self.registry = InMemoryImportRegistry()
        self.importer = ContractImporter(self.registry)

    def test_parses_for_entitled_agency(self, sample_contract: str) -> None:
        outcome = self.importer.run_parse(PRO_AGENCY, sample_contract)
        assert outcome.status == STATUS_PARSED
        assert outcome.result.success is True
        assert outcome.is_duplicate is False

    def test_plan_without_parsing_is_locked(self, sample_contract: str) -> None:
        solo = AgencyProfile(
            agency_id="agency-2", subscription_status="active", plan_key="solo_groups"
        )
        outcome = self.importer.run_parse(solo, sample_contract)
        assert outcome.status == STATUS_FEATURE_LOCKED
        assert outcome.result is None
        assert outcome.access.upsell_message is not None

    def test_blocked_subscription_is_locked(self, sample_contract: str) -> None:
        lapsed = AgencyProfile(agency_id="agency-3", subscription_status="past_due", plan_key="pro")
        outcome = self.importer.run_parse(lapsed, sample_contract)
        assert outcome.status == STATUS_FEATURE_LOCKED
        assert outcome.reason == "past_due"

    def test_short_text_routes_to_manual_entry(self) -> None:
        outcome = self.importer.run_parse(PRO_AGENCY, "   Currency: USD   ")
        assert outcome.status == STATUS_MANUAL_ENTRY
        assert outcome.result is None

    def test_min_length_is_configurable(self) -> None:
        importer = ContractImporter(self.registry, config=ImportConfig(min_text_length=5))
        outcome = importer.run_parse(PRO_AGENCY, "Currency: USD")
        assert outcome.status == STATUS_PARSED

    def test_flags_previously_imported_contract(self, sample_contract: str) -> None:
        first = self.importer.run_parse(PRO_AGENCY, sample_contract)
        self.importer.confirm_import("agency-1", first.result.data, first.result, "user-1")

        again = self.importer.run_parse(PRO_AGENCY, sample_contract)
        assert again.is_duplicate is True
        assert again.duplicate_of.fingerprint == first.result.telemetry.contract_fingerprint


class TestConfirmImport:
    """Tests for ContractImporter.confirm_import."""

    def setup_method(self) -> None:
        self.registry = InMemoryImportRegistry()
        self.importer = ContractImporter(self.registry)

    def _parse(self, text: str):
        return self.importer.run_parse(PRO_AGENCY, text).result

    def test_stores_immutable_record(self, sample_contract: str) -> None:
        result = self._parse(sample_contract)
        outcome = self.importer.confirm_import("agency-1", result.data, result, "user-1")

        assert outcome.success is True
        record = outcome.record
        assert record.import_id.startswith("imp_")
        assert record.fingerprint == result.telemetry.contract_fingerprint
        assert record.parser_version == PARSER_VERSION
        assert record.output_schema_version == "ocr.v1"
        assert record.user_edits.changes == ()
        assert record.final_data["base_currency"] == "USD"
        assert len(self.registry) == 1
        with pytest.raises(AttributeError):
            record.created_by = "someone-else"

    def test_duplicate_is_refused(self, sample_contract: str) -> None:
        result = self._parse(sample_contract)
        self.importer.confirm_import("agency-1", result.data, result, "user-1")

        with pytest.raises(DuplicateImportError) as exc_info:
            self.importer.confirm_import("agency-1", result.data, result, "user-2")
        assert exc_info.value.existing.created_by == "user-1"
        assert len(self.registry) == 1

    def test_same_contract_for_another_agency(self, sample_contract: str) -> None:
        result = self._parse(sample_contract)
        self.importer.confirm_import("agency-1", result.data, result, "user-1")
        outcome = self.importer.confirm_import("agency-2", result.data, result, "user-9")
        assert outcome.success is True
        assert len(self.registry) == 2

    def test_invalid_edits_are_rejected(self, sample_contract: str) -> None:
        result = self._parse(sample_contract)
        edited = as_plain_data(result.data)
        edited["cabin_inventory"][0]["cost_cents"] = -1

        outcome = self.importer.confirm_import("agency-1", edited, result, "user-1")
        assert outcome.success is False
        assert outcome.errors
        assert len(self.registry) == 0

    def test_records_user_edits(self, sample_contract: str) -> None:
        result = self._parse(sample_contract)
        edited = as_plain_data(result.data)
        edited["cabin_inventory"][0]["cost_cents"] = 360000

        outcome = self.importer.confirm_import("agency-1", edited, result, "user-1")
        summary = outcome.record.user_edits.summary
        assert summary["cabins_modified"] == 1
        assert summary["total_changes"] == 1

    def test_registry_add_is_strict(self, sample_contract: str) -> None:
        result = self._parse(sample_contract)
        record = self.importer.confirm_import("agency-1", result.data, result, "u").record
        with pytest.raises(DuplicateImportError):
            self.registry.add(record)


class TestCalculateEditsDiff:
    """Tests for calculate_edits_diff."""

    def setup_method(self) -> None:
        self.original = {
            "base_currency": "USD",
            "cabin_inventory": [
                {"row_id": "row_a", "cabin_number": "8254", "cost_cents": 350000, "currency": "USD"},
                {"row_id": "row_b", "cabin_number": "9120", "cost_cents": 280000, "currency": "USD"},
            ],
            "key_dates": {"sail_date": "2025-06-15"},
        }

    def test_no_original_is_new_import(self) -> None:
        diff = calculate_edits_diff(None, self.original)
        assert diff.changes == ()
        assert diff.summary == {"is_new_import": True}

    def test_identical_data_has_no_changes(self) -> None:
        diff = calculate_edits_diff(self.original, self.original)
        assert diff.changes == ()
        assert diff.summary["total_changes"] == 0

    def test_reordering_cabins_is_not_a_change(self) -> None:
        edited = dict(self.original)
        edited["cabin_inventory"] = list(reversed(self.original["cabin_inventory"]))
        assert calculate_edits_diff(self.original, edited).changes == ()

    def test_tracks_every_kind_of_edit(self) -> None:
        edited = {
            "base_currency": "CAD",
            "cabin_inventory": [
                {"row_id": "row_a", "cabin_number": "8254", "cost_cents": 360000, "currency": "USD"},
                {"cabin_number": "7001", "cost_cents": 150000, "currency": "USD"},
            ],
            "key_dates": {"sail_date": "2025-06-16", "deposit_deadline": "2025-01-10"},
        }
        diff = calculate_edits_diff(self.original, edited)
        paths = [c.path for c in diff.changes]

        assert "base_currency" in paths
        assert "key_dates.sail_date" in paths
        assert "key_dates.deposit_deadline" in paths
        assert "cabin_inventory[row_id=row_a].cost_cents" in paths
        assert "cabin_inventory[row_id=manual_1]" in paths
        assert "cabin_inventory[row_id=row_b]" in paths

        assert diff.summary["currency_changed"] is True
        assert diff.summary["cabins_added"] == 1
        assert diff.summary["cabins_removed"] == 1
        assert diff.summary["cabins_modified"] == 1
        assert diff.summary["dates_modified"] == ["sail_date", "deposit_deadline"]

        removed = next(c for c in diff.changes if c.path == "cabin_inventory[row_id=row_b]")
        assert removed.old == {"row_id": "row_b"}
        assert removed.new is None
