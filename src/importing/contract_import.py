"""Contract import workflow.

Gates parsing behind the ``ocr_parsing`` plan feature, routes
unreadable text to manual entry, and enforces strict idempotency: a
contract fingerprint can be imported once per agency, with no override.
Confirmed imports are stored as immutable records carrying a minimal
diff of what the user changed after parsing.
"""

import threading
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

from src.billing.feature_gate import AccessDecision, AgencyProfile, FeatureGate
from src.parsing.contract_parser import (
    OUTPUT_SCHEMA_VERSION,
    PARSER_VERSION,
    parse_contract_text,
)
from src.parsing.models import KEY_DATE_FIELDS, ParseHints, ParseResult
from src.utils.config import ImportConfig, ParserConfig
from src.utils.logger import get_logger
from src.validation.rules_engine import RulesEngine, as_plain_data

logger = get_logger(__name__)

STATUS_PARSED = "parsed"
STATUS_MANUAL_ENTRY = "manual_entry"
STATUS_FEATURE_LOCKED = "feature_locked"

REASON_TOO_SHORT = (
    "Could not extract enough text from the contract. "
    "The file may be image-based or corrupt; enter the booking manually."
)

CABIN_DIFF_FIELDS: tuple[str, ...] = ("cabin_number", "type", "cost_cents", "currency")


class DuplicateImportError(Exception):
    """The contract fingerprint was already imported for this agency."""

    def __init__(self, existing: "ImportRecord") -> None:
        super().__init__(
            f"Contract {existing.fingerprint} already imported as {existing.import_id}"
        )
        self.existing = existing


@dataclass(frozen=True)
class EditChange:
    """One changed path; ``old`` is None for additions, ``new`` for removals."""

    path: str
    old: Any
    new: Any


@dataclass(frozen=True)
class EditsDiff:
    changes: tuple[EditChange, ...] = ()
    summary: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ImportRecord:
    """Immutable audit record of a confirmed import."""

    import_id: str
    agency_id: str
    fingerprint: str
    parser_version: str
    output_schema_version: str
    final_data: dict[str, Any]
    original_data: dict[str, Any] | None
    user_edits: EditsDiff
    created_by: str
    created_at: datetime
    warnings: tuple[str, ...] = ()


@dataclass
class ImportOutcome:
    """Result of running the parser on behalf of an agency."""

    status: str
    result: ParseResult | None = None
    reason: str | None = None
    access: AccessDecision | None = None
    duplicate_of: ImportRecord | None = None

    @property
    def is_duplicate(self) -> bool:
        return self.duplicate_of is not None


@dataclass
class ConfirmOutcome:
    success: bool
    record: ImportRecord | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class ImportRegistry(Protocol):
    """Storage for confirmed imports, scoped per agency."""

    def find_by_fingerprint(
        self, agency_id: str, fingerprint: str
    ) -> ImportRecord | None: ...

    def add(self, record: ImportRecord) -> None:
        """Store ``record``; raise ``DuplicateImportError`` if its fingerprint exists."""
        ...


class InMemoryImportRegistry:
    """Thread-safe in-process registry."""

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], ImportRecord] = {}
        self._lock = threading.Lock()

    def find_by_fingerprint(
        self, agency_id: str, fingerprint: str
    ) -> ImportRecord | None:
        with self._lock:
            return self._records.get((agency_id, fingerprint))

    def add(self, record: ImportRecord) -> None:
        key = (record.agency_id, record.fingerprint)
        with self._lock:
            existing = self._records.get(key)
            if existing is not None:
                raise DuplicateImportError(existing)
            self._records[key] = record

    def __len__(self) -> int:
        return len(self._records)


def _cabins_by_row_id(cabins: list[Any]) -> dict[str, dict[str, Any]]:
    rows: dict[str, dict[str, Any]] = {}
    for index, cabin in enumerate(cabins or []):
        if not isinstance(cabin, Mapping):
            continue
        row_id = cabin.get("row_id") or f"manual_{index}"
        rows[row_id] = dict(cabin)
    return rows


def calculate_edits_diff(original: Any, edited: Any) -> EditsDiff:
    """Record only what changed between the parsed and the confirmed data.

    Cabins are matched by ``row_id`` so a reordered list is not a change.

    Args:
        original: Parsed data, or ``None`` when there was nothing parsed.
        edited: Data the user confirmed.

    Returns:
        The list of changes and summary counts.
    """
    if original is None:
        return EditsDiff(summary={"is_new_import": True})

    before = as_plain_data(original)
    after = as_plain_data(edited)
    changes: list[EditChange] = []

    if before.get("base_currency") != after.get("base_currency"):
        changes.append(
            EditChange("base_currency", before.get("base_currency"), after.get("base_currency"))
        )

    before_dates = before.get("key_dates") or {}
    after_dates = after.get("key_dates") or {}
    for name in KEY_DATE_FIELDS:
        old, new = before_dates.get(name), after_dates.get(name)
        if old != new:
            changes.append(EditChange(f"key_dates.{name}", old, new))

    before_cabins = _cabins_by_row_id(before.get("cabin_inventory"))
    after_cabins = _cabins_by_row_id(after.get("cabin_inventory"))
    added = removed = modified = 0

    for row_id, cabin in after_cabins.items():
        path = f"cabin_inventory[row_id={row_id}]"
        previous = before_cabins.get(row_id)
        if previous is None:
            added += 1
            changes.append(EditChange(path, None, cabin))
            continue
        for name in CABIN_DIFF_FIELDS:
            if previous.get(name) != cabin.get(name):
                modified += 1
                changes.append(
                    EditChange(f"{path}.{name}", previous.get(name), cabin.get(name))
                )

    for row_id in before_cabins:
        if row_id not in after_cabins:
            removed += 1
            changes.append(
                EditChange(f"cabin_inventory[row_id={row_id}]", {"row_id": row_id}, None)
            )

    return EditsDiff(
        changes=tuple(changes),
        summary={
            "total_changes": len(changes),
            "currency_changed": any(c.path == "base_currency" for c in changes),
            "cabins_added": added,
            "cabins_removed": removed,
            "cabins_modified": modified,
            "dates_modified": [
                c.path.split(".", 1)[1] for c in changes if c.path.startswith("key_dates.")
            ],
        },
    )


class ContractImporter:
    """Runs the parser for an agency and records confirmed imports.

    Args:
        registry: Where confirmed imports are stored.
        gate: Feature gate; defaults to the built-in feature matrix.
        config: Import guards.
        parser_config: Thresholds passed through to the parser.
        rules_engine: Validator used when confirming.
    """

    def __init__(
        self,
        registry: ImportRegistry,
        gate: FeatureGate | None = None,
        config: ImportConfig | None = None,
        parser_config: ParserConfig | None = None,
        rules_engine: RulesEngine | None = None,
    ) -> None:
        self.registry = registry
        self.gate = gate or FeatureGate()
        self.config = config or ImportConfig()
        self.parser_config = parser_config
        self.rules_engine = rules_engine or RulesEngine()

    def run_parse(
        self,
        agency: AgencyProfile,
        pdf_text: str,
        hints: ParseHints | Mapping[str, Any] | None = None,
    ) -> ImportOutcome:
        """Parse contract text for ``agency`` if its plan allows it."""
        access = self.gate.check_feature_access(agency, self.config.feature_key)
        if not access.allowed:
            logger.info("Parsing not available for agency %s", agency.agency_id)
            return ImportOutcome(
                status=STATUS_FEATURE_LOCKED,
                reason=access.reason or access.error,
                access=access,
            )

        if len((pdf_text or "").strip()) < self.config.min_text_length:
            return ImportOutcome(status=STATUS_MANUAL_ENTRY, reason=REASON_TOO_SHORT)

        result = parse_contract_text(
            {"pdf_text": pdf_text, "hints": hints}, config=self.parser_config
        )
        fingerprint = result.telemetry.contract_fingerprint
        existing = None
        if agency.agency_id:
            existing = self.registry.find_by_fingerprint(agency.agency_id, fingerprint)
        if existing is not None:
            logger.info(
                "Contract %s already imported as %s", fingerprint, existing.import_id
            )
        return ImportOutcome(status=STATUS_PARSED, result=result, duplicate_of=existing)

    def confirm_import(
        self,
        agency_id: str,
        edited_data: Any,
        parse_result: ParseResult,
        created_by: str,
    ) -> ConfirmOutcome:
        """Validate the user's final data and store an import record.

        Raises:
            DuplicateImportError: If this contract was already imported
                for the agency.
        """
        report = self.rules_engine.validate(edited_data)
        if not report.valid:
            return ConfirmOutcome(
                success=False, errors=report.errors, warnings=report.warnings
            )

        telemetry = parse_result.telemetry
        existing = self.registry.find_by_fingerprint(
            agency_id, telemetry.contract_fingerprint
        )
        if existing is not None:
            raise DuplicateImportError(existing)

        original = (
            as_plain_data(parse_result.data) if parse_result.data is not None else None
        )
        record = ImportRecord(
            import_id=f"imp_{uuid.uuid4().hex[:12]}",
            agency_id=agency_id,
            fingerprint=telemetry.contract_fingerprint,
            parser_version=telemetry.parser_version or PARSER_VERSION,
            output_schema_version=telemetry.output_schema_version or OUTPUT_SCHEMA_VERSION,
            final_data=as_plain_data(edited_data),
            original_data=original,
            user_edits=calculate_edits_diff(original, edited_data),
            created_by=created_by,
            created_at=datetime.now(timezone.utc),
            warnings=tuple(report.warnings),
        )
        self.registry.add(record)
        logger.info(
            "Imported contract %s for agency %s as %s (%d edits)",
            record.fingerprint,
            agency_id,
            record.import_id,
            len(record.user_edits.changes),
        )
        return ConfirmOutcome(success=True, record=record, warnings=report.warnings)
