"""Configurable validation rules engine for parsed contract data.

Checks base currency, cabin rows and key dates before import. Each rule
carries a severity: errors block the import, warnings are shown to the
user but never block. Rules are loaded from YAML with built-in defaults.
"""

from collections.abc import Callable, Mapping
from dataclasses import asdict, dataclass, field, is_dataclass
from datetime import date
from pathlib import Path
from typing import Any

import yaml

from src.utils.logger import get_logger

from .validators import is_strict_int, validate_currency

logger = get_logger(__name__)

ERROR = "error"
WARNING = "warning"


@dataclass
class ValidationResult:
    """Result of a single rule check."""

    field_name: str
    is_valid: bool
    message: str
    rule_name: str
    severity: str = ERROR


@dataclass
class ValidationReport:
    """Aggregated validation report for parsed contract data."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    results: list[ValidationResult] = field(default_factory=list)


Rule = dict[str, Any]
Validator = Callable[[str, Any, Rule], list[ValidationResult]]


def as_plain_data(data: Any) -> dict[str, Any]:
    """Turn a ParsedContract or a mapping into plain nested dicts."""
    if is_dataclass(data) and not isinstance(data, type):
        return asdict(data)
    if isinstance(data, Mapping):
        plain = dict(data)
        cabins = plain.get("cabin_inventory")
        if isinstance(cabins, list):
            plain["cabin_inventory"] = [
                asdict(c) if is_dataclass(c) and not isinstance(c, type) else c
                for c in cabins
            ]
        key_dates = plain.get("key_dates")
        if is_dataclass(key_dates) and not isinstance(key_dates, type):
            plain["key_dates"] = asdict(key_dates)
        return plain
    raise TypeError(
        f"Parsed data must be a ParsedContract or a mapping, got {type(data).__name__}"
    )


def _lookup(data: Mapping[str, Any], path: str) -> Any:
    """Resolve a dotted path such as ``key_dates.sail_date``."""
    value: Any = data
    for part in path.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(part)
    return value


class RulesEngine:
    """Configurable validation rules engine.

    Applies field-level rules loaded from a YAML file. Each field maps to a
    list of ``{type, severity, message?}`` rules.

    Args:
        rules_path: Path to the validation rules YAML file, or ``None`` to
            use the built-in rules without touching the filesystem.
    """

    def __init__(
        self, rules_path: Path | None = Path("configs/validation_rules.yaml")
    ) -> None:
        self.rules = (
            self._load_rules(rules_path)
            if rules_path is not None
            else self._default_rules()
        )
        self._validators: dict[str, Validator] = {
            "required": self._validate_required,
            "supported_currency": self._validate_supported_currency,
            "non_empty": self._validate_non_empty,
            "cabin_numbers": self._validate_cabin_numbers,
            "positive_cents": self._validate_positive_cents,
            "iso_date": self._validate_iso_date,
        }

    def _load_rules(self, path: Path) -> dict:
        """Load validation rules from YAML file.

        Args:
            path: Path to the rules file.

        Returns:
            Dictionary of document-type-specific rules.
        """
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f)
                if data:
                    logger.info("Loaded validation rules from %s", path)
                    return data
        logger.debug("Using default validation rules")
        return self._default_rules()

    def _default_rules(self) -> dict:
        return {
            "contract": {
                "base_currency": [
                    {
                        "type": "required",
                        "severity": ERROR,
                        "message": "Base currency is required",
                    },
                    {"type": "supported_currency", "severity": ERROR},
                ],
                "cabin_inventory": [
                    {
                        "type": "non_empty",
                        "severity": WARNING,
                        "message": "No cabins found - you may need to add them manually",
                    },
                    {"type": "cabin_numbers", "severity": ERROR},
                    {"type": "positive_cents", "severity": ERROR},
                ],
                "key_dates.sail_date": [
                    {
                        "type": "required",
                        "severity": WARNING,
                        "message": "Sail date not detected - please verify manually",
                    },
                    {"type": "iso_date", "severity": ERROR},
                ],
                "key_dates.deposit_deadline": [{"type": "iso_date", "severity": ERROR}],
                "key_dates.final_payment_deadline": [
                    {"type": "iso_date", "severity": ERROR}
                ],
                "key_dates.option_expiration": [
                    {"type": "iso_date", "severity": ERROR}
                ],
            },
        }

    def validate(self, data: Any, document_type: str = "contract") -> ValidationReport:
        """Validate parsed data against the rules for ``document_type``.

        Args:
            data: A ``ParsedContract`` or a mapping with the same keys.
            document_type: Rule set to apply.

        Returns:
            Report with errors, warnings and every individual check.

        Raises:
            TypeError: If ``data`` is neither a dataclass nor a mapping.
        """
        plain = as_plain_data(data)
        results: list[ValidationResult] = []
        warnings: list[str] = []

        for field_name, rules in self.rules.get(document_type, {}).items():
            value = _lookup(plain, field_name)
            for rule in rules:
                rule_type = rule.get("type")
                validator = self._validators.get(rule_type)
                if not validator:
                    warnings.append(f"Unknown rule type: {rule_type}")
                    continue
                results.extend(validator(field_name, value, rule))

        base_currency = plain.get("base_currency")
        if base_currency:
            results.extend(self._cross_validate(plain, base_currency))

        errors = [
            r.message for r in results if not r.is_valid and r.severity == ERROR
        ]
        warnings.extend(
            r.message for r in results if not r.is_valid and r.severity == WARNING
        )
        valid = not errors
        logger.debug(
            "Validation for %s: %s (%d checks, %d warnings)",
            document_type,
            "PASSED" if valid else "FAILED",
            len(results),
            len(warnings),
        )
        return ValidationReport(
            valid=valid, errors=errors, warnings=warnings, results=results
        )

    @staticmethod
    def _result(
        field_name: str, ok: bool, message: str, rule: Rule, rule_name: str
    ) -> ValidationResult:
        return ValidationResult(
            field_name, ok, message, rule_name, rule.get("severity", ERROR)
        )

    def _validate_required(
        self, field_name: str, value: Any, rule: Rule
    ) -> list[ValidationResult]:
        """Check that a field is present and non-empty."""
        if value is not None and str(value).strip():
            return [self._result(field_name, True, "Field present", rule, "required")]
        message = rule.get("message", f"Required field missing: {field_name}")
        return [self._result(field_name, False, message, rule, "required")]

    def _validate_supported_currency(
        self, field_name: str, value: Any, rule: Rule
    ) -> list[ValidationResult]:
        if value is None:
            return []
        check = validate_currency(value)
        message = "Supported currency" if check.valid else str(check.error)
        return [
            self._result(field_name, check.valid, message, rule, "supported_currency")
        ]

    def _validate_non_empty(
        self, field_name: str, value: Any, rule: Rule
    ) -> list[ValidationResult]:
        if value:
            return [self._result(field_name, True, "Not empty", rule, "non_empty")]
        message = rule.get("message", f"{field_name} is empty")
        return [self._result(field_name, False, message, rule, "non_empty")]

    def _validate_cabin_numbers(
        self, field_name: str, value: Any, rule: Rule
    ) -> list[ValidationResult]:
        """Every cabin row needs a cabin number."""
        results: list[ValidationResult] = []
        for index, cabin in enumerate(value or [], start=1):
            number = cabin.get("cabin_number") if isinstance(cabin, Mapping) else None
            if number is None or not str(number).strip():
                results.append(
                    self._result(
                        f"{field_name}[{index}]",
                        False,
                        f"Cabin {index}: Missing cabin number",
                        rule,
                        "cabin_numbers",
                    )
                )
        return results

    def _validate_positive_cents(
        self, field_name: str, value: Any, rule: Rule
    ) -> list[ValidationResult]:
        """Every cabin cost must be a positive integer number of cents."""
        results: list[ValidationResult] = []
        for index, cabin in enumerate(value or [], start=1):
            if not isinstance(cabin, Mapping):
                continue
            cost = cabin.get("cost_cents")
            label = cabin.get("cabin_number") or index
            ok = is_strict_int(cost) and cost > 0
            message = (
                f"Cabin {label}: Valid cost"
                if ok
                else f"Cabin {label}: Invalid cost (must be positive integer cents)"
            )
            results.append(
                self._result(f"{field_name}[{index}]", ok, message, rule, "positive_cents")
            )
        return results

    def _validate_iso_date(
        self, field_name: str, value: Any, rule: Rule
    ) -> list[ValidationResult]:
        """Check that a present date is a real ``YYYY-MM-DD`` calendar date."""
        if value is None:
            return []
        try:
            date.fromisoformat(str(value))
        except ValueError:
            return [
                self._result(
                    field_name, False, f"Invalid date: {value}", rule, "iso_date"
                )
            ]
        return [self._result(field_name, True, "Valid ISO date", rule, "iso_date")]

    def _cross_validate(
        self, data: Mapping[str, Any], base_currency: str
    ) -> list[ValidationResult]:
        """Warn when a cabin is priced in a currency other than the base."""
        results: list[ValidationResult] = []
        for index, cabin in enumerate(data.get("cabin_inventory") or [], start=1):
            if not isinstance(cabin, Mapping):
                continue
            currency = cabin.get("currency")
            if currency and currency != base_currency:
                results.append(
                    ValidationResult(
                        f"cabin_inventory[{index}]",
                        False,
                        f"Cabin {cabin.get('cabin_number') or index}: currency "
                        f"({currency}) differs from base ({base_currency})",
                        "cabin_currency",
                        WARNING,
                    )
                )
        return results


def validate_parsed_data(
    data: Any, rules_path: Path = Path("configs/validation_rules.yaml")
) -> ValidationReport:
    """Validate parsed (or user-edited) contract data before import.

    Exposed separately from the parser so a UI can re-validate after a
    person edits the extracted fields.
    """
    return RulesEngine(rules_path).validate(data)
