"""Shared field validators.

Each validator inspects a single value and reports whether it is
acceptable, with a human-readable error when it is not.
"""

from dataclasses import dataclass
from typing import Any

SUPPORTED_CURRENCIES: tuple[str, ...] = ("CAD", "USD", "EUR", "MXN", "GBP")
SUBSCRIPTION_STATUSES: tuple[str, ...] = (
    "trialing",
    "active",
    "past_due",
    "canceled",
    "incomplete",
    "suspended",
)
PLAN_KEYS: tuple[str, ...] = ("trial", "solo_groups", "pro", "enterprise")


@dataclass(frozen=True)
class FieldCheck:
    """Outcome of validating a single value."""

    valid: bool
    error: str | None = None


_OK = FieldCheck(True)


def is_strict_int(value: Any) -> bool:
    """Return True for ints that are not bools."""
    return isinstance(value, int) and not isinstance(value, bool)


def validate_cents(value: Any, field_name: str = "amount") -> FieldCheck:
    """Check that a value is a non-negative integer cent amount."""
    if value is None:
        return FieldCheck(False, f"{field_name} is required")
    if not is_strict_int(value):
        return FieldCheck(False, f"{field_name} must be an integer (cents)")
    if value < 0:
        return FieldCheck(False, f"{field_name} cannot be negative")
    return _OK


def validate_currency(value: Any) -> FieldCheck:
    """Check that a value is a supported ISO currency code."""
    if not value or not isinstance(value, str):
        return FieldCheck(False, "currency is required")
    if value.upper() not in SUPPORTED_CURRENCIES:
        return FieldCheck(
            False, f"currency must be one of: {', '.join(SUPPORTED_CURRENCIES)}"
        )
    return _OK


def validate_rate_fraction(rate: Any) -> FieldCheck:
    """Check that a rate has positive integer numerator and denominator."""
    numerator = getattr(rate, "numerator", None)
    denominator = getattr(rate, "denominator", None)
    if rate is None or numerator is None or denominator is None:
        return FieldCheck(
            False, "rate must be an object with numerator and denominator"
        )
    if not is_strict_int(numerator) or numerator <= 0:
        return FieldCheck(False, "rate.numerator must be a positive integer")
    if not is_strict_int(denominator) or denominator <= 0:
        return FieldCheck(False, "rate.denominator must be a positive integer")
    return _OK


def validate_subscription_status(value: Any) -> FieldCheck:
    if not value or not isinstance(value, str):
        return FieldCheck(False, "status is required")
    if value not in SUBSCRIPTION_STATUSES:
        return FieldCheck(
            False, f"status must be one of: {', '.join(SUBSCRIPTION_STATUSES)}"
        )
    return _OK


def validate_plan_key(value: Any) -> FieldCheck:
    if not value or not isinstance(value, str):
        return FieldCheck(False, "plan_key is required")
    if value not in PLAN_KEYS:
        return FieldCheck(False, f"plan_key must be one of: {', '.join(PLAN_KEYS)}")
    return _OK


def collect_errors(checks: list[tuple[FieldCheck, str]]) -> list[str]:
    """Flatten ``(check, field_path)`` pairs into prefixed error messages."""
    return [f"{path}: {check.error}" for check, path in checks if not check.valid]
