"""Multi-currency booking ledger.

Payments are converted to the booking's base currency with integer
rate fractions. A payment keeps the rate captured when it was recorded
and is never re-converted at a newer rate.
"""

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any

from src.utils.logger import get_logger
from src.validation.validators import (
    collect_errors,
    validate_cents,
    validate_currency,
    validate_rate_fraction,
)

from .money import (
    IDENTITY_RATE,
    RateFraction,
    add_cents,
    format_cents,
    fraction_to_rate,
    multiply_by_rate,
    subtract_cents,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class Payment:
    """A payment in its original currency.

    ``exchange_rate_used`` is set once at storage time and then always
    wins over current agency rates.
    """

    amount_cents: int
    currency: str
    exchange_rate_used: RateFraction | None = None


@dataclass
class StoredPayment:
    """A payment with its conversion captured for persistence."""

    amount_cents: int
    currency: str
    exchange_rate_used: RateFraction
    base_currency: str
    converted_cents: int


@dataclass
class PaymentBreakdown:
    original_currency: str
    original_amount_cents: int
    exchange_rate_used: RateFraction
    exchange_rate_decimal: Decimal
    converted_cents: int
    converted_currency: str


@dataclass
class FinancialState:
    """Totals for one booking, all in base currency cents."""

    success: bool
    cabin_cost_cents: int
    total_paid_cents: int
    balance_cents: int
    base_currency: str
    payment_progress: Decimal
    is_paid_in_full: bool
    breakdown: list[PaymentBreakdown] = field(default_factory=list)
    formatted: dict[str, str] = field(default_factory=dict)
    validation_errors: list[str] = field(default_factory=list)


def validate_payment_input(payment: Any) -> list[str]:
    """Return every problem with a payment; an empty list means valid."""
    if not isinstance(payment, Payment):
        return ["payment must be a Payment"]

    checks = [
        (validate_cents(payment.amount_cents, "amount_cents"), "amount_cents"),
        (validate_currency(payment.currency), "currency"),
    ]
    if payment.exchange_rate_used is not None:
        checks.append(
            (validate_rate_fraction(payment.exchange_rate_used), "exchange_rate_used")
        )
    return collect_errors(checks)


def validate_fx_rates(fx_rates: dict[str, RateFraction]) -> list[str]:
    errors: list[str] = []
    for currency, rate in fx_rates.items():
        for check in (validate_currency(currency), validate_rate_fraction(rate)):
            if not check.valid:
                errors.append(f"fx_rates.{currency}: {check.error}")
    return errors


def get_exchange_rate(
    payment: Payment,
    base_currency: str,
    fx_rates: dict[str, RateFraction] | None = None,
) -> RateFraction:
    """Pick the rate for converting ``payment`` into ``base_currency``.

    Order: the payment's stored rate, 1:1 for the same currency, the
    agency rate, and finally 1:1 with a warning.
    """
    if payment.exchange_rate_used is not None:
        return payment.exchange_rate_used
    if payment.currency == base_currency:
        return IDENTITY_RATE

    rate = (fx_rates or {}).get(payment.currency)
    if rate is not None:
        return rate

    logger.warning("No rate found for %s, using 1:1", payment.currency)
    return IDENTITY_RATE


def convert_to_base_currency(
    payment: Payment,
    base_currency: str,
    fx_rates: dict[str, RateFraction] | None = None,
) -> int:
    """Convert a payment to base currency cents.

    Raises:
        ValueError: If the payment is invalid.
    """
    errors = validate_payment_input(payment)
    if errors:
        raise ValueError(f"Invalid payment: {'; '.join(errors)}")
    return multiply_by_rate(
        payment.amount_cents, get_exchange_rate(payment, base_currency, fx_rates)
    )


def calculate_financial_state(
    payments: list[Payment],
    cabin_cost_cents: int,
    base_currency: str = "CAD",
    fx_rates: dict[str, RateFraction] | None = None,
) -> FinancialState:
    """Compute paid total, balance and progress for a booking.

    Invalid payments are skipped and reported in ``validation_errors``
    rather than aborting the calculation.

    Args:
        payments: Payments in any supported currency.
        cabin_cost_cents: Total booking cost in base currency cents.
        base_currency: Currency the booking is billed in.
        fx_rates: Agency rates by currency code.

    Returns:
        The booking's financial state.

    Raises:
        ValueError: If the cost or the base currency is invalid.
    """
    cost_check = validate_cents(cabin_cost_cents, "cabin_cost_cents")
    if not cost_check.valid:
        raise ValueError(cost_check.error)
    currency_check = validate_currency(base_currency)
    if not currency_check.valid:
        raise ValueError(currency_check.error)

    total_paid = 0
    breakdown: list[PaymentBreakdown] = []
    errors: list[str] = []

    for index, payment in enumerate(payments):
        payment_errors = validate_payment_input(payment)
        if payment_errors:
            errors.append(f"payment[{index}]: {'; '.join(payment_errors)}")
            continue

        rate = get_exchange_rate(payment, base_currency, fx_rates)
        converted = multiply_by_rate(payment.amount_cents, rate)
        total_paid = add_cents(total_paid, converted)
        breakdown.append(
            PaymentBreakdown(
                original_currency=payment.currency,
                original_amount_cents=payment.amount_cents,
                exchange_rate_used=rate,
                exchange_rate_decimal=fraction_to_rate(rate),
                converted_cents=converted,
                converted_currency=base_currency,
            )
        )

    balance = subtract_cents(cabin_cost_cents, total_paid)
    progress = (
        Decimal(total_paid) / Decimal(cabin_cost_cents) if cabin_cost_cents else Decimal(0)
    )
    if errors:
        logger.warning("Skipped %d invalid payments", len(errors))

    return FinancialState(
        success=not errors,
        cabin_cost_cents=cabin_cost_cents,
        total_paid_cents=total_paid,
        balance_cents=balance,
        base_currency=base_currency,
        payment_progress=progress,
        is_paid_in_full=balance <= 0,
        breakdown=breakdown,
        formatted={
            "total_cost": format_cents(cabin_cost_cents, base_currency),
            "total_paid": format_cents(total_paid, base_currency),
            "balance": format_cents(balance, base_currency),
        },
        validation_errors=errors,
    )


def prepare_payment_for_storage(
    payment: Payment,
    base_currency: str,
    fx_rates: dict[str, RateFraction] | None = None,
) -> StoredPayment:
    """Capture the exchange rate at payment time for persistence.

    Any rate already on ``payment`` is ignored; the current agency rate
    is the one frozen onto the stored record.

    Raises:
        ValueError: If the payment is invalid.
    """
    fresh = replace(payment, exchange_rate_used=None)
    errors = validate_payment_input(fresh)
    if errors:
        raise ValueError(f"Invalid payment data: {'; '.join(errors)}")

    rate = get_exchange_rate(fresh, base_currency, fx_rates)
    return StoredPayment(
        amount_cents=payment.amount_cents,
        currency=payment.currency,
        exchange_rate_used=rate,
        base_currency=base_currency,
        converted_cents=multiply_by_rate(payment.amount_cents, rate),
    )
