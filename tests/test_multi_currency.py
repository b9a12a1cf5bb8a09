"""Tests for the multi-currency booking ledger."""

import logging
from decimal import Decimal

import pytest

from src.ledger.money import IDENTITY_RATE, RateFraction
from src.ledger.multi_currency import (
    Payment,
    calculate_financial_state,
    convert_to_base_currency,
    get_exchange_rate,
    prepare_payment_for_storage,
    validate_fx_rates,
    validate_payment_input,
)

USD_TO_CAD = RateFraction(13600, 10000)


class TestValidatePaymentInput:
    def test_valid_payment(self) -> None:
        assert validate_payment_input(Payment(10000, "CAD")) == []

    def test_rejects_non_payment(self) -> None:
        assert validate_payment_input({"amount_cents": 100}) == ["payment must be a Payment"]

    def test_reports_each_field(self) -> None:
        errors = validate_payment_input(Payment(-5, "XYZ"))
        assert len(errors) == 2
        assert errors[0].startswith("amount_cents:")
        assert errors[1].startswith("currency:")

    def test_rejects_bad_stored_rate(self) -> None:
        errors = validate_payment_input(Payment(100, "USD", RateFraction(0, 10000)))
        assert errors == ["exchange_rate_used: rate.numerator must be a positive integer"]

    def test_validate_fx_rates(self) -> None:
        assert validate_fx_rates({"USD": USD_TO_CAD}) == []
        assert len(validate_fx_rates({"XYZ": RateFraction(1, 0)})) == 2


class TestExchangeRate:
    def test_stored_rate_always_wins(self) -> None:
        stored = RateFraction(12500, 10000)
        payment = Payment(10000, "USD", stored)
        assert get_exchange_rate(payment, "CAD", {"USD": USD_TO_CAD}) == stored
        assert convert_to_base_currency(payment, "CAD", {"USD": USD_TO_CAD}) == 12500

    def test_same_currency_is_identity(self) -> None:
        assert get_exchange_rate(Payment(100, "CAD"), "CAD", {"CAD": USD_TO_CAD}) == IDENTITY_RATE

    def test_agency_rate(self) -> None:
        assert get_exchange_rate(Payment(100, "USD"), "CAD", {"USD": USD_TO_CAD}) == USD_TO_CAD

    def test_missing_rate_falls_back_with_warning(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="src.ledger.multi_currency"):
            rate = get_exchange_rate(Payment(100, "EUR"), "CAD")
        assert rate == IDENTITY_RATE
        assert "EUR" in caplog.text

    def test_convert_rejects_invalid_payment(self) -> None:
        with pytest.raises(ValueError, match="Invalid payment"):
            convert_to_base_currency(Payment(True, "CAD"), "CAD")


class TestCalculateFinancialState:
    def test_mixed_currency_payments(self) -> None:
        state = calculate_financial_state(
            [Payment(100000, "CAD"), Payment(50000, "USD")],
            cabin_cost_cents=300000,
            base_currency="CAD",
            fx_rates={"USD": USD_TO_CAD},
        )
        assert state.success is True
        assert state.total_paid_cents == 168000
        assert state.balance_cents == 132000
        assert state.payment_progress == Decimal("0.56")
        assert state.is_paid_in_full is False
        assert [b.converted_cents for b in state.breakdown] == [100000, 68000]
        assert state.breakdown[1].exchange_rate_decimal == Decimal("1.36")
        assert state.formatted == {
            "total_cost": "$3,000.00 CAD",
            "total_paid": "$1,680.00 CAD",
            "balance": "$1,320.00 CAD",
        }

    def test_paid_in_full(self) -> None:
        state = calculate_financial_state([Payment(350000, "USD")], 350000, "USD")
        assert state.balance_cents == 0
        assert state.is_paid_in_full is True

    def test_invalid_payments_are_skipped_and_reported(self) -> None:
        state = calculate_financial_state(
            [Payment(-5, "CAD"), Payment(1000, "CAD")], 5000, "CAD"
        )
        assert state.success is False
        assert state.total_paid_cents == 1000
        assert len(state.validation_errors) == 1
        assert state.validation_errors[0].startswith("payment[0]:")

    def test_zero_cost(self) -> None:
        state = calculate_financial_state([], 0)
        assert state.payment_progress == 0
        assert state.base_currency == "CAD"

    def test_invalid_cost_raises(self) -> None:
        with pytest.raises(ValueError):
            calculate_financial_state([], -1)
        with pytest.raises(ValueError):
            calculate_financial_state([], "1000")

    def test_invalid_base_currency_raises(self) -> None:
        with pytest.raises(ValueError):
            calculate_financial_state([], 1000, "XYZ")


class TestPreparePaymentForStorage:
    def test_captures_rate_at_payment_time(self) -> None:
        stored = prepare_payment_for_storage(
            Payment(10000, "USD"), "CAD", {"USD": USD_TO_CAD}
        )
        assert stored.exchange_rate_used == USD_TO_CAD
        assert stored.converted_cents == 13600
        assert stored.base_currency == "CAD"

    def test_stored_rate_survives_later_rate_changes(self) -> None:
        stored = prepare_payment_for_storage(
            Payment(10000, "USD"), "CAD", {"USD": USD_TO_CAD}
        )
        later = Payment(stored.amount_cents, stored.currency, stored.exchange_rate_used)
        new_rates = {"USD": RateFraction(14000, 10000)}
        assert convert_to_base_currency(later, "CAD", new_rates) == 13600

    def test_rejects_invalid_payment(self) -> None:
        with pytest.raises(ValueError, match="Invalid payment data"):
            prepare_payment_for_storage(Payment(100, "XYZ"), "CAD")
