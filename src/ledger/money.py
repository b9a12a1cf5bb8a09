"""Integer-cents money primitives.

All monetary values are integers in the smallest currency unit. Decimal
input is parsed with :class:`decimal.Decimal`; binary floats are refused.
Exchange rates are stored as integer fractions and applied with integer
multiplication and division only.
"""

import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from src.utils.logger import get_logger

logger = get_logger(__name__)

CURRENCY_SYMBOLS: dict[str, str] = {
    "CAD": "$",
    "USD": "$",
    "MXN": "$",
    "EUR": "€",
    "GBP": "£",
}

_CENT = Decimal("0.01")
_EUROPEAN_AMOUNT = re.compile(r"^\d{1,3}(?:\.\d{3})+,\d{1,2}$|^\d+,\d{2}$")
_US_AMOUNT = re.compile(r"^\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?$|^\d+(?:\.\d{1,2})?$")


@dataclass(frozen=True)
class RateFraction:
    """Exchange rate held as an exact integer fraction.

    Example: USD to CAD at 1.36 is ``RateFraction(13600, 10000)``.
    """

    numerator: int
    denominator: int


IDENTITY_RATE = RateFraction(10000, 10000)


def _require_int(value: object, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer")
    return value


def to_cents(amount: str | Decimal | int) -> int:
    """Convert a decimal amount to integer cents.

    Args:
        amount: Amount such as ``"199.99"``, ``Decimal("199.99")`` or ``199``.

    Returns:
        Amount in cents, e.g. ``19999``.

    Raises:
        TypeError: If ``amount`` is a float or another unsupported type.
        ValueError: If the amount is not a number or has fractional cents.
    """
    if isinstance(amount, float):
        raise TypeError("Floats are not accepted for money; pass a str or Decimal")
    if isinstance(amount, bool) or not isinstance(amount, str | Decimal | int):
        raise TypeError(f"Unsupported amount type: {type(amount).__name__}")

    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {amount!r}") from exc

    if not value.is_finite():
        raise ValueError(f"Invalid amount: {amount!r}")
    if value.quantize(_CENT) != value:
        raise ValueError(f"Amount has fractional cents: {amount!r}")
    return int(value * 100)


def parse_amount(text: str) -> int | None:
    """Parse an OCR'd money string into cents.

    Accepts US (``1,500.00``) and European (``1.500,00``) grouping,
    ignoring currency symbols and codes. Returns ``None`` when the
    string is not an exact amount.
    """
    if not text:
        return None

    clean = re.sub(r"[$€£]|\b(?:USD|CAD|EUR|MXN|GBP)\b|\bC(?=\$)", "", text, flags=re.I)
    clean = clean.strip().rstrip(".,").strip()

    if _EUROPEAN_AMOUNT.match(clean):
        clean = clean.replace(".", "").replace(",", ".")
    elif _US_AMOUNT.match(clean):
        clean = clean.replace(",", "")
    else:
        return None

    try:
        return to_cents(clean)
    except ValueError:
        return None


def from_cents(cents: int) -> Decimal:
    """Convert integer cents to a two-place :class:`Decimal`."""
    _require_int(cents, "cents")
    return (Decimal(cents) / 100).quantize(_CENT)


def format_cents(cents: int, currency: str = "CAD") -> str:
    """Format cents for display, e.g. ``"$1,999.99 CAD"``.

    Non-integer input renders as zero rather than raising, since the
    result is only ever shown to a user.
    """
    if isinstance(cents, bool) or not isinstance(cents, int):
        cents = 0
    symbol = CURRENCY_SYMBOLS.get(currency, "$")
    value = from_cents(abs(cents))
    sign = "-" if cents < 0 else ""
    return f"{sign}{symbol}{value:,.2f} {currency}"


def add_cents(a: int, b: int) -> int:
    """Add two cent amounts."""
    return _require_int(a, "a") + _require_int(b, "b")


def subtract_cents(a: int, b: int) -> int:
    """Subtract ``b`` cents from ``a`` cents."""
    return _require_int(a, "a") - _require_int(b, "b")


def multiply_by_rate(amount_cents: int, rate: RateFraction) -> int:
    """Apply an exchange rate fraction to a cent amount.

    Uses integer arithmetic only; the result truncates toward zero.

    Raises:
        ValueError: If the amount or the rate terms are not integers,
            or the denominator is zero.
    """
    _require_int(amount_cents, "amount_cents")
    if rate is None:
        raise ValueError("rate must have integer numerator and denominator")
    _require_int(rate.numerator, "rate.numerator")
    _require_int(rate.denominator, "rate.denominator")
    if rate.denominator == 0:
        raise ValueError("denominator cannot be zero")

    product = amount_cents * rate.numerator
    quotient = abs(product) // abs(rate.denominator)
    negative = (product < 0) != (rate.denominator < 0)
    return -quotient if negative else quotient


def rate_to_fraction(rate: str | Decimal | int, precision: int = 4) -> RateFraction:
    """Store a decimal rate such as ``"1.36"`` as an integer fraction.

    Args:
        rate: Positive rate as str, Decimal or int.
        precision: Decimal places kept; the denominator is ``10**precision``.

    Raises:
        TypeError: If ``rate`` is a float.
        ValueError: If ``rate`` is not a positive number.
    """
    if isinstance(rate, float):
        raise TypeError("Floats are not accepted for rates; pass a str or Decimal")
    try:
        value = Decimal(str(rate))
    except InvalidOperation as exc:
        raise ValueError(f"Invalid rate: {rate!r}") from exc
    if not value.is_finite() or value <= 0:
        raise ValueError("Invalid rate: must be a positive number")

    denominator = 10**precision
    numerator = int((value * denominator).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    return RateFraction(numerator, denominator)


def fraction_to_rate(rate: RateFraction | None) -> Decimal:
    """Convert a rate fraction back to a Decimal, for display only."""
    if rate is None or not rate.numerator or not rate.denominator:
        return Decimal(1)
    return Decimal(rate.numerator) / Decimal(rate.denominator)
