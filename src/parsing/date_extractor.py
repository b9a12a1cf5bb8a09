"""Key booking date extraction.

Looks for labelled dates (sail date, deposit and final payment deadlines,
option expiration) and normalizes each to an ISO 8601 date string.
Dates are always optional at this stage; absent ones are listed in
``missing_fields``.
"""

import re
from datetime import datetime

from src.utils.logger import get_logger

from .models import KEY_DATE_FIELDS, KeyDates, KeyDatesResult

logger = get_logger(__name__)

_MONTH = r"(?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?"

DATE_VALUE = (
    r"(\d{4}-\d{1,2}-\d{1,2}"
    r"|\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}"
    rf"|{_MONTH}\s+\d{{1,2}}(?:st|nd|rd|th)?,?\s+\d{{4}}"
    rf"|\d{{1,2}}(?:st|nd|rd|th)?\s+{_MONTH},?\s+\d{{4}})"
)

# Labels and values often sit on consecutive lines in PDF table text.
_SEPARATOR = r"[ \t]*(?:[:\-]|on|by)?[ \t]*\n?[ \t]*"

# (field, label) pairs; labels are tried in order and the first valid date wins.
DATE_ANCHORS: tuple[tuple[str, str], ...] = (
    ("sail_date", r"sail(?:ing)?\s*date"),
    ("sail_date", r"departure\s*date"),
    ("sail_date", r"departure"),
    ("sail_date", r"embarkation(?:\s*date)?"),
    ("deposit_deadline", r"deposit\s*(?:due|deadline)(?:\s*date)?"),
    ("final_payment_deadline", r"final\s*payment\s*(?:due|deadline)(?:\s*date)?"),
    ("final_payment_deadline", r"final\s*(?:due|deadline)"),
    ("final_payment_deadline", r"balance\s*(?:due|deadline)(?:\s*date)?"),
    ("option_expiration", r"option\s*(?:expiration|expiry|expires|date)"),
    ("option_expiration", r"(?:courtesy\s*)?hold\s*(?:expires|expiration|until)"),
)

DATE_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = tuple(
    (field_name, re.compile(rf"\b{label}{_SEPARATOR}{DATE_VALUE}", re.IGNORECASE))
    for field_name, label in DATE_ANCHORS
)

# Tried in order against the canonical form built by ``_canonical``.
DATE_FORMATS: list[str] = [
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%d/%m/%Y",
    "%b %d %Y",
    "%d %b %Y",
]

_ORDINAL = re.compile(r"(\d)(?:st|nd|rd|th)\b", re.IGNORECASE)
_MONTH_WORD = re.compile(r"\b([a-z]{3})[a-z]*\.?", re.IGNORECASE)
_NUMERIC_SEPARATOR = re.compile(r"[\-.]")
_SHORT_YEAR = re.compile(r"^(\d{1,2}/\d{1,2}/)(\d{2})$")


def _canonical(value: str) -> str:
    """Reduce a matched date to slash-separated numbers or ``Mon D YYYY``."""
    value = _ORDINAL.sub(r"\1", value.strip())
    if value[:1].isdigit() and not re.search(r"[a-z]", value, re.IGNORECASE):
        value = _NUMERIC_SEPARATOR.sub("/", value)
        return _SHORT_YEAR.sub(r"\g<1>20\2", value)
    value = _MONTH_WORD.sub(r"\1", value).replace(",", " ")
    return " ".join(value.split())


def normalize_date(value: str) -> str | None:
    """Normalize a recognised date string to ``YYYY-MM-DD``.

    Numeric dates are read month-first unless the first part cannot be a
    month. Two-digit years are taken as 20xx. Calendar-invalid dates
    return ``None``.
    """
    canonical = _canonical(value)
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(canonical, fmt).date().isoformat()
        except ValueError:
            continue
    return None


def extract_key_dates(text: str) -> KeyDatesResult:
    """Extract labelled key dates from contract text.

    Args:
        text: Raw contract text.

    Returns:
        The dates found and the names of every expected field not found.
    """
    found: dict[str, str] = {}

    if text:
        for field_name, pattern in DATE_PATTERNS:
            if field_name in found:
                continue
            for match in pattern.finditer(text):
                normalized = normalize_date(match.group(1))
                if normalized:
                    found[field_name] = normalized
                    break

    missing = [name for name in KEY_DATE_FIELDS if name not in found]
    logger.debug("Date extraction: found=%s missing=%s", sorted(found), missing)
    return KeyDatesResult(dates=KeyDates(**found), missing_fields=missing)
