"""Cabin inventory extraction from contract text.

Finds cabin/stateroom references, pairs each with the largest qualifying
price in a short window of text, and keeps one row per cabin number.
Lines that look like cabins but cannot be priced are returned as
unparsed rows instead of being dropped.
"""

import re

from src.ledger.money import parse_amount
from src.utils.config import ParserConfig
from src.utils.logger import get_logger

from .fingerprint import generate_row_id
from .models import CabinInventoryResult, CabinRow, UnparsedRow

logger = get_logger(__name__)

_KEYWORD = r"\b(?:stateroom|cabin|cabina|camarote|room)\b"

CABIN_KEYWORD_PATTERN = re.compile(_KEYWORD, re.IGNORECASE)
CABIN_NUMBER_PATTERN = re.compile(
    _KEYWORD + r"[ \t]*(?:#|no\.?|number)?[ \t]*[:#\-]?[ \t]*([A-Z]?\d{3,5}[A-Z]?)\b",
    re.IGNORECASE,
)

_CODES = r"(?:USD|CAD|EUR|MXN|GBP)"
_AMOUNT = r"(\d[\d,.]*\d|\d)"

PRICE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        rf"(?:C?\$|€|£)[ \t]*{_AMOUNT}",
        rf"\b{_CODES}[ \t]*(?:C?\$|€|£)?[ \t]*{_AMOUNT}",
        rf"{_AMOUNT}[ \t]*(?:{_CODES}\b|€)",
    )
)

# Most specific first; the first hit on a line names the cabin type.
CABIN_TYPES: tuple[tuple[re.Pattern[str], str], ...] = tuple(
    (re.compile(p, re.IGNORECASE), label)
    for p, label in (
        (r"\bmini[\s\-]?suite\b", "Mini-Suite"),
        (r"\bjunior\s+suite\b", "Junior Suite"),
        (r"\bsuite\b", "Suite"),
        (r"\b(?:balcony|verandah?)\b", "Balcony"),
        (r"\b(?:ocean\s*view|outside)\b", "Oceanview"),
        (r"\b(?:interior|inside)\b", "Interior"),
    )
)

ISSUE_NO_PRICE = "Price not found"
ISSUE_BELOW_FLOOR = "Price below minimum cabin price"
ISSUE_NO_CABIN_NUMBER = "Cabin number not found"


def find_amounts(text: str) -> list[int]:
    """Return every currency-marked amount in ``text`` as cents."""
    amounts: list[int] = []
    for pattern in PRICE_PATTERNS:
        for match in pattern.finditer(text):
            cents = parse_amount(match.group(1))
            if cents is not None:
                amounts.append(cents)
    return amounts


def detect_cabin_type(line: str) -> str | None:
    for pattern, label in CABIN_TYPES:
        if pattern.search(line):
            return label
    return None


def _price_window(lines: list[str], index: int, size: int) -> list[str]:
    """The cabin line plus following lines up to the next cabin line."""
    window = [lines[index]]
    for line in lines[index + 1 : index + 1 + size]:
        if CABIN_KEYWORD_PATTERN.search(line):
            break
        window.append(line)
    return window


def _truncate(line: str, limit: int = 150) -> str:
    return line[:limit]


def extract_cabin_inventory(
    text: str, resolved_currency: str, config: ParserConfig | None = None
) -> CabinInventoryResult:
    """Extract priced cabins from contract text.

    Args:
        text: Raw contract text.
        resolved_currency: Currency already chosen by the detector; it is
            stamped on every row and never re-detected here.
        config: Parser thresholds (price floor, window size).

    Returns:
        Deduplicated cabins, unparsed rows, and whether the parse is partial.
    """
    cfg = config or ParserConfig()
    if not text:
        return CabinInventoryResult()

    lines = text.splitlines()
    parsed: list[CabinRow] = []
    unparsed: list[UnparsedRow] = []

    for index, raw in enumerate(lines):
        if not CABIN_KEYWORD_PATTERN.search(raw):
            continue

        line = raw.strip()
        line_number = index + 1
        number_match = CABIN_NUMBER_PATTERN.search(raw)

        if number_match is None:
            qualifying = [
                c for c in find_amounts(raw) if c > cfg.min_cabin_price_cents
            ]
            if qualifying:
                unparsed.append(
                    UnparsedRow(
                        row_id=generate_row_id(None, line, line_number),
                        line_number=line_number,
                        raw_line=_truncate(line),
                        cabin_number=None,
                        issue=ISSUE_NO_CABIN_NUMBER,
                    )
                )
            continue

        cabin_number = number_match.group(1).upper()
        window = _price_window(lines, index, cfg.price_window_lines)
        amounts = [c for segment in window for c in find_amounts(segment)]
        qualifying = [c for c in amounts if c > cfg.min_cabin_price_cents]

        if not qualifying:
            unparsed.append(
                UnparsedRow(
                    row_id=generate_row_id(cabin_number, line, line_number),
                    line_number=line_number,
                    raw_line=_truncate(line),
                    cabin_number=cabin_number,
                    issue=ISSUE_BELOW_FLOOR if amounts else ISSUE_NO_PRICE,
                )
            )
            continue

        parsed.append(
            CabinRow(
                row_id=generate_row_id(cabin_number, line, line_number),
                cabin_number=cabin_number,
                type=detect_cabin_type(line),
                cost_cents=max(qualifying),
                currency=resolved_currency,
                line_number=line_number,
                raw_line=_truncate(line, 100),
            )
        )

    cabins = deduplicate_cabins(parsed)
    logger.debug(
        "Cabin extraction: %d parsed, %d unique, %d unparsed",
        len(parsed),
        len(cabins),
        len(unparsed),
    )

    return CabinInventoryResult(
        cabins=cabins,
        unparsed_rows=unparsed,
        partial=bool(unparsed),
        cabin_lines=len(parsed) + len(unparsed),
    )


def deduplicate_cabins(rows: list[CabinRow]) -> list[CabinRow]:
    """Keep the highest-priced row per cabin number, in first-seen order.

    Deposit and total lines often both mention a cabin; the larger figure
    is taken as the more complete one. Ties keep the earlier row.
    """
    best: dict[str, CabinRow] = {}
    for row in rows:
        current = best.get(row.cabin_number)
        if current is None or row.cost_cents > current.cost_cents:
            best[row.cabin_number] = row
    return list(best.values())
