"""Strict currency detection for cruise contract text.

Only explicit signals count as evidence: ISO codes, currency names,
declarations such as "All amounts are in USD", and amounts paired with a
code or an unambiguous symbol. A bare ``$`` is never enough to tell USD,
CAD and MXN apart, so text carrying nothing else is sent to review.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass

from src.utils.config import ParserConfig
from src.utils.logger import get_logger

from .models import CurrencyCandidate, CurrencyDetectionResult, ParseHints

logger = get_logger(__name__)

REASON_EMPTY_INPUT = "empty input"
REASON_NO_EVIDENCE = "$ symbol alone cannot determine currency"
REASON_AMBIGUOUS = (
    "Multiple currencies detected with similar confidence. "
    "Please select the correct base currency."
)

EXPLICIT = "explicit"
PRICED = "priced"

_AMOUNT = r"\d[\d,.]*"
_GAP = r"[ \t]*"


@dataclass(frozen=True)
class EvidenceRule:
    """One row of the evidence table: a pattern, its weight class, its currency."""

    pattern: re.Pattern[str]
    kind: str
    currency: str


def _rules(currency: str, kind: str, patterns: list[str]) -> list[EvidenceRule]:
    return [EvidenceRule(re.compile(p, re.IGNORECASE), kind, currency) for p in patterns]


def _declarations(code: str, *names: str) -> list[str]:
    targets = "|".join((code, *names))
    return [
        rf"\ball\s+(?:amounts?|prices?)\s+(?:are\s+)?(?:shown\s+|quoted\s+)?in\s+(?:{targets})\b",
        rf"\bcurrency\s*[:\-]\s*(?:{targets})\b",
    ]


def _coded_amounts(code: str, symbol: str = r"\$") -> list[str]:
    return [
        rf"{symbol}{_GAP}{_AMOUNT}{_GAP}{code}\b",
        rf"\b{code}{_GAP}{symbol}?{_GAP}{_AMOUNT}",
    ]


EVIDENCE_RULES: tuple[EvidenceRule, ...] = tuple(
    _rules(
        "USD",
        EXPLICIT,
        [
            r"\bUSD\b",
            r"\bU\.S\.\s*Dollars?\b",
            r"\bUS\s*Dollars?\b",
            r"\bUnited\s+States\s+Dollars?\b",
            *_declarations("USD", r"U\.?S\.?\s*Dollars?"),
        ],
    )
    + _rules("USD", PRICED, _coded_amounts("USD"))
    + _rules(
        "CAD",
        EXPLICIT,
        [
            r"\bCAD\b",
            r"\bCanadian\s+Dollars?\b",
            r"\bC\$",
            *_declarations("CAD", r"Canadian\s+Dollars?"),
        ],
    )
    + _rules("CAD", PRICED, [*_coded_amounts("CAD"), rf"\bC\${_GAP}{_AMOUNT}"])
    + _rules(
        "EUR",
        EXPLICIT,
        [r"\bEUR\b", r"\bEuros?\b", *_declarations("EUR", r"Euros?")],
    )
    + _rules(
        "EUR",
        PRICED,
        [
            rf"€{_GAP}{_AMOUNT}",
            rf"{_AMOUNT}{_GAP}€",
            rf"\bEUR{_GAP}{_AMOUNT}",
            rf"{_AMOUNT}{_GAP}EUR\b",
        ],
    )
    + _rules(
        "MXN",
        EXPLICIT,
        [
            r"\bMXN\b",
            r"\bMexican\s+Pesos?\b",
            r"\bPesos?\s+Mexicanos?\b",
            *_declarations("MXN", r"Mexican\s+Pesos?"),
        ],
    )
    + _rules("MXN", PRICED, _coded_amounts("MXN"))
    + _rules(
        "GBP",
        EXPLICIT,
        [
            r"\bGBP\b",
            r"\bBritish\s+Pounds?\b",
            r"\bPounds?\s+Sterling\b",
            *_declarations("GBP", r"Pounds?\s+Sterling"),
        ],
    )
    + _rules("GBP", PRICED, [rf"£{_GAP}{_AMOUNT}", rf"\bGBP{_GAP}£?{_GAP}{_AMOUNT}"])
)

# Lines describing a conversion mention a second currency without billing in it.
FX_CONTEXT_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"exchange\s*rate",
        r"rate\s+of\s+exchange",
        r"conversion\s*rate",
        r"\bapprox(?:imate(?:ly)?)?\b",
        r"\bequivalent\s+to\b",
        r"\bconverted\s+(?:to|from)\b",
        r"\btipo\s+de\s+cambio\b",
    )
)

SUPPORTED_CURRENCIES: tuple[str, ...] = tuple(
    dict.fromkeys(rule.currency for rule in EVIDENCE_RULES)
)


def is_fx_context(line: str) -> bool:
    """Return True when a line describes an exchange rate or conversion."""
    return any(p.search(line) for p in FX_CONTEXT_PATTERNS)


def _hint_currency(hints: ParseHints | Mapping | None) -> str | None:
    if hints is None:
        return None
    value = hints.get("currency") if isinstance(hints, Mapping) else hints.currency
    return value.strip().upper() if isinstance(value, str) and value.strip() else None


def collect_evidence(
    text: str, config: ParserConfig | None = None
) -> dict[str, CurrencyCandidate]:
    """Score every currency with explicit evidence in ``text``.

    FX-context lines are dropped before matching. Candidates without any
    evidence are omitted.
    """
    cfg = config or ParserConfig()
    weights = {EXPLICIT: cfg.explicit_weight, PRICED: cfg.priced_weight}

    clean = "\n".join(line for line in text.splitlines() if not is_fx_context(line))

    scores: dict[str, int] = {}
    found: dict[str, list[str]] = {}
    for rule in EVIDENCE_RULES:
        for match in rule.pattern.finditer(clean):
            scores[rule.currency] = scores.get(rule.currency, 0) + weights[rule.kind]
            found.setdefault(rule.currency, []).append(match.group(0).strip())

    return {
        currency: CurrencyCandidate(
            currency=currency,
            confidence=score,
            evidence_count=len(found[currency]),
            matches=found[currency][:3],
        )
        for currency, score in scores.items()
    }


def detect_currency(
    text: str,
    hints: ParseHints | Mapping | None = None,
    config: ParserConfig | None = None,
) -> CurrencyDetectionResult:
    """Detect the billing currency of a contract without guessing.

    Args:
        text: Raw contract text.
        hints: Optional upstream hints; ``currency`` adds a bonus to a
            candidate that already has evidence.
        config: Parser thresholds and weights.

    Returns:
        A successful result with ``base_currency`` only when exactly one
        candidate clears the confidence threshold and no competitor comes
        close; otherwise a needs-review result carrying the candidates.
    """
    cfg = config or ParserConfig()

    if not text or not text.strip():
        return CurrencyDetectionResult(
            success=False, needs_review=True, reason=REASON_EMPTY_INPUT
        )

    evidence = collect_evidence(text, cfg)
    if not evidence:
        logger.debug("No explicit currency evidence found")
        return CurrencyDetectionResult(
            success=False, needs_review=True, reason=REASON_NO_EVIDENCE
        )

    hinted = _hint_currency(hints)
    if hinted in evidence:
        evidence[hinted].confidence += cfg.hint_bonus

    candidates = sorted(
        evidence.values(), key=lambda c: (-c.confidence, c.currency)
    )
    for candidate in candidates:
        candidate.confidence = min(100, candidate.confidence)

    threshold = cfg.currency_confidence_threshold
    cleared = [c for c in candidates if c.confidence >= threshold]
    top = candidates[0]
    close_runner_up = (
        len(candidates) > 1
        and candidates[1].confidence >= top.confidence * cfg.ambiguity_ratio
    )

    if len(cleared) > 1 or close_runner_up:
        logger.debug(
            "Ambiguous currency: %s",
            ", ".join(f"{c.currency}={c.confidence}" for c in candidates),
        )
        return CurrencyDetectionResult(
            success=False,
            needs_review=True,
            reason=REASON_AMBIGUOUS,
            currency_candidates=candidates,
        )

    if len(cleared) == 1:
        return CurrencyDetectionResult(
            success=True,
            needs_review=False,
            base_currency=top.currency,
            confidence=top.confidence,
            currency_candidates=candidates,
        )

    return CurrencyDetectionResult(
        success=False,
        needs_review=True,
        reason=(
            f"Currency confidence ({top.confidence}%) is below threshold "
            f"({threshold}%). Please confirm."
        ),
        currency_candidates=candidates,
    )
