"""Deterministic identifiers for parsed rows and whole contracts."""

import hashlib
import re

_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Lowercase and collapse whitespace so layout noise does not change hashes."""
    return _WHITESPACE.sub(" ", text or "").strip().lower()


def _digest(payload: str, length: int) -> str:
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:length]


def generate_row_id(cabin_number: str | None, span: str, line_number: int) -> str:
    """Build a stable row id from a cabin number, its text and its line.

    Re-parsing identical text always yields identical ids, which lets
    callers diff user edits against the original parse. The line number
    keeps repeated identical lines apart.
    """
    key = f"{(cabin_number or '').strip().upper()}|{normalize_text(span)}|{line_number}"
    return f"row_{_digest(key, 12)}"


def generate_fingerprint(text: str) -> str:
    """Fingerprint the full contract text for duplicate-import detection."""
    return f"fp_{_digest(normalize_text(text), 16)}"
