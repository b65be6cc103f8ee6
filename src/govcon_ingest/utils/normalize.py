"""Lenient value parsing for federal API payloads.

The sources disagree on date formats (``MM/dd/yyyy``, ``yyyy-MM-dd``, ISO
datetimes with offsets), report money as numbers or formatted strings, and
encode booleans as ``Y``/``N``. Everything here returns ``None`` for values it
cannot interpret rather than raising.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

_DATE_FORMATS = ("%m/%d/%Y", "%Y-%m-%d")
_NON_NUMERIC = re.compile(r"[^0-9.\-]")
_TRUE_FLAGS = {"y", "yes", "true", "1"}


def blank_to_none(value: Any) -> str | None:
    """Strip a value to a string, mapping empty/whitespace to None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_date(value: Any) -> date | None:
    """Parse a date from any of the formats the sources emit.

    Examples:
        >>> parse_date("01/15/2024")
        datetime.date(2024, 1, 15)
        >>> parse_date("2026-01-22T12:00:00-05:00")
        datetime.date(2026, 1, 22)
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = blank_to_none(value)
    if text is None:
        return None
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def parse_decimal(value: Any) -> Decimal | None:
    """Parse an amount, tolerating currency symbols and thousands separators."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    else:
        text = blank_to_none(value)
        if text is None:
            return None
        cleaned = _NON_NUMERIC.sub("", text)
        if not cleaned:
            return None
        try:
            result = Decimal(cleaned)
        except InvalidOperation:
            return None
    # NaN and infinities are not amounts
    return result if result.is_finite() else None


def parse_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = blank_to_none(value)
    if text is None:
        return None
    try:
        return int(float(text))
    except (ValueError, OverflowError):
        return None


def parse_flag(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    text = blank_to_none(value)
    if text is None:
        return None
    return text.lower() in _TRUE_FLAGS


def detect_sbir_phase(title: str | None) -> str | None:
    """Detect an SBIR/STTR phase ("I", "II", "III") from a notice title."""
    if not title:
        return None
    upper = title.upper()
    if "PHASE III" in upper or "PHASE 3" in upper:
        return "III"
    if "PHASE II" in upper or "PHASE 2" in upper:
        return "II"
    if "PHASE I" in upper or "PHASE 1" in upper:
        return "I"
    return None


def normalize_phase(value: Any) -> str | None:
    """Normalize award phase labels ("Phase II", "2", "II") to roman numerals."""
    text = blank_to_none(value)
    if text is None:
        return None
    upper = text.upper().replace("PHASE", "").strip()
    mapping = {"1": "I", "2": "II", "3": "III", "I": "I", "II": "II", "III": "III"}
    return mapping.get(upper, text)
