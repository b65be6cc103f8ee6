"""govcon-ingest utilities."""

from .normalize import (
    blank_to_none,
    detect_sbir_phase,
    normalize_phase,
    parse_date,
    parse_decimal,
    parse_flag,
    parse_int,
)

__all__ = [
    "blank_to_none",
    "detect_sbir_phase",
    "normalize_phase",
    "parse_date",
    "parse_decimal",
    "parse_flag",
    "parse_int",
]
