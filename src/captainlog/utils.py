# src/captainlog/utils.py

"""
Text helpers shared by the entry flow, the CLI and the store.

Normalizers are lenient on input (one or two digits, '-' or '.' for dates,
':' or '.' for times) and always emit the canonical zero-padded form.
"""

from __future__ import annotations

import re

from .errors import UnknownFormatError

WHITESPACE = " \n\r\t\f\v"

_TIME_RE = re.compile(r"(\d{1,2})[:.](\d{1,2})", re.ASCII)
_DATE_RE = re.compile(r"(\d+)[-.](\d{1,2})[-.](\d{1,2})", re.ASCII)
_DATE_TIME_RE = re.compile(r"(\d+)[-.](\d{1,2})[-.](\d{1,2})\s+(\d{1,2})[:.](\d{1,2})", re.ASCII)


def trim(s: str) -> str:
    return s.strip(WHITESPACE)


def _pad2(value: str) -> str:
    return value.rjust(2, "0")


def normalize_time(s: str) -> str:
    """'9:5' -> '09:05', '19.50' -> '19:50'."""
    m = _TIME_RE.fullmatch(s)
    if m is None:
        raise UnknownFormatError(f"Unknown time format: {s}")
    hour, minute = m.groups()
    return f"{_pad2(hour)}:{_pad2(minute)}"


def normalize_date(s: str) -> str:
    """'2022.2.20' -> '2022-02-20' (the year is kept as typed)."""
    m = _DATE_RE.fullmatch(s)
    if m is None:
        raise UnknownFormatError(f"Unknown date format: {s}")
    year, month, day = m.groups()
    return f"{year}-{_pad2(month)}-{_pad2(day)}"


def normalize_date_time(s: str) -> str:
    """'2022.2.20  9.5' -> '2022-02-20 09:05'."""
    m = _DATE_TIME_RE.fullmatch(s)
    if m is None:
        raise UnknownFormatError(f"Unknown date time format: {s}")
    year, month, day, hour, minute = m.groups()
    return f"{year}-{_pad2(month)}-{_pad2(day)} {_pad2(hour)}:{_pad2(minute)}"
