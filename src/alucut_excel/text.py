"""Locale-aware coercion helpers for raw cell values.

Cells arrive as whatever the workbook reader produced: text, numbers, dates,
booleans or ``None``.  These helpers turn them into trimmed strings, numbers
(with the Turkish comma-as-decimal convention) and a diacritic-folded form
used exclusively for pattern matching.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime

from alucut_excel.models import CellValue

_TURKISH_FOLD = str.maketrans(
    {
        "ğ": "g",
        "ü": "u",
        "ş": "s",
        "ı": "i",
        "ö": "o",
        "ç": "c",
        "Ğ": "g",
        "Ü": "u",
        "Ş": "s",
        "İ": "i",
        "Ö": "o",
        "Ç": "c",
        "\u0307": None,  # combining dot left behind by lower-casing "İ"
    }
)

_NON_NUMERIC = re.compile(r"[^\d.,\-]")
_NUMERIC_RUN = re.compile(r"\d[\d.,]*")
_WHITESPACE = re.compile(r"\s+")


# ---------------------------------------------------------------------------
# Type guards
# ---------------------------------------------------------------------------


def is_number(value: object) -> bool:
    """Return True for finite ints and floats (booleans excluded)."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and math.isfinite(value)


def is_date(value: object) -> bool:
    """Return True for ``date`` and ``datetime`` values."""
    return isinstance(value, (date, datetime))


def is_blank(value: CellValue) -> bool:
    """Return True if a cell value is logically empty."""
    return to_string(value) == ""


# ---------------------------------------------------------------------------
# Transformers
# ---------------------------------------------------------------------------


def to_string(value: CellValue) -> str:
    """Coerce a cell value to a trimmed string.

    ``None`` becomes ``""``, dates become ISO strings and integral floats
    lose their ``.0`` suffix so ``2349448.0`` reads as ``"2349448"``.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_date(value):
        return value.isoformat()
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def to_number(value: CellValue) -> float | int | None:
    """Parse a cell value as a number, or return ``None``.

    Every character other than digits, separators and the minus sign is
    stripped first.  Separators follow the comma-as-decimal convention:

    * ``"12,5"`` -> ``12.5``
    * ``"1.234,56"`` and ``"1,234.56"`` -> ``1234.56`` (last separator is
      the decimal point)
    * ``"1.234.567"`` -> ``1234567`` (a repeated separator groups thousands)

    Unparsable input returns ``None``; it never raises and never falls back
    to ``0``.
    """
    if value is None or isinstance(value, bool):
        return None
    if is_number(value):
        return value  # type: ignore[return-value]
    if isinstance(value, float):
        return None

    text = _NON_NUMERIC.sub("", to_string(value))
    if not text or text in ("-", ".", ","):
        return None

    sign = ""
    if text.startswith("-"):
        sign, text = "-", text[1:]
    if "-" in text:
        return None

    text = _resolve_separators(text)
    if text is None:
        return None

    try:
        number = float(sign + text)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return int(number) if number.is_integer() and "." not in text else number


def _resolve_separators(text: str) -> str | None:
    """Rewrite *text* so that only a single ``.`` decimal point remains."""
    dots = text.count(".")
    commas = text.count(",")

    if dots and commas:
        decimal = "." if text.rfind(".") > text.rfind(",") else ","
        thousands = "," if decimal == "." else "."
        if text.count(decimal) > 1:
            return None
        return text.replace(thousands, "").replace(decimal, ".")
    if commas:
        return text.replace(",", ".") if commas == 1 else text.replace(",", "")
    if dots > 1:
        return text.replace(".", "")
    return text


def extract_number(value: CellValue) -> float | int | None:
    """Parse the first numeric run inside a cell, e.g. ``"12 adet"`` -> ``12``."""
    match = _NUMERIC_RUN.search(to_string(value))
    return to_number(match.group(0)) if match else None


def normalize_text(value: CellValue) -> str:
    """Lower-case, fold Turkish diacritics and collapse whitespace.

    Used only for pattern matching, never for display.
    """
    folded = to_string(value).translate(_TURKISH_FOLD).lower().translate(_TURKISH_FOLD)
    return _WHITESPACE.sub(" ", folded).strip()
