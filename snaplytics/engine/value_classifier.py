"""Tolerant numeric classification of loosely-typed cell values.

A value is numeric when, after deleting every character that is not a digit,
``.`` or ``-``, the remainder parses as a finite number. The parse follows the
browser ``Number()`` grammar for that alphabet, so ``"12."`` and ``"-.5"`` are
numbers while ``""``, ``"-"`` and ``"12-34"`` are not. Currency and unit noise
is therefore ignored (``"$1,299"`` -> 1299, ``"$-12.50"`` -> -12.5).
"""
from __future__ import annotations

import math
import re
from decimal import ROUND_HALF_UP, Context, Decimal
from typing import Any

_NON_NUMERIC_CHARS = re.compile(r"[^0-9.\-]")
_NUMBER_PATTERN = re.compile(r"-?(?:\d+\.?\d*|\.\d+)")
_WIDE_CONTEXT = Context(prec=400)


def _number_text(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    text = repr(value)
    if 1e-6 <= abs(value) < 1e21:
        return format(Decimal(text), "f")
    mantissa, _, exponent = text.partition("e")
    return f"{mantissa}e{int(exponent):+d}"


def to_text(value: Any) -> str:
    """Render a scalar the way the dashboard displays it.

    Booleans are lower-case and integral floats drop their fraction, so
    ``10.0`` and ``10`` land in the same frequency bucket.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _number_text(value)
    return str(value)


def strip_non_numeric(value: Any) -> str:
    return _NON_NUMERIC_CHARS.sub("", to_text(value))


def to_number(value: Any) -> float:
    """Strip-and-parse ``value``; NaN when nothing usable remains."""
    if value is None:
        return math.nan
    cleaned = strip_non_numeric(value)
    if not _NUMBER_PATTERN.fullmatch(cleaned):
        return math.nan
    return float(cleaned)


def is_numeric(value: Any) -> bool:
    if value is None:
        return False
    return math.isfinite(to_number(value))


def to_fixed(value: float, digits: int = 1) -> str:
    """Format ``value`` with ``digits`` decimals, rounding half away from zero.

    Non-finite values and magnitudes of 1e21 or more use the plain number text
    (``"Infinity"``, ``"1e+21"``).
    """
    if not math.isfinite(value) or abs(value) >= 1e21:
        return to_text(float(value))
    if value == 0:
        value = 0.0
    quantum = Decimal(1).scaleb(-digits)
    return str(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP, context=_WIDE_CONTEXT))
