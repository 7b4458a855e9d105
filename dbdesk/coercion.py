"""Universal cell-to-text conversion for result tables.

Every value a driver hands back while scanning a row goes through
:func:`to_display_string` exactly once. The function is total: it has an
answer for every input, never raises, and renders SQL ``NULL`` as the literal
``NULL`` so that an empty string stays visibly different from a missing value.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

NULL_TEXT = "NULL"


@dataclass(frozen=True, slots=True)
class Nullable:
    """Explicit valid/invalid pair reported by some adapters instead of ``None``."""

    value: Any = None
    valid: bool = True


def to_display_string(value: object) -> str:
    """Render a native cell value as display text."""

    try:
        return _convert(value)
    except Exception:
        return _fallback(value)


def _convert(value: object) -> str:
    if isinstance(value, Nullable):
        return _convert(value.value) if value.valid else NULL_TEXT
    if value is None:
        return NULL_TEXT
    # Text-like columns frequently arrive as raw bytes.
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, str):
        return str.__str__(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return _format_int(value)
    if isinstance(value, float):
        return _format_float(value)
    if isinstance(value, datetime):
        return _format_timestamp(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=to_display_string, ensure_ascii=False)
    return _fallback(value)


def _format_int(value: int) -> str:
    try:
        return int.__str__(int(value))
    except ValueError:
        # Past sys.get_int_max_str_digits(); Decimal formatting has no such cap.
        return str(Decimal(int(value)))


def _format_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    # repr() is the shortest round-trippable form; expand any exponent.
    text = format(Decimal(float.__repr__(float(value))), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _format_timestamp(value: datetime) -> str:
    text = (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )
    if value.microsecond:
        text += "." + f"{value.microsecond:06d}".rstrip("0")
    return text + _format_offset(value.utcoffset())


def _format_offset(offset: timedelta | None) -> str:
    if not offset:
        return "Z"
    total = int(offset.total_seconds())
    sign = "-" if total < 0 else "+"
    minutes = abs(total) // 60
    return f"{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def _fallback(value: object) -> str:
    for render in (str, repr):
        try:
            text = render(value)
        except Exception:
            continue
        if text:
            return text
    return f"<{type(value).__name__}>"


__all__ = ["NULL_TEXT", "Nullable", "to_display_string"]
