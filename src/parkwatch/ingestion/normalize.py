"""Normalization helpers.

Centralizes lenient parsing of upstream tag values.
"""

from __future__ import annotations

import math
import re
from typing import Any

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def leading_int(value: Any) -> int | None:
    """Parse the leading integer of *value* (``"120 spaces"`` -> ``120``)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return None if math.isnan(value) or math.isinf(value) else int(value)
    match = _LEADING_INT.match(str(value))
    if match is None:
        return None
    return int(match.group(1))


def positive_int(value: Any) -> int | None:
    """Return the leading integer of *value* when it is strictly positive."""
    parsed = leading_int(value)
    if parsed is None or parsed <= 0:
        return None
    return parsed
