from __future__ import annotations

import math
import re
from decimal import Decimal
from typing import Any

# Leading numeric prefix, so "12 ft" reads as 12 the same way form input does.
_NUMBER_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def coerce_number(value: Any) -> float:
    """Read a user-entered value as a number, degrading to 0.0.

    Never raises: blanks, ``None``, non-numeric text and non-finite values
    all come back as ``0.0``.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        match = _NUMBER_PREFIX.match(value)
        if not match:
            return 0.0
        number = float(match.group(1))
    else:
        return 0.0
    return number if math.isfinite(number) else 0.0


def is_numeric_input(value: Any) -> bool:
    """True when ``value`` is a complete, finite number (strict reading)."""
    if isinstance(value, bool) or value is None:
        return False
    if isinstance(value, (int, float, Decimal)):
        return math.isfinite(float(value))
    if isinstance(value, str):
        try:
            return math.isfinite(float(value.strip()))
        except ValueError:
            return False
    return False


__all__ = ["coerce_number", "is_numeric_input"]
