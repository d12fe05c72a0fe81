import math
from typing import Any


def as_count(value: Any) -> int:
    """
    Coerce a unit count coming from storage or a remote payload to a
    non-negative int. Anything unusable (None, garbage strings, NaN,
    negatives, booleans) degrades to 0 instead of raising.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value if value > 0 else 0
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if math.isnan(number) or math.isinf(number) or number <= 0:
        return 0
    return int(number)


def is_count(value: Any) -> bool:
    """True only for a genuine non-negative integer (booleans excluded)."""
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0
