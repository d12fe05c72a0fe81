import re
from typing import Iterable

from retread.engine.types import Shipment

DEFAULT_PREFIX = "REM"

_SUFFIX = re.compile(r"(\d+)\s*$")


def number_suffix(number) -> int:
    """Trailing integer of a display number such as REM-0012, or 0."""
    if not number:
        return 0
    m = _SUFFIX.search(str(number))
    return int(m.group(1)) if m else 0


def format_number(seq: int, prefix: str = DEFAULT_PREFIX) -> str:
    return f"{prefix}-{seq:04d}"


def next_shipment_number(
    shipments: Iterable[Shipment], prefix: str = DEFAULT_PREFIX
) -> str:
    """
    Next display number: one past the highest suffix in use. Derived from the
    stored numbers rather than the collection size so deletions never cause
    a label to be handed out twice.
    """
    highest = max((number_suffix(s.number) for s in shipments or []), default=0)
    return format_number(highest + 1, prefix)
