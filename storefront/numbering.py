"""
Daily document numbers: ``ORD-20240315-001``, ``INV-20240315-002``.

The sequence restarts every day and is derived from the highest number
already issued for the day's prefix. Nothing is reserved ahead of time,
so two writers can derive the same number; the store's unique constraint
rejects the loser, which retries with a freshly derived one.
"""

from datetime import date
from typing import Iterable, Optional

ORDER_PREFIX = "ORD"
INVOICE_PREFIX = "INV"
SEQUENCE_WIDTH = 3


def day_prefix(kind: str, day: date) -> str:
    return f"{kind}-{day.strftime('%Y%m%d')}-"


def format_number(kind: str, day: date, sequence: int) -> str:
    # widths past 999 simply grow
    return f"{day_prefix(kind, day)}{sequence:0{SEQUENCE_WIDTH}d}"


def parse_sequence(number: str, prefix: str) -> Optional[int]:
    if not number.startswith(prefix):
        return None
    suffix = number[len(prefix):]
    if not suffix.isdigit():
        return None
    return int(suffix)


def next_sequence(existing: Iterable[str], prefix: str) -> int:
    """Return the sequence after the numerically highest one for prefix."""
    highest = 0
    for number in existing:
        sequence = parse_sequence(number, prefix)
        if sequence is not None and sequence > highest:
            highest = sequence
    return highest + 1


def next_number(kind: str, day: date, existing: Iterable[str]) -> str:
    prefix = day_prefix(kind, day)
    return format_number(kind, day, next_sequence(existing, prefix))
