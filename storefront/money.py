"""
Money helpers.

Amounts are held as integer paise everywhere inside the core. Decimal
rupee values only appear at the edges (API payloads, rendered invoices),
and every rounding step is half-up to two decimal places.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

PAISE_PER_RUPEE = 100

Number = Union[Decimal, int, str]


def round_half_up(value: Decimal) -> int:
    """Round a (possibly fractional) paise amount to whole paise."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_paise(rupees: Number) -> int:
    """Convert a rupee amount to paise, rounding half-up."""
    return round_half_up(Decimal(str(rupees)) * PAISE_PER_RUPEE)


def to_rupees(paise: int) -> Decimal:
    return (Decimal(paise) / PAISE_PER_RUPEE).quantize(Decimal("0.01"))


def format_rupees(paise: int) -> str:
    """Format paise as a two-decimal rupee string, e.g. ``"1299.50"``."""
    return str(to_rupees(paise))


def percentage_of(paise: int, percentage: Decimal) -> int:
    """Return ``percentage`` percent of ``paise``, rounded half-up."""
    return round_half_up(Decimal(paise) * Decimal(percentage) / 100)
