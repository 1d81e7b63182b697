"""
GST calculation.

Intra-state supplies split the tax evenly into CGST and SGST; inter-state
supplies carry the whole rate as IGST. Each component is rounded half-up
to whole paise independently, so an intra-state line's total tax is
always exactly ``cgst + sgst``.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from storefront.money import round_half_up


class GstBreakdown(BaseModel):
    taxable_amount: int
    gst_rate: Decimal
    cgst: int = 0
    sgst: int = 0
    igst: int = 0
    total_tax: int
    total_with_tax: int


def is_intra_state(buyer_state: Optional[str], seller_state: str) -> bool:
    if not buyer_state or not seller_state:
        return False
    return buyer_state.strip().lower() == seller_state.strip().lower()


def calculate_gst(
    taxable_amount: int, gst_rate: Decimal, intra_state: bool
) -> GstBreakdown:
    """Compute the GST components for one taxable amount (in paise)."""
    exact_tax = Decimal(taxable_amount) * Decimal(gst_rate) / 100
    if intra_state:
        half = round_half_up(exact_tax / 2)
        cgst, sgst, igst = half, half, 0
    else:
        cgst, sgst, igst = 0, 0, round_half_up(exact_tax)
    total_tax = cgst + sgst + igst
    return GstBreakdown(
        taxable_amount=taxable_amount,
        gst_rate=Decimal(gst_rate),
        cgst=cgst,
        sgst=sgst,
        igst=igst,
        total_tax=total_tax,
        total_with_tax=taxable_amount + total_tax,
    )


_ONES = [
    "", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight",
    "Nine", "Ten", "Eleven", "Twelve", "Thirteen", "Fourteen", "Fifteen",
    "Sixteen", "Seventeen", "Eighteen", "Nineteen",
]
_TENS = [
    "", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy",
    "Eighty", "Ninety",
]


def _below_thousand(n: int) -> str:
    if n < 20:
        return _ONES[n]
    if n < 100:
        word = _TENS[n // 10]
        return f"{word} {_ONES[n % 10]}" if n % 10 else word
    rest = _below_thousand(n % 100)
    head = f"{_ONES[n // 100]} Hundred"
    return f"{head} {rest}" if rest else head


def _indian_words(n: int) -> str:
    if n == 0:
        return ""
    parts = []
    crore, n = divmod(n, 10_000_000)
    lakh, n = divmod(n, 100_000)
    thousand, n = divmod(n, 1000)
    if crore:
        # more than 999 crore recurses into the Indian grouping again
        parts.append(f"{_indian_words(crore)} Crore")
    if lakh:
        parts.append(f"{_below_thousand(lakh)} Lakh")
    if thousand:
        parts.append(f"{_below_thousand(thousand)} Thousand")
    if n:
        parts.append(_below_thousand(n))
    return " ".join(parts)


def amount_in_words(paise: int) -> str:
    """Spell out an amount the way Indian invoices do.

    >>> amount_in_words(150050)
    'Rupees One Thousand Five Hundred and Fifty Paise Only'
    """
    rupees, remainder = divmod(paise, 100)
    words = f"Rupees {_indian_words(rupees) or 'Zero'}"
    if remainder:
        words += f" and {_below_thousand(remainder)} Paise"
    return f"{words} Only"
