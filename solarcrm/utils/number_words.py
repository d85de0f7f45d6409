"""Convert rupee amounts to words using the Indian numbering system."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

_ONES = ["", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine"]
_TEENS = [
    "Ten",
    "Eleven",
    "Twelve",
    "Thirteen",
    "Fourteen",
    "Fifteen",
    "Sixteen",
    "Seventeen",
    "Eighteen",
    "Nineteen",
]
_TENS = ["", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety"]


def _two_digits(num: int) -> str:
    if num == 0:
        return ""
    if num < 10:
        return _ONES[num]
    if num < 20:
        return _TEENS[num - 10]
    ten, one = divmod(num, 10)
    return _TENS[ten] + (f" {_ONES[one]}" if one else "")


def _three_digits(num: int) -> str:
    hundred, remainder = divmod(num, 100)
    parts = []
    if hundred:
        parts.append(f"{_ONES[hundred]} Hundred")
    if remainder:
        parts.append(_two_digits(remainder))
    return " ".join(parts)


def _integer_words(num: int) -> str:
    crores, rest = divmod(num, 10_000_000)
    lakhs, rest = divmod(rest, 100_000)
    thousands, remainder = divmod(rest, 1000)

    parts = []
    if crores:
        # Amounts above 99 crore keep grouping inside the crore count.
        parts.append(f"{_integer_words(crores)} Crore")
    if lakhs:
        parts.append(f"{_two_digits(lakhs)} Lakh")
    if thousands:
        parts.append(f"{_two_digits(thousands)} Thousand")
    if remainder:
        parts.append(_three_digits(remainder))
    return " ".join(parts)


def _to_decimal(amount: str | int | float | Decimal | None) -> Decimal | None:
    if amount is None or isinstance(amount, bool):
        return None
    try:
        value = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError):
        return None
    if not value.is_finite():
        return None
    return value


def amount_in_words(amount: str | int | float | Decimal | None) -> str:
    """Return e.g. ``"Two Lakh Seventy Two Thousand Rupees Only"``.

    Invalid or negative input yields an empty string.
    """
    value = _to_decimal(amount)
    if value is None or value < 0:
        return ""

    rounded = value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    rupees = int(rounded)
    paise = int((rounded - rupees) * 100)

    if rupees == 0 and paise == 0:
        return "Zero Rupees Only"

    words = f"{_integer_words(rupees) or 'Zero'} Rupees"
    if paise:
        words += f" and {_two_digits(paise)} Paise"
    return f"{words} Only"


def parse_amount(amount: str | int | float | Decimal | None) -> Decimal | None:
    """Parse a form amount field; returns None when it is not a number."""
    return _to_decimal(amount)
