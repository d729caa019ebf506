# Overview: Service-layer helpers for money; converts human currency input to integer minor units and back.

"""
Currency Normalizer

Every monetary value in the system is an integer in the currency's minor unit
(kurus for Turkish lira, stored in *_cents columns). Human input arrives as
decimal text typed into a form ("1.234,56", "150", "₺74.000,00") or as a JSON
number, and this module is the only place that text is turned into integers.

Formatting follows tr-TR conventions: "." groups thousands, "," separates
decimals, the lira sign prefixes the amount.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CURRENCY_SYMBOL = "₺"
CURRENCY_CODE_SUFFIX = "TL"
MINOR_UNITS_PER_MAJOR = 100

_WHITESPACE = re.compile(r"\s+")


class InvalidAmount(ValueError):
    """Raised when a currency value cannot be converted to minor units."""
    pass


def _to_minor(major: Decimal) -> int:
    if not major.is_finite():
        raise InvalidAmount(f"Invalid amount: {major}")
    try:
        scaled = major * MINOR_UNITS_PER_MAJOR
        # ROUND_HALF_UP on Decimal rounds half away from zero
        return int(scaled.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except InvalidOperation:
        # quantize needs more digits than the context precision allows
        raise InvalidAmount(f"Amount out of range: {major}")


def _clean_text(value: str) -> str:
    text = _WHITESPACE.sub("", value)
    text = text.replace(CURRENCY_SYMBOL, "")
    if text.upper().endswith(CURRENCY_CODE_SUFFIX):
        text = text[: -len(CURRENCY_CODE_SUFFIX)]
    # "1.234,56" -> "1234.56"
    return text.replace(".", "").replace(",", ".")


def parse_amount(value) -> int:
    """
    Convert a major-unit amount into integer minor units.

    Numbers are multiplied by 100 and rounded half away from zero. Floats go
    through their shortest repr first, so 1.005 becomes 101 rather than the
    100 a binary multiply would give.

    Strings are cleaned tr-TR style: whitespace and the currency sign are
    dropped, "." is treated as a thousands separator and "," as the decimal
    separator.

    Raises:
        InvalidAmount: value is not a finite number after cleaning
    """
    if value is None or isinstance(value, bool):
        raise InvalidAmount(f"Invalid amount: {value!r}")

    if isinstance(value, int):
        return value * MINOR_UNITS_PER_MAJOR

    if isinstance(value, float):
        return _to_minor(Decimal(repr(value)))

    if isinstance(value, Decimal):
        return _to_minor(value)

    if isinstance(value, str):
        cleaned = _clean_text(value)
        if not cleaned:
            raise InvalidAmount(f"Invalid amount: {value!r}")
        try:
            major = Decimal(cleaned)
        except InvalidOperation:
            raise InvalidAmount(f"Invalid amount: {value!r}")
        return _to_minor(major)

    raise InvalidAmount(f"Invalid amount: {value!r}")


def to_major_unit(minor: int) -> Decimal:
    """Exact major-unit value of a minor-unit integer (12345 -> Decimal('123.45'))."""
    return Decimal(int(minor)) / MINOR_UNITS_PER_MAJOR


def format_amount(minor: int) -> str:
    """Two-decimal tr-TR amount without the currency sign: 123456 -> '1.234,56'."""
    major = to_major_unit(abs(int(minor)))
    text = f"{major:,.2f}"
    text = text.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"-{text}" if minor < 0 else text


def format_display(minor: int) -> str:
    """Presentation string with currency sign: 123456 -> '₺1.234,56'."""
    sign = "-" if minor < 0 else ""
    return f"{sign}{CURRENCY_SYMBOL}{format_amount(abs(int(minor)))}"


def is_valid_minor_amount(value) -> bool:
    """True iff value is a non-negative integer (booleans rejected)."""
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0
