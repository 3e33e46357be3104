"""Conversions between human-readable token amounts and integer base units.

Amounts are handled as strings or ints end to end; floats never touch a
price.
"""

from __future__ import annotations

import re
from decimal import Decimal

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def parse_units(value: str | Decimal | int, decimals: int) -> int:
    """Scale a decimal amount to base units, e.g. ("1.5", 18) -> 1500000000000000000.

    Digits beyond ``decimals`` are rounded half-up, as wallets do.
    """
    if decimals < 0:
        raise ValueError("decimals must be non-negative")

    text = format(value, "f") if isinstance(value, Decimal) else str(value).strip()
    negative = text.startswith("-")
    if negative:
        text = text[1:]

    integer, _, fraction = text.partition(".")
    integer = integer or "0"
    if not (integer.isdigit() and (fraction == "" or fraction.isdigit())):
        raise ValueError(f"Invalid decimal amount: {value!r}")

    if len(fraction) > decimals:
        kept, dropped = fraction[:decimals], fraction[decimals:]
        units = int(integer + kept)
        if dropped[0] >= "5":
            units += 1
    else:
        units = int(integer + fraction.ljust(decimals, "0"))

    return -units if negative else units


def format_units(units: int, decimals: int) -> str:
    """Render base units as a decimal string, e.g. (30000000000000000, 18) -> "0.03"."""
    if decimals < 0:
        raise ValueError("decimals must be non-negative")

    negative = units < 0
    digits = str(abs(units)).rjust(decimals + 1, "0")
    integer = digits[: len(digits) - decimals] if decimals else digits
    fraction = digits[len(digits) - decimals:].rstrip("0") if decimals else ""

    text = f"{integer}.{fraction}" if fraction else integer
    return f"-{text}" if negative else text


def same_address(left: str | None, right: str | None) -> bool:
    """Case-insensitive EVM address comparison."""
    return (left or "").lower() == (right or "").lower()


def is_address(value: str | None) -> bool:
    return bool(value) and _ADDRESS_RE.match(value) is not None
