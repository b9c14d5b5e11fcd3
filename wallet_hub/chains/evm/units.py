"""Unit conversion and address helpers for EVM values."""
from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

from ...errors import ValidationError

_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")

ETHER_DECIMALS = 18


def format_units(value: int, decimals: int) -> str:
    """Render an integer amount of base units as a decimal string.

    Trailing zeros are dropped: ``format_units(1500000000000000000, 18)``
    gives ``"1.5"`` and whole amounts carry no fractional part.
    """
    negative = value < 0
    digits = str(abs(value)).rjust(decimals + 1, "0")
    split = len(digits) - decimals
    whole, fraction = digits[:split], digits[split:].rstrip("0")
    text = f"{whole}.{fraction}" if fraction else whole
    return f"-{text}" if negative else text


def parse_units(amount: str, decimals: int) -> int:
    """Convert a decimal string to base units, rejecting excess precision."""
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation:
        raise ValidationError(f"Invalid amount: {amount!r}") from None
    if not value.is_finite():
        raise ValidationError(f"Invalid amount: {amount!r}")

    scaled = value.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValidationError(
            f"Amount {amount} has more than {decimals} decimal places"
        )
    return int(scaled)


def format_ether(wei: int) -> str:
    return format_units(wei, ETHER_DECIMALS)


def is_valid_address(address: str) -> bool:
    return bool(_ADDRESS_RE.match(address or ""))


def format_address(address: str) -> str:
    """Shorten ``0x1234...abcd`` for display."""
    return f"{address[:6]}...{address[-4:]}"
