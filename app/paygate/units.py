# app/paygate/units.py
"""
Conversion between human token amounts and smallest-unit integers.

All payment comparisons happen on integers in the token's smallest unit.
Decimal is used for the human side so that "0.10" never passes through
a binary float.
"""
from decimal import Decimal, InvalidOperation
from typing import Union

from app.paygate.errors import ConfigError


def parse_amount(value: Union[str, int, Decimal]) -> Decimal:
    """
    Parse a configured price into a finite, positive Decimal.

    Raises:
        ConfigError: If the value is not a number, not finite, or not positive
    """
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ConfigError(f"Invalid amount: {value!r}")

    if not amount.is_finite():
        raise ConfigError(f"Amount must be finite: {value!r}")
    if amount <= 0:
        raise ConfigError(f"Amount must be a positive number: {value!r}")
    return amount


def to_base_units(amount: Decimal, decimals: int) -> int:
    """
    Convert a human amount to the token's smallest unit.

    The conversion must be exact: an amount with more fractional digits
    than the token supports is rejected rather than rounded.

    Raises:
        ConfigError: If the amount cannot be represented exactly
    """
    if decimals < 0:
        raise ConfigError(f"Token decimals must be non-negative, got {decimals}")

    scaled = amount.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ConfigError(
            f"Amount {amount} has more precision than {decimals} token decimals allow"
        )
    return int(scaled)


def from_base_units(value: int, decimals: int) -> Decimal:
    """Convert a smallest-unit integer back to a human amount."""
    return Decimal(value).scaleb(-decimals)
