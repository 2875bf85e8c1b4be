"""
Decimal helpers for money amounts.

Every amount stored on a session, order or tax result passes through
``quantize`` so that repeated recalculation yields identical values.
"""

from decimal import Decimal
from typing import Any

from checkoutflow.config import CheckoutConfig

ZERO = Decimal("0.00")


def to_decimal(value: Any) -> Decimal:
    """
    Coerce a stored value into a Decimal.

    Floats are converted through ``str`` so that 29.99 does not become
    29.989999999999998436805981327779591083526611328125.
    """
    if isinstance(value, Decimal):
        return value
    if value is None:
        return ZERO
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def quantize(amount: Decimal, config: CheckoutConfig | None = None) -> Decimal:
    """
    Round an amount to the configured currency places.

    Args:
        amount: Amount to round
        config: Checkout configuration (defaults to two places, ROUND_HALF_UP)

    Returns:
        The rounded amount

    Example:
        >>> quantize(Decimal("2.3992"))
        Decimal('2.40')
    """
    config = config or CheckoutConfig()
    exponent = Decimal(1).scaleb(-config.currency_places)
    return to_decimal(amount).quantize(exponent, rounding=config.rounding)


__all__ = [
    "ZERO",
    "quantize",
    "to_decimal",
]
