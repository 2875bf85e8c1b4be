"""
Configuration for checkout services.

This module provides:
- CheckoutConfig: Session lifetime, currency and rounding settings
- Clock: Type alias for injectable time sources
- utc_now: The default clock
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from decimal import ROUND_HALF_UP

# Callable returning the current timezone-aware UTC time
Clock = Callable[[], datetime]

_ROUNDING_MODES = frozenset(
    {
        "ROUND_UP",
        "ROUND_DOWN",
        "ROUND_CEILING",
        "ROUND_FLOOR",
        "ROUND_HALF_UP",
        "ROUND_HALF_DOWN",
        "ROUND_HALF_EVEN",
        "ROUND_05UP",
    }
)


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


@dataclass(frozen=True)
class CheckoutConfig:
    """
    Configuration shared by the session manager, tax engine and order coordinator.

    Attributes:
        session_ttl: Lifetime of a checkout session from creation
        currency_places: Decimal places money amounts are quantized to
        rounding: decimal rounding mode used for every quantization
        currency: ISO 4217 code of the single currency in use
        enable_tracing: Whether components create OpenTelemetry spans

    Example:
        >>> config = CheckoutConfig(session_ttl=timedelta(hours=2))
        >>> manager = CheckoutSessionManager(..., config=config)
    """

    session_ttl: timedelta = timedelta(hours=24)
    currency_places: int = 2
    rounding: str = ROUND_HALF_UP
    currency: str = "USD"
    enable_tracing: bool = True

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.session_ttl <= timedelta(0):
            raise ValueError(
                f"session_ttl must be positive, got {self.session_ttl}. "
                "Use a value like timedelta(hours=24) (default)."
            )

        if not 0 <= self.currency_places <= 6:
            raise ValueError(
                f"currency_places must be between 0 and 6, got {self.currency_places}"
            )

        if self.rounding not in _ROUNDING_MODES:
            raise ValueError(
                f"rounding must be one of the decimal module rounding modes, "
                f"got {self.rounding!r}"
            )

        if len(self.currency) != 3 or not self.currency.isalpha():
            raise ValueError(
                f"currency must be a three-letter ISO 4217 code, got {self.currency!r}"
            )


__all__ = [
    "CheckoutConfig",
    "Clock",
    "utc_now",
]
