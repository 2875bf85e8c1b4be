"""
Shared test fixtures for the checkoutflow library.

This module provides reusable test helpers:
- FrozenClock: A settable clock for expiry and validity-window tests
- Factories for addresses, methods, products and tax rates
- FailingTaxRateRepository: A rate store that raises, for degraded pricing

Usage:
    from tests.fixtures import (
        FrozenClock,
        make_address,
        make_payment_method,
        make_rate,
        make_shipping_method,
    )
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from checkoutflow.models import (
    Address,
    Jurisdiction,
    PaymentMethod,
    PaymentMethodType,
    Product,
    ShippingMethod,
    TaxRate,
)

EPOCH = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


class FrozenClock:
    """
    Clock that only moves when told to.

    Example:
        >>> clock = FrozenClock()
        >>> clock.advance(hours=25)
    """

    def __init__(self, now: datetime = EPOCH) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def make_address(**overrides: Any) -> Address:
    """A complete US address; override any field."""
    values: dict[str, Any] = {
        "first_name": "Ada",
        "last_name": "Lovelace",
        "address_line1": "1 Analytical Way",
        "city": "Sacramento",
        "region": "CA",
        "postal_code": "95814",
        "country": "US",
    }
    values.update(overrides)
    return Address(**values)


def make_shipping_method(
    name: str = "Standard",
    price: str = "5.99",
    is_default: bool = False,
    is_enabled: bool = True,
) -> ShippingMethod:
    return ShippingMethod(
        id=uuid4(),
        name=name,
        price=Decimal(price),
        is_default=is_default,
        is_enabled=is_enabled,
        created_at=EPOCH,
        updated_at=EPOCH,
    )


def make_payment_method(
    name: str = "Card",
    type: PaymentMethodType = PaymentMethodType.CREDIT_CARD,
    is_default: bool = False,
    is_enabled: bool = True,
) -> PaymentMethod:
    return PaymentMethod(
        id=uuid4(),
        name=name,
        type=type,
        is_default=is_default,
        is_enabled=is_enabled,
        created_at=EPOCH,
        updated_at=EPOCH,
    )


def make_product(name: str, price: str, tax_category_id: UUID | None = None) -> Product:
    return Product(id=uuid4(), name=name, price=Decimal(price), tax_category_id=tax_category_id)


def make_rate(
    rate: str = "0.08",
    country: str = "US",
    name: str | None = None,
    rate_id: UUID | None = None,
    **overrides: Any,
) -> TaxRate:
    """A country-level active rate; override region, priority, window etc."""
    return TaxRate(
        id=rate_id or uuid4(),
        name=name or f"{country} tax {rate}",
        rate=Decimal(rate),
        country=country,
        **overrides,
    )


class FailingTaxRateRepository:
    """Rate store whose lookups always fail."""

    def __init__(self, message: str = "rate store unavailable") -> None:
        self.message = message
        self.calls = 0

    async def add_rate(self, rate: TaxRate) -> TaxRate:
        return rate

    async def get_rate(self, rate_id: UUID) -> TaxRate | None:
        return None

    async def list_rates(self, country: str | None = None) -> list[TaxRate]:
        return []

    async def find_applicable_rates(
        self,
        jurisdiction: Jurisdiction,
        tax_category_id: UUID | None,
        now: datetime,
    ) -> list[TaxRate]:
        self.calls += 1
        raise ConnectionError(self.message)


__all__ = [
    "EPOCH",
    "FailingTaxRateRepository",
    "FrozenClock",
    "make_address",
    "make_payment_method",
    "make_product",
    "make_rate",
    "make_shipping_method",
]
