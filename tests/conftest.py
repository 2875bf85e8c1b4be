"""
Shared pytest fixtures for the checkoutflow library tests.

This module provides test fixtures including:
- Clock and configuration fixtures (clock, config)
- In-memory repository fixtures (session_repo, basket_repo, rate_repo, ...)
- Service fixtures (tax_engine, manager, coordinator, service)
- Scenario fixtures (a seeded catalog and a two-line basket)
- SQLite fixtures (sqlite_connection with the checkout schema applied)

All fixtures are function scoped so every test starts from empty stores.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

import pytest
import pytest_asyncio

from checkoutflow.checkout import CheckoutService, CheckoutSessionManager
from checkoutflow.config import CheckoutConfig
from checkoutflow.migrations import get_statements
from checkoutflow.models import PaymentMethod, PaymentMethodType, Product, ShippingMethod
from checkoutflow.orders import OrderCommitCoordinator
from checkoutflow.repositories import (
    InMemoryBasketRepository,
    InMemoryCheckoutSessionRepository,
    InMemoryMethodRepository,
    InMemoryOrderRepository,
    InMemoryProductRepository,
    InMemoryTaxExemptionRepository,
    InMemoryTaxRateRepository,
)
from checkoutflow.tax import TaxCalculationEngine
from tests.fixtures import (
    FrozenClock,
    make_payment_method,
    make_product,
    make_shipping_method,
)

if TYPE_CHECKING:
    import aiosqlite

# ============================================================================
# SQLite Availability Check
# ============================================================================

AIOSQLITE_AVAILABLE = False
try:
    import aiosqlite

    AIOSQLITE_AVAILABLE = True
except ImportError:
    aiosqlite = None  # type: ignore[assignment]


# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for tests."""
    config.addinivalue_line("markers", "sqlite: marks tests that require SQLite (aiosqlite)")


# ============================================================================
# Skip Condition
# ============================================================================

skip_if_no_aiosqlite = pytest.mark.skipif(not AIOSQLITE_AVAILABLE, reason="aiosqlite not installed")


# =============================================================================
# Clock and Configuration Fixtures
# =============================================================================


@pytest.fixture
def clock() -> FrozenClock:
    """
    Provide a frozen clock shared by every service fixture.

    Returns:
        A FrozenClock starting at tests.fixtures.EPOCH.
    """
    return FrozenClock()


@pytest.fixture
def config() -> CheckoutConfig:
    """Default configuration with tracing disabled."""
    return CheckoutConfig(session_ttl=timedelta(hours=24), enable_tracing=False)


# =============================================================================
# In-Memory Repository Fixtures
# =============================================================================


@pytest.fixture
def product_repo() -> InMemoryProductRepository:
    return InMemoryProductRepository(enable_tracing=False)


@pytest.fixture
def basket_repo(product_repo: InMemoryProductRepository) -> InMemoryBasketRepository:
    return InMemoryBasketRepository(product_repo, enable_tracing=False)


@pytest.fixture
def session_repo() -> InMemoryCheckoutSessionRepository:
    return InMemoryCheckoutSessionRepository(enable_tracing=False)


@pytest.fixture
def shipping_repo() -> InMemoryMethodRepository[ShippingMethod]:
    return InMemoryMethodRepository(ShippingMethod, enable_tracing=False)


@pytest.fixture
def payment_repo() -> InMemoryMethodRepository[PaymentMethod]:
    return InMemoryMethodRepository(PaymentMethod, enable_tracing=False)


@pytest.fixture
def rate_repo() -> InMemoryTaxRateRepository:
    return InMemoryTaxRateRepository(enable_tracing=False)


@pytest.fixture
def exemption_repo() -> InMemoryTaxExemptionRepository:
    return InMemoryTaxExemptionRepository(enable_tracing=False)


@pytest.fixture
def order_repo(
    session_repo: InMemoryCheckoutSessionRepository,
    basket_repo: InMemoryBasketRepository,
) -> InMemoryOrderRepository:
    return InMemoryOrderRepository(session_repo, basket_repo, enable_tracing=False)


# =============================================================================
# Service Fixtures
# =============================================================================


@pytest.fixture
def tax_engine(
    rate_repo: InMemoryTaxRateRepository,
    product_repo: InMemoryProductRepository,
    exemption_repo: InMemoryTaxExemptionRepository,
    basket_repo: InMemoryBasketRepository,
    config: CheckoutConfig,
    clock: FrozenClock,
) -> TaxCalculationEngine:
    return TaxCalculationEngine(
        rate_repo,
        product_repo,
        exemption_repo,
        basket_repo,
        config=config,
        clock=clock,
    )


@pytest.fixture
def manager(
    session_repo: InMemoryCheckoutSessionRepository,
    shipping_repo: InMemoryMethodRepository[ShippingMethod],
    payment_repo: InMemoryMethodRepository[PaymentMethod],
    basket_repo: InMemoryBasketRepository,
    tax_engine: TaxCalculationEngine,
    config: CheckoutConfig,
    clock: FrozenClock,
) -> CheckoutSessionManager:
    return CheckoutSessionManager(
        session_repo,
        shipping_repo,
        payment_repo,
        basket_repo,
        tax_engine,
        config=config,
        clock=clock,
    )


@pytest.fixture
def coordinator(
    manager: CheckoutSessionManager,
    order_repo: InMemoryOrderRepository,
) -> OrderCommitCoordinator:
    return OrderCommitCoordinator(manager, order_repo)


@pytest.fixture
def service(
    manager: CheckoutSessionManager,
    coordinator: OrderCommitCoordinator,
    shipping_repo: InMemoryMethodRepository[ShippingMethod],
    payment_repo: InMemoryMethodRepository[PaymentMethod],
) -> CheckoutService:
    return CheckoutService(manager, coordinator, shipping_repo, payment_repo)


# =============================================================================
# Scenario Fixtures
# =============================================================================


@dataclass
class Catalog:
    """Seeded methods: Standard (default, 5.99), Express (12.50), Freight (disabled)."""

    standard: ShippingMethod
    express: ShippingMethod
    freight: ShippingMethod
    card: PaymentMethod
    paypal: PaymentMethod


@dataclass
class Basket:
    """A basket of 2 x T-Shirt at 29.99 and 1 x Mug at 15.50 (subtotal 75.48)."""

    id: UUID
    tshirt: Product
    mug: Product
    line_ids: list[UUID]


@pytest_asyncio.fixture
async def catalog(
    shipping_repo: InMemoryMethodRepository[ShippingMethod],
    payment_repo: InMemoryMethodRepository[PaymentMethod],
) -> Catalog:
    """
    Seed both method catalogs.

    Returns:
        The stored methods, with defaults as persisted.
    """
    standard = await shipping_repo.add_method(make_shipping_method("Standard", "5.99"))
    express = await shipping_repo.add_method(make_shipping_method("Express", "12.50"))
    freight = await shipping_repo.add_method(
        make_shipping_method("Freight", "80.00", is_enabled=False)
    )
    card = await payment_repo.add_method(make_payment_method("Card"))
    paypal = await payment_repo.add_method(
        make_payment_method("PayPal", type=PaymentMethodType.PAYPAL)
    )
    return Catalog(standard=standard, express=express, freight=freight, card=card, paypal=paypal)


@pytest_asyncio.fixture
async def basket(
    product_repo: InMemoryProductRepository,
    basket_repo: InMemoryBasketRepository,
) -> Basket:
    """Seed the two-line basket used by the pricing scenarios."""
    tshirt = await product_repo.add_product(make_product("T-Shirt", "29.99"))
    mug = await product_repo.add_product(make_product("Mug", "15.50"))
    basket_id = uuid4()
    line_ids = [
        await basket_repo.add_item(basket_id, tshirt.id, 2),
        await basket_repo.add_item(basket_id, mug.id, 1),
    ]
    return Basket(id=basket_id, tshirt=tshirt, mug=mug, line_ids=line_ids)


# =============================================================================
# SQLite Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def sqlite_connection() -> AsyncGenerator[Any, None]:
    """
    Provide an aiosqlite connection to an in-memory database with the schema applied.

    Creates a fresh in-memory SQLite database for each test.
    The connection is automatically closed after the test.

    Yields:
        aiosqlite.Connection: Database connection with every checkout table
    """
    if not AIOSQLITE_AVAILABLE:
        pytest.skip("aiosqlite not installed")

    conn = await aiosqlite.connect(":memory:")
    conn.row_factory = aiosqlite.Row
    for statement in get_statements("sqlite"):
        await conn.execute(statement)
    await conn.commit()

    yield conn

    await conn.close()
