"""
Unit tests for CheckoutSessionManager.

Tests cover:
- Session creation and lookup
- Address and method mutations
- Totals calculation, idempotency and degraded tax
- Validation with accumulated errors
- Abandonment and expiry sweeps
"""

from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
import pytest_asyncio

from checkoutflow.checkout import CheckoutSessionManager
from checkoutflow.models import Address, CheckoutErrorCode, SessionStatus
from checkoutflow.observability import MockTracer
from checkoutflow.tax import TaxCalculationEngine
from tests.fixtures import FailingTaxRateRepository, make_address, make_rate


async def ready_session(manager, basket, catalog):
    """A session that passes validation."""
    session = await manager.create(basket.id, customer_id=uuid4())
    await manager.set_shipping_address(session.id, make_address())
    await manager.set_billing_address(session.id, make_address())
    await manager.set_shipping_method(session.id, catalog.standard.id)
    await manager.set_payment_method(session.id, catalog.card.id)
    return session


class TestCreate:
    """Tests for session creation."""

    async def test_new_session_is_active_with_zero_amounts(self, manager, clock):
        basket_id = uuid4()

        session = await manager.create(basket_id, guest_email="guest@example.com")

        assert session.status is SessionStatus.ACTIVE
        assert session.basket_id == basket_id
        assert session.guest_email == "guest@example.com"
        assert session.subtotal == Decimal("0.00")
        assert session.total == Decimal("0.00")
        assert session.created_at == clock.now
        assert session.expires_at == clock.now + timedelta(hours=24)
        assert session.completed_at is None

    async def test_session_is_persisted(self, manager):
        session = await manager.create(uuid4())

        assert await manager.get(session.id) == session

    async def test_get_missing_returns_none(self, manager):
        assert await manager.get(uuid4()) is None

    async def test_logs_creation(self, manager, caplog):
        with caplog.at_level(logging.INFO, logger="checkoutflow.checkout.manager"):
            session = await manager.create(uuid4())

        assert f"Created checkout session {session.id}" in caplog.text


class TestLookup:
    """Tests for basket and customer lookups."""

    async def test_find_active_returns_most_recent(self, manager, clock):
        basket_id = uuid4()
        await manager.create(basket_id)
        clock.advance(minutes=5)
        newer = await manager.create(basket_id)

        assert (await manager.find_active_for_basket(basket_id)).id == newer.id

    async def test_find_active_skips_terminal_sessions(self, manager):
        basket_id = uuid4()
        session = await manager.create(basket_id)
        await manager.abandon(session.id)

        assert await manager.find_active_for_basket(basket_id) is None

    async def test_list_for_customer_newest_first(self, manager, clock):
        customer_id = uuid4()
        first = await manager.create(uuid4(), customer_id=customer_id)
        clock.advance(minutes=1)
        second = await manager.create(uuid4(), customer_id=customer_id)
        await manager.create(uuid4(), customer_id=uuid4())

        sessions = await manager.list_for_customer(customer_id)

        assert [s.id for s in sessions] == [second.id, first.id]


class TestMutations:
    """Tests for field mutations."""

    async def test_addresses_stored_verbatim(self, manager):
        session = await manager.create(uuid4())
        partial = Address(first_name="Ada", country="us")

        updated = await manager.set_billing_address(session.id, partial)

        assert updated.billing_address == partial

    async def test_address_on_missing_session_returns_none(self, manager):
        assert await manager.set_shipping_address(uuid4(), make_address()) is None

    async def test_shipping_method_copies_price(self, manager, catalog):
        session = await manager.create(uuid4())

        updated = await manager.set_shipping_method(session.id, catalog.express.id)

        assert updated.shipping_method_id == catalog.express.id
        assert updated.shipping_amount == Decimal("12.50")

    async def test_disabled_shipping_method_is_refused(self, manager, catalog):
        session = await manager.create(uuid4())

        assert await manager.set_shipping_method(session.id, catalog.freight.id) is None
        assert (await manager.get(session.id)).shipping_method_id is None

    async def test_unknown_payment_method_is_refused(self, manager):
        session = await manager.create(uuid4())

        assert await manager.set_payment_method(session.id, uuid4()) is None

    async def test_payment_method_stores_id_only(self, manager, catalog):
        session = await manager.create(uuid4())

        updated = await manager.set_payment_method(session.id, catalog.paypal.id)

        assert updated.payment_method_id == catalog.paypal.id
        assert updated.shipping_amount == Decimal("0.00")

    async def test_method_on_missing_session_returns_none(self, manager, catalog):
        assert await manager.set_shipping_method(uuid4(), catalog.standard.id) is None


class TestCalculateOrderTotals:
    """Tests for calculate_order_totals."""

    async def test_without_address_tax_is_zero(self, manager, rate_repo, basket, catalog):
        await rate_repo.add_rate(make_rate("0.08"))
        session = await manager.create(basket.id)
        await manager.set_shipping_method(session.id, catalog.standard.id)

        priced = await manager.calculate_order_totals(session.id)

        assert priced.subtotal == Decimal("75.48")
        assert priced.tax_amount == Decimal("0.00")
        assert priced.total == Decimal("81.47")

    async def test_with_matching_rate(self, manager, rate_repo, basket, catalog):
        await rate_repo.add_rate(make_rate("0.08"))
        session = await manager.create(basket.id)
        await manager.set_shipping_address(session.id, make_address())
        await manager.set_shipping_method(session.id, catalog.standard.id)

        priced = await manager.calculate_order_totals(session.id)

        assert priced.tax_amount == Decimal("6.04")
        assert priced.total == Decimal("87.51")
        assert priced.degraded_tax_calculation is False

    async def test_is_idempotent(self, manager, rate_repo, basket, catalog):
        await rate_repo.add_rate(make_rate("0.08"))
        session = await manager.create(basket.id)
        await manager.set_shipping_address(session.id, make_address())
        await manager.set_shipping_method(session.id, catalog.standard.id)

        first = await manager.calculate_order_totals(session.id)
        second = await manager.calculate_order_totals(session.id)

        assert (first.subtotal, first.tax_amount, first.total) == (
            second.subtotal,
            second.tax_amount,
            second.total,
        )

    async def test_reflects_current_prices(self, manager, product_repo, basket):
        session = await manager.create(basket.id)
        await product_repo.set_price(basket.mug.id, Decimal("20.00"))

        priced = await manager.calculate_order_totals(session.id)

        assert priced.subtotal == Decimal("79.98")

    async def test_total_is_not_floored(self, manager, basket):
        session = await manager.create(basket.id)
        discounted = await manager.apply_discount(session.id, "BIGSPENDER", Decimal("100.00"))
        assert discounted.total == Decimal("0.00")

        priced = await manager.calculate_order_totals(session.id)

        assert priced.total == Decimal("-24.52")

    async def test_missing_session_returns_none(self, manager):
        assert await manager.calculate_order_totals(uuid4()) is None

    async def test_engine_failure_degrades(
        self,
        session_repo,
        shipping_repo,
        payment_repo,
        product_repo,
        exemption_repo,
        basket_repo,
        basket,
        catalog,
        config,
        clock,
        caplog,
    ):
        engine = TaxCalculationEngine(
            FailingTaxRateRepository(),
            product_repo,
            exemption_repo,
            basket_repo,
            config=config,
            clock=clock,
        )
        manager = CheckoutSessionManager(
            session_repo,
            shipping_repo,
            payment_repo,
            basket_repo,
            engine,
            config=config,
            clock=clock,
        )
        session = await manager.create(basket.id)
        await manager.set_shipping_address(session.id, make_address())
        await manager.set_shipping_method(session.id, catalog.standard.id)

        with caplog.at_level(logging.WARNING, logger="checkoutflow.checkout.manager"):
            priced = await manager.calculate_order_totals(session.id)

        assert priced.tax_amount == Decimal("0.00")
        assert priced.degraded_tax_calculation is True
        assert priced.total == Decimal("81.47")
        assert "Tax calculation failed" in caplog.text

    async def test_degraded_flag_clears_on_success(self, manager, session_repo, basket):
        session = await manager.create(basket.id)
        await manager.set_shipping_address(session.id, make_address())
        session_repo._sessions[session.id] = (await manager.get(session.id)).model_copy(
            update={"degraded_tax_calculation": True}
        )

        priced = await manager.calculate_order_totals(session.id)

        assert priced.degraded_tax_calculation is False


class TestValidate:
    """Tests for validate."""

    async def test_missing_session_only_reports_not_found(self, manager):
        result = await manager.validate(uuid4())

        assert result.is_valid is False
        assert result.codes == [CheckoutErrorCode.SESSION_NOT_FOUND]

    async def test_ready_session_is_valid(self, manager, basket, catalog):
        session = await ready_session(manager, basket, catalog)

        result = await manager.validate(session.id)

        assert result.is_valid is True
        assert result.errors == []

    async def test_empty_session_reports_every_gap(self, manager):
        session = await manager.create(uuid4())

        result = await manager.validate(session.id)

        assert result.codes == [
            CheckoutErrorCode.MISSING_CUSTOMER_INFO,
            CheckoutErrorCode.MISSING_SHIPPING_ADDRESS,
            CheckoutErrorCode.MISSING_BILLING_ADDRESS,
            CheckoutErrorCode.MISSING_SHIPPING_METHOD,
            CheckoutErrorCode.MISSING_PAYMENT_METHOD,
            CheckoutErrorCode.EMPTY_BASKET,
        ]

    async def test_guest_email_satisfies_customer_info(self, manager, basket, catalog):
        session = await manager.create(basket.id, guest_email="guest@example.com")

        result = await manager.validate(session.id)

        assert CheckoutErrorCode.MISSING_CUSTOMER_INFO not in result.codes

    async def test_incomplete_address_names_missing_fields(self, manager, basket, catalog):
        session = await ready_session(manager, basket, catalog)
        await manager.set_shipping_address(session.id, make_address(city="", postal_code=" "))

        result = await manager.validate(session.id)

        assert result.codes == [CheckoutErrorCode.MISSING_SHIPPING_ADDRESS]
        error = result.errors[0]
        assert error.field == "shipping_address"
        assert "city" in error.message
        assert "postal_code" in error.message

    async def test_expired_session(self, manager, basket, catalog, clock):
        session = await ready_session(manager, basket, catalog)
        clock.advance(hours=25)

        result = await manager.validate(session.id)

        assert result.codes == [CheckoutErrorCode.SESSION_EXPIRED]

    async def test_terminal_and_expired_both_reported(self, manager, basket, catalog, clock):
        session = await ready_session(manager, basket, catalog)
        await manager.abandon(session.id)
        clock.advance(days=2)

        result = await manager.validate(session.id)

        assert result.codes == [
            CheckoutErrorCode.INVALID_SESSION_STATUS,
            CheckoutErrorCode.SESSION_EXPIRED,
        ]

    async def test_validate_does_not_write(self, manager, session_repo, basket, catalog):
        session = await ready_session(manager, basket, catalog)
        before = await manager.get(session.id)

        await manager.validate(session.id)

        assert await manager.get(session.id) == before


class TestAbandon:
    """Tests for abandon."""

    async def test_active_session_is_abandoned(self, manager):
        session = await manager.create(uuid4())

        abandoned = await manager.abandon(session.id)

        assert abandoned.status is SessionStatus.ABANDONED

    async def test_abandon_is_idempotent(self, manager, clock):
        session = await manager.create(uuid4())
        first = await manager.abandon(session.id)
        clock.advance(minutes=1)

        second = await manager.abandon(session.id)

        assert second == first

    async def test_abandon_does_not_reopen_completed(self, manager, session_repo):
        session = await manager.create(uuid4())
        session_repo._sessions[session.id] = session.model_copy(
            update={"status": SessionStatus.COMPLETED}
        )

        result = await manager.abandon(session.id)

        assert result.status is SessionStatus.COMPLETED

    async def test_abandon_missing_returns_none(self, manager):
        assert await manager.abandon(uuid4()) is None


class TestTerminalSessions:
    """Terminal sessions are read-only."""

    @pytest_asyncio.fixture
    async def completed(self, manager, session_repo, rate_repo, basket, catalog):
        await rate_repo.add_rate(make_rate("0.08"))
        session = await ready_session(manager, basket, catalog)
        priced = await manager.calculate_order_totals(session.id)
        session_repo._sessions[session.id] = priced.model_copy(
            update={"status": SessionStatus.COMPLETED}
        )
        return await manager.get(session.id)

    async def test_recalculation_leaves_completed_session_alone(
        self, manager, basket_repo, basket, completed
    ):
        for line_id in basket.line_ids:
            await basket_repo.remove_item(line_id)

        assert await manager.calculate_order_totals(completed.id) is None
        assert await manager.get(completed.id) == completed
        assert completed.subtotal == Decimal("75.48")
        assert completed.total == Decimal("87.51")

    async def test_field_writes_refused_on_completed_session(self, manager, catalog, completed):
        assert await manager.set_shipping_method(completed.id, catalog.express.id) is None
        assert await manager.set_payment_method(completed.id, catalog.paypal.id) is None
        assert await manager.set_shipping_address(completed.id, make_address(city="Fresno")) is None
        assert await manager.set_billing_address(completed.id, make_address()) is None
        assert await manager.apply_discount(completed.id, "LATE", Decimal("5.00")) is None
        assert await manager.set_notes(completed.id, "too late") is None

        assert await manager.get(completed.id) == completed

    async def test_field_writes_refused_on_abandoned_session(self, manager, catalog, basket):
        session = await manager.create(basket.id)
        abandoned = await manager.abandon(session.id)

        assert await manager.set_shipping_method(session.id, catalog.standard.id) is None
        assert await manager.calculate_order_totals(session.id) is None
        assert await manager.remove_discount(session.id) is None
        assert await manager.get(session.id) == abandoned


class TestDiscounts:
    """Tests for discount codes and notes."""

    async def test_apply_discount_reduces_total(self, manager, basket, catalog):
        session = await manager.create(basket.id)
        await manager.set_shipping_method(session.id, catalog.standard.id)
        await manager.calculate_order_totals(session.id)

        discounted = await manager.apply_discount(session.id, " SAVE10 ", Decimal("10"))

        assert discounted.coupon_code == "SAVE10"
        assert discounted.discount_amount == Decimal("10.00")
        assert discounted.total == Decimal("71.47")

    async def test_discount_survives_recalculation(self, manager, basket, catalog):
        session = await manager.create(basket.id)
        await manager.set_shipping_method(session.id, catalog.standard.id)
        await manager.apply_discount(session.id, "SAVE10", Decimal("10.00"))

        priced = await manager.calculate_order_totals(session.id)

        assert priced.total == Decimal("71.47")

    async def test_discount_floors_total_at_zero(self, manager, basket):
        session = await manager.create(basket.id)
        await manager.calculate_order_totals(session.id)

        discounted = await manager.apply_discount(session.id, "FREE", Decimal("500.00"))

        assert discounted.total == Decimal("0.00")
        assert discounted.discount_amount == Decimal("500.00")

    async def test_remove_discount_restores_total(self, manager, basket):
        session = await manager.create(basket.id)
        await manager.calculate_order_totals(session.id)
        await manager.apply_discount(session.id, "SAVE10", Decimal("10.00"))

        restored = await manager.remove_discount(session.id)

        assert restored.coupon_code is None
        assert restored.discount_amount == Decimal("0.00")
        assert restored.total == Decimal("75.48")

    @pytest.mark.parametrize("code, amount", [("", Decimal("1.00")), ("SAVE", Decimal("-1"))])
    async def test_invalid_discount_is_rejected(self, manager, code, amount):
        session = await manager.create(uuid4())

        with pytest.raises(ValueError):
            await manager.apply_discount(session.id, code, amount)

    async def test_discount_on_missing_session_returns_none(self, manager):
        assert await manager.apply_discount(uuid4(), "SAVE10", Decimal("1.00")) is None
        assert await manager.remove_discount(uuid4()) is None

    async def test_set_notes(self, manager):
        session = await manager.create(uuid4())

        updated = await manager.set_notes(session.id, "Leave at the side door")

        assert updated.notes == "Leave at the side door"


class TestCleanupExpired:
    """Tests for cleanup_expired."""

    async def test_expires_only_overdue_active_sessions(self, manager, clock):
        overdue = await manager.create(uuid4())
        abandoned = await manager.create(uuid4())
        await manager.abandon(abandoned.id)
        clock.advance(hours=12)
        fresh = await manager.create(uuid4())
        clock.advance(hours=13)

        count = await manager.cleanup_expired()

        assert count == 1
        assert (await manager.get(overdue.id)).status is SessionStatus.EXPIRED
        assert (await manager.get(abandoned.id)).status is SessionStatus.ABANDONED
        assert (await manager.get(fresh.id)).status is SessionStatus.ACTIVE

    async def test_second_sweep_finds_nothing(self, manager, clock):
        await manager.create(uuid4())
        clock.advance(days=2)

        assert await manager.cleanup_expired() == 1
        assert await manager.cleanup_expired() == 0

    async def test_effective_status_is_lazy(self, manager, clock):
        session = await manager.create(uuid4())
        clock.advance(days=2)

        stored = await manager.get(session.id)

        assert stored.status is SessionStatus.ACTIVE
        assert stored.effective_status(clock.now) is SessionStatus.EXPIRED


class TestTracing:
    """Tests for span emission."""

    @pytest.mark.parametrize("operation", ["validate", "abandon"])
    async def test_operations_emit_spans(
        self,
        session_repo,
        shipping_repo,
        payment_repo,
        basket_repo,
        tax_engine,
        config,
        clock,
        operation,
    ):
        tracer = MockTracer()
        manager = CheckoutSessionManager(
            session_repo,
            shipping_repo,
            payment_repo,
            basket_repo,
            tax_engine,
            config=config,
            clock=clock,
            tracer=tracer,
        )
        session = await manager.create(uuid4())

        await getattr(manager, operation)(session.id)

        assert tracer.span_names == [
            "checkoutflow.checkout.create",
            f"checkoutflow.checkout.{operation}",
        ]
