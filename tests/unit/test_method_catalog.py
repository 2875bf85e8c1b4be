"""
Unit tests for the in-memory method catalogs.

Tests cover:
- The single-default invariant on add and on set_default
- Deletion refusals for the last method and the current default
- Listing order and enabled-only lookups
"""

from __future__ import annotations

from uuid import uuid4

import pytest

from checkoutflow.exceptions import DefaultMethodDeletionError, LastMethodError
from checkoutflow.models import MethodKind, PaymentMethod, ShippingMethod
from checkoutflow.observability import MockTracer
from checkoutflow.repositories import InMemoryMethodRepository, MethodRepository
from tests.fixtures import make_payment_method, make_shipping_method


async def defaults(repo) -> list:
    return [m.id for m in await repo.list_methods() if m.is_default]


class TestProtocol:
    def test_implements_protocol(self, shipping_repo):
        assert isinstance(shipping_repo, MethodRepository)

    def test_kind_follows_method_type(self, shipping_repo, payment_repo):
        assert shipping_repo.kind is MethodKind.SHIPPING
        assert payment_repo.kind is MethodKind.PAYMENT


class TestDefaults:
    """Tests for the single-default invariant."""

    async def test_first_method_becomes_default(self, shipping_repo):
        method = await shipping_repo.add_method(make_shipping_method())

        assert method.is_default is True
        assert await defaults(shipping_repo) == [method.id]

    async def test_adding_default_unsets_previous(self, shipping_repo):
        await shipping_repo.add_method(make_shipping_method("Standard"))
        express = await shipping_repo.add_method(
            make_shipping_method("Express", is_default=True)
        )

        assert await defaults(shipping_repo) == [express.id]

    async def test_set_default_moves_flag(self, catalog, shipping_repo):
        promoted = await shipping_repo.set_default(catalog.express.id)

        assert promoted.is_default is True
        assert await defaults(shipping_repo) == [catalog.express.id]

    async def test_set_default_unknown_returns_none(self, catalog, shipping_repo):
        assert await shipping_repo.set_default(uuid4()) is None
        assert await defaults(shipping_repo) == [catalog.standard.id]

    async def test_catalogs_are_independent(self, catalog, shipping_repo, payment_repo):
        await payment_repo.set_default(catalog.paypal.id)

        assert await defaults(shipping_repo) == [catalog.standard.id]
        assert await defaults(payment_repo) == [catalog.paypal.id]


class TestDelete:
    """Tests for delete_method refusals."""

    async def test_last_method_cannot_be_deleted(self, payment_repo):
        only = await payment_repo.add_method(make_payment_method())

        with pytest.raises(LastMethodError) as exc_info:
            await payment_repo.delete_method(only.id)

        assert exc_info.value.method_id == only.id
        assert await payment_repo.get_method(only.id) is not None

    async def test_default_cannot_be_deleted(self, catalog, shipping_repo):
        with pytest.raises(DefaultMethodDeletionError):
            await shipping_repo.delete_method(catalog.standard.id)

    async def test_default_deletable_after_promotion(self, catalog, shipping_repo):
        await shipping_repo.set_default(catalog.express.id)

        assert await shipping_repo.delete_method(catalog.standard.id) is True
        assert await shipping_repo.get_method(catalog.standard.id) is None

    async def test_non_default_is_deleted(self, catalog, payment_repo):
        assert await payment_repo.delete_method(catalog.paypal.id) is True

    async def test_unknown_returns_false(self, catalog, payment_repo):
        assert await payment_repo.delete_method(uuid4()) is False


class TestListing:
    """Tests for listing and lookups."""

    async def test_enabled_listing_default_first_then_name(self, shipping_repo):
        await shipping_repo.add_method(make_shipping_method("Zoom"))
        await shipping_repo.add_method(make_shipping_method("Bike"))
        await shipping_repo.add_method(make_shipping_method("Air"))
        await shipping_repo.add_method(make_shipping_method("Boat", is_enabled=False))

        names = [m.name for m in await shipping_repo.list_enabled_methods()]

        assert names == ["Zoom", "Air", "Bike"]

    async def test_list_methods_includes_disabled(self, catalog, shipping_repo):
        names = {m.name for m in await shipping_repo.list_methods()}

        assert names == {"Standard", "Express", "Freight"}

    async def test_get_enabled_skips_disabled(self, catalog, shipping_repo):
        assert await shipping_repo.get_enabled_method(catalog.freight.id) is None
        assert await shipping_repo.get_method(catalog.freight.id) is not None

    async def test_set_enabled(self, catalog, shipping_repo):
        await shipping_repo.set_enabled(catalog.express.id, False)

        assert await shipping_repo.get_enabled_method(catalog.express.id) is None


class TestTracing:
    async def test_spans_carry_method_kind(self):
        tracer = MockTracer()
        repo = InMemoryMethodRepository(PaymentMethod, tracer=tracer)

        await repo.add_method(make_payment_method())

        name, attrs = tracer.spans[0]
        assert name == "checkoutflow.method.add"
        assert attrs["checkoutflow.method.kind"] == "payment"

    def test_shipping_repo_type(self):
        repo = InMemoryMethodRepository(ShippingMethod, enable_tracing=False)
        assert repo.kind is MethodKind.SHIPPING
