"""
Unit tests for TaxCalculationEngine.

Tests cover:
- The reference basket with and without a matching rate
- Rate stacking, ordering and per-rate rounding
- Region, postal code and tax category scoping
- Validity windows and inactive rates
- Customer exemptions short-circuiting rate lookup
- Basket aggregation and per-line results
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from checkoutflow.exceptions import TaxCalculationError
from checkoutflow.models import (
    Jurisdiction,
    JurisdictionLevel,
    TaxExemption,
    TaxExemptionStatus,
    TaxRateStatus,
)
from checkoutflow.observability import MockTracer
from checkoutflow.tax import TaxCalculationEngine
from tests.fixtures import FailingTaxRateRepository, make_product, make_rate

US_CA = Jurisdiction(country="US", region="CA", postal_code="95814")


class TestReferenceBasket:
    """The 2 x 29.99 + 1 x 15.50 basket."""

    async def test_no_matching_rate_gives_zero_tax(self, tax_engine, basket):
        result = await tax_engine.calculate_basket_tax(basket.id, US_CA)

        assert result.subtotal == Decimal("75.48")
        assert result.tax_amount == Decimal("0.00")
        assert result.total == Decimal("75.48")
        assert result.tax_breakdown == []
        assert result.exempt is False

    async def test_country_rate_rounds_per_line(self, tax_engine, rate_repo, basket):
        """59.98 * 0.08 = 4.7984 -> 4.80 and 15.50 * 0.08 = 1.24."""
        await rate_repo.add_rate(make_rate("0.08", name="US Sales Tax"))

        result = await tax_engine.calculate_basket_tax(basket.id, US_CA)

        assert result.tax_amount == Decimal("6.04")
        assert result.total == Decimal("81.52")
        line_taxes = [line.tax_amount for line in result.line_item_taxes]
        assert line_taxes == [Decimal("4.80"), Decimal("1.24")]

    async def test_rate_in_other_country_is_ignored(self, tax_engine, rate_repo, basket):
        await rate_repo.add_rate(make_rate("0.20", country="GB"))

        result = await tax_engine.calculate_basket_tax(basket.id, US_CA)

        assert result.tax_amount == Decimal("0.00")


class TestRateStacking:
    """Tests for multiple applicable rates."""

    async def test_rates_stack_additively(self, tax_engine, rate_repo, basket):
        await rate_repo.add_rate(make_rate("0.08", name="Country"))
        await rate_repo.add_rate(make_rate("0.02", name="State", region="CA", priority=10))

        result = await tax_engine.calculate_basket_tax(basket.id, US_CA)

        # Country 4.80 + 1.24, state 1.20 + 0.31
        assert result.tax_amount == Decimal("7.55")
        assert [entry.name for entry in result.tax_breakdown] == ["State", "Country"]

    async def test_rates_do_not_compound(self, tax_engine, rate_repo, product_repo):
        product = await product_repo.add_product(make_product("Book", "100.00"))
        await rate_repo.add_rate(make_rate("0.10", name="A"))
        await rate_repo.add_rate(make_rate("0.10", name="B"))

        result = await tax_engine.calculate_line_tax(product.id, 1, Decimal("100.00"), US_CA)

        assert result.tax_amount == Decimal("20.00")
        assert all(entry.taxable_amount == Decimal("100.00") for entry in result.tax_breakdown)

    async def test_equal_priority_breaks_tie_by_rate_id(self, tax_engine, rate_repo, product_repo):
        product = await product_repo.add_product(make_product("Book", "10.00"))
        high_id = UUID("ffffffff-0000-0000-0000-000000000000")
        low_id = UUID("00000000-0000-0000-0000-000000000001")
        await rate_repo.add_rate(make_rate("0.05", name="High", rate_id=high_id))
        await rate_repo.add_rate(make_rate("0.05", name="Low", rate_id=low_id))

        result = await tax_engine.calculate_line_tax(product.id, 1, Decimal("10.00"), US_CA)

        assert [entry.tax_rate_id for entry in result.tax_breakdown] == [low_id, high_id]

    async def test_breakdown_records_jurisdiction(self, tax_engine, rate_repo, product_repo):
        product = await product_repo.add_product(make_product("Book", "10.00"))
        await rate_repo.add_rate(make_rate("0.01", postal_code="95814", priority=3))
        await rate_repo.add_rate(make_rate("0.02", region="CA", priority=2))
        await rate_repo.add_rate(make_rate("0.03", priority=1))

        result = await tax_engine.calculate_line_tax(product.id, 1, Decimal("10.00"), US_CA)

        assert [(e.jurisdiction_level, e.jurisdiction_name) for e in result.tax_breakdown] == [
            (JurisdictionLevel.POSTAL_CODE, "95814"),
            (JurisdictionLevel.REGION, "CA"),
            (JurisdictionLevel.COUNTRY, "US"),
        ]


class TestJurisdictionScoping:
    """Tests for region and postal code matching."""

    async def test_region_rate_requires_matching_region(
        self, tax_engine, rate_repo, product_repo
    ):
        product = await product_repo.add_product(make_product("Book", "10.00"))
        await rate_repo.add_rate(make_rate("0.05", region="NY"))

        result = await tax_engine.calculate_line_tax(product.id, 1, Decimal("10.00"), US_CA)

        assert result.tax_breakdown == []

    async def test_region_rate_skipped_when_address_has_no_region(
        self, tax_engine, rate_repo, product_repo
    ):
        product = await product_repo.add_product(make_product("Book", "10.00"))
        await rate_repo.add_rate(make_rate("0.05", region="CA"))
        await rate_repo.add_rate(make_rate("0.08"))

        result = await tax_engine.calculate_line_tax(
            product.id, 1, Decimal("10.00"), Jurisdiction(country="US")
        )

        assert [entry.rate for entry in result.tax_breakdown] == [Decimal("0.08")]

    async def test_postal_code_is_normalized(self, tax_engine, rate_repo, product_repo):
        product = await product_repo.add_product(make_product("Tea", "10.00"))
        await rate_repo.add_rate(make_rate("0.05", country="GB", postal_code="SW1A 1AA"))

        result = await tax_engine.calculate_line_tax(
            product.id,
            1,
            Decimal("10.00"),
            Jurisdiction(country=" gb ", postal_code="sw1a1aa"),
        )

        assert result.tax_amount == Decimal("0.50")


class TestTaxCategories:
    """Tests for category-restricted rates."""

    async def test_restricted_rate_applies_to_listed_category(
        self, tax_engine, rate_repo, product_repo
    ):
        food = uuid4()
        product = await product_repo.add_product(make_product("Bread", "10.00", food))
        await rate_repo.add_rate(make_rate("0.05", tax_category_ids=[food]))

        result = await tax_engine.calculate_line_tax(product.id, 1, Decimal("10.00"), US_CA)

        assert result.tax_amount == Decimal("0.50")

    async def test_restricted_rate_skips_other_categories(
        self, tax_engine, rate_repo, product_repo
    ):
        product = await product_repo.add_product(make_product("Bread", "10.00", uuid4()))
        await rate_repo.add_rate(make_rate("0.05", tax_category_ids=[uuid4()]))

        result = await tax_engine.calculate_line_tax(product.id, 1, Decimal("10.00"), US_CA)

        assert result.tax_amount == Decimal("0.00")

    async def test_uncategorized_product_matches_restricted_rate(
        self, tax_engine, rate_repo, product_repo
    ):
        product = await product_repo.add_product(make_product("Widget", "10.00"))
        await rate_repo.add_rate(make_rate("0.05", tax_category_ids=[uuid4()]))

        result = await tax_engine.calculate_line_tax(product.id, 1, Decimal("10.00"), US_CA)

        assert result.tax_amount == Decimal("0.50")


class TestRateValidity:
    """Tests for rate status and effective windows."""

    async def test_inactive_rate_is_ignored(self, tax_engine, rate_repo, product_repo):
        product = await product_repo.add_product(make_product("Book", "10.00"))
        await rate_repo.add_rate(make_rate("0.05", status=TaxRateStatus.INACTIVE))

        result = await tax_engine.calculate_line_tax(product.id, 1, Decimal("10.00"), US_CA)

        assert result.tax_breakdown == []

    async def test_future_rate_is_ignored(self, tax_engine, rate_repo, product_repo, clock):
        product = await product_repo.add_product(make_product("Book", "10.00"))
        await rate_repo.add_rate(make_rate("0.05", effective_from=clock.now + timedelta(days=1)))

        result = await tax_engine.calculate_line_tax(product.id, 1, Decimal("10.00"), US_CA)

        assert result.tax_breakdown == []

    async def test_window_end_is_exclusive(self, tax_engine, rate_repo, product_repo, clock):
        product = await product_repo.add_product(make_product("Book", "10.00"))
        await rate_repo.add_rate(
            make_rate(
                "0.05",
                effective_from=clock.now - timedelta(days=30),
                effective_until=clock.now,
            )
        )

        result = await tax_engine.calculate_line_tax(product.id, 1, Decimal("10.00"), US_CA)

        assert result.tax_breakdown == []


class TestExemptions:
    """Tests for customer exemptions."""

    async def test_active_exemption_zeroes_tax(
        self, tax_engine, rate_repo, exemption_repo, basket
    ):
        customer_id = uuid4()
        await rate_repo.add_rate(make_rate("0.08"))
        await exemption_repo.add_exemption(
            TaxExemption(id=uuid4(), customer_id=customer_id, status=TaxExemptionStatus.ACTIVE)
        )

        result = await tax_engine.calculate_basket_tax(basket.id, US_CA, customer_id=customer_id)

        assert result.exempt is True
        assert result.tax_amount == Decimal("0.00")
        assert result.tax_breakdown == []
        assert result.total == Decimal("75.48")

    async def test_exemption_skips_rate_lookup(
        self, product_repo, exemption_repo, basket_repo, config, clock
    ):
        rates = FailingTaxRateRepository()
        engine = TaxCalculationEngine(
            rates, product_repo, exemption_repo, basket_repo, config=config, clock=clock
        )
        customer_id = uuid4()
        await exemption_repo.add_exemption(
            TaxExemption(id=uuid4(), customer_id=customer_id, status=TaxExemptionStatus.ACTIVE)
        )

        result = await engine.calculate_line_tax(
            uuid4(), 1, Decimal("10.00"), US_CA, customer_id=customer_id
        )

        assert result.exempt is True
        assert rates.calls == 0

    @pytest.mark.parametrize(
        "status, expires_in",
        [
            (TaxExemptionStatus.PENDING, None),
            (TaxExemptionStatus.REVOKED, None),
            (TaxExemptionStatus.ACTIVE, timedelta(days=-1)),
        ],
    )
    async def test_inactive_exemption_is_taxed(
        self, tax_engine, rate_repo, exemption_repo, basket, clock, status, expires_in
    ):
        customer_id = uuid4()
        await rate_repo.add_rate(make_rate("0.08"))
        await exemption_repo.add_exemption(
            TaxExemption(
                id=uuid4(),
                customer_id=customer_id,
                status=status,
                expires_at=clock.now + expires_in if expires_in else None,
            )
        )

        result = await tax_engine.calculate_basket_tax(basket.id, US_CA, customer_id=customer_id)

        assert result.exempt is False
        assert result.tax_amount == Decimal("6.04")


class TestBasketAggregation:
    """Tests for calculate_basket_tax aggregation."""

    async def test_empty_basket_is_all_zero(self, tax_engine, rate_repo):
        await rate_repo.add_rate(make_rate("0.08"))

        result = await tax_engine.calculate_basket_tax(uuid4(), US_CA)

        assert result.subtotal == Decimal("0.00")
        assert result.tax_amount == Decimal("0.00")
        assert result.total == Decimal("0.00")
        assert result.line_item_taxes == []

    async def test_breakdown_merged_by_rate(self, tax_engine, rate_repo, basket):
        rate = await rate_repo.add_rate(make_rate("0.08"))

        result = await tax_engine.calculate_basket_tax(basket.id, US_CA)

        assert len(result.tax_breakdown) == 1
        entry = result.tax_breakdown[0]
        assert entry.tax_rate_id == rate.id
        assert entry.amount == Decimal("6.04")
        assert entry.taxable_amount == Decimal("75.48")

    async def test_line_item_taxes_follow_basket_lines(self, tax_engine, rate_repo, basket):
        await rate_repo.add_rate(make_rate("0.08"))

        result = await tax_engine.calculate_basket_tax(basket.id, US_CA)

        assert [line.line_item_id for line in result.line_item_taxes] == basket.line_ids
        assert [line.product_id for line in result.line_item_taxes] == [
            basket.tshirt.id,
            basket.mug.id,
        ]
        assert result.line_item_taxes[0].subtotal == Decimal("59.98")

    async def test_line_tax_without_line_id_has_no_line_items(
        self, tax_engine, rate_repo, product_repo
    ):
        product = await product_repo.add_product(make_product("Book", "10.00"))
        await rate_repo.add_rate(make_rate("0.08"))

        result = await tax_engine.calculate_line_tax(product.id, 3, Decimal("10.00"), US_CA)

        assert result.subtotal == Decimal("30.00")
        assert result.tax_amount == Decimal("2.40")
        assert result.line_item_taxes == []

    async def test_lookup_failure_raises_tax_calculation_error(
        self, product_repo, exemption_repo, basket_repo, basket, config, clock
    ):
        engine = TaxCalculationEngine(
            FailingTaxRateRepository(),
            product_repo,
            exemption_repo,
            basket_repo,
            config=config,
            clock=clock,
        )

        with pytest.raises(TaxCalculationError) as exc_info:
            await engine.calculate_basket_tax(basket.id, US_CA)

        assert isinstance(exc_info.value.__cause__, ConnectionError)
        assert exc_info.value.product_id is not None

    async def test_tax_calculation_error_is_not_rewrapped(
        self, product_repo, exemption_repo, basket_repo, config, clock
    ):
        class RejectingRates(FailingTaxRateRepository):
            async def find_applicable_rates(self, jurisdiction, tax_category_id, now):
                raise TaxCalculationError("no rates configured for US")

        engine = TaxCalculationEngine(
            RejectingRates(), product_repo, exemption_repo, basket_repo, config=config, clock=clock
        )

        with pytest.raises(TaxCalculationError, match="no rates configured for US"):
            await engine.calculate_line_tax(uuid4(), 1, Decimal("10.00"), US_CA)


class TestTracing:
    """Tests for span emission."""

    async def test_emits_basket_and_line_spans(
        self, rate_repo, product_repo, exemption_repo, basket_repo, basket, config, clock
    ):
        tracer = MockTracer()
        engine = TaxCalculationEngine(
            rate_repo,
            product_repo,
            exemption_repo,
            basket_repo,
            config=config,
            clock=clock,
            tracer=tracer,
        )

        await engine.calculate_basket_tax(basket.id, US_CA)

        assert tracer.span_names == [
            "checkoutflow.tax.calculate_basket",
            "checkoutflow.tax.calculate_line",
            "checkoutflow.tax.calculate_line",
        ]
