"""
Tax calculation engine.

Computes tax for a single line or a whole basket shipped to a jurisdiction:

1. A customer with an active exemption pays no tax and no rates are resolved
2. The product's tax category is resolved
3. Applicable rates are resolved and ordered (see ``checkoutflow.tax.rules``)
4. Each rate contributes ``subtotal * rate`` rounded to currency places;
   rates stack additively and never compound

Basket results merge the per-line breakdowns by rate, in the order rates
first appear.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from checkoutflow.config import CheckoutConfig, Clock, utc_now
from checkoutflow.exceptions import TaxCalculationError
from checkoutflow.models.address import Jurisdiction
from checkoutflow.models.tax import (
    LineItemTax,
    TaxBreakdownEntry,
    TaxCalculationResult,
)
from checkoutflow.money import ZERO, quantize
from checkoutflow.observability import Tracer, create_tracer
from checkoutflow.observability.attributes import (
    ATTR_BASKET_ID,
    ATTR_CUSTOMER_ID,
    ATTR_LINE_COUNT,
    ATTR_PRODUCT_ID,
    ATTR_TAX_COUNTRY,
    ATTR_TAX_EXEMPT,
    ATTR_TAX_RATE_COUNT,
)

if TYPE_CHECKING:
    from checkoutflow.protocols import (
        BasketReader,
        ProductTaxCategoryReader,
        TaxExemptionReader,
    )
    from checkoutflow.repositories.tax import TaxRateRepository

logger = logging.getLogger(__name__)


class TaxCalculationEngine:
    """
    Resolves and applies tax rates to basket lines.

    Example:
        >>> engine = TaxCalculationEngine(rates, products, exemptions, baskets)
        >>> result = await engine.calculate_basket_tax(
        ...     basket_id, address.jurisdiction(), customer_id=customer_id
        ... )
        >>> result.tax_amount
        Decimal('6.04')
    """

    def __init__(
        self,
        rates: TaxRateRepository,
        products: ProductTaxCategoryReader,
        exemptions: TaxExemptionReader,
        baskets: BasketReader,
        config: CheckoutConfig | None = None,
        clock: Clock = utc_now,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the engine.

        Args:
            rates: Tax rate store used to resolve applicable rates
            products: Reader for product tax categories
            exemptions: Reader for customer exemptions
            baskets: Reader for basket lines
            config: Rounding configuration (defaults to CheckoutConfig())
            clock: Time source for rate windows and exemption expiry
            tracer: Optional tracer for tracing (if not provided, one will be created)
            enable_tracing: Whether to enable OpenTelemetry tracing (default True)
        """
        self._config = config or CheckoutConfig()
        self._tracer = tracer or create_tracer(
            __name__, enable_tracing and self._config.enable_tracing
        )
        self._enable_tracing = self._tracer.enabled
        self._rates = rates
        self._products = products
        self._exemptions = exemptions
        self._baskets = baskets
        self._clock = clock

    async def is_exempt(self, customer_id: UUID | None) -> bool:
        """True when the customer holds at least one active exemption."""
        if customer_id is None:
            return False
        now = self._clock()
        exemptions = await self._exemptions.list_exemptions(customer_id)
        return any(exemption.is_active(now) for exemption in exemptions)

    async def calculate_line_tax(
        self,
        product_id: UUID,
        quantity: int,
        price: Decimal,
        jurisdiction: Jurisdiction,
        customer_id: UUID | None = None,
        line_item_id: UUID | None = None,
    ) -> TaxCalculationResult:
        """
        Calculate tax for one line.

        Args:
            product_id: Product on the line
            quantity: Number of units
            price: Unit price
            jurisdiction: Shipping jurisdiction
            customer_id: Customer whose exemptions apply, if any
            line_item_id: Basket line id recorded in ``line_item_taxes``;
                omitted for ad-hoc calculations

        Returns:
            Result with per-rate breakdown, highest priority first. The
            ``line_item_taxes`` list holds this line when ``line_item_id``
            is given.
        """
        with self._tracer.span(
            "checkoutflow.tax.calculate_line",
            {
                ATTR_PRODUCT_ID: str(product_id),
                ATTR_TAX_COUNTRY: jurisdiction.country,
            },
        ) as span:
            subtotal = quantize(price * quantity, self._config)

            try:
                exempt = await self.is_exempt(customer_id)
                if not exempt:
                    tax_category_id = await self._products.get_tax_category(product_id)
                    rates = await self._rates.find_applicable_rates(
                        jurisdiction, tax_category_id, self._clock()
                    )
            except TaxCalculationError:
                raise
            except Exception as e:
                raise TaxCalculationError(
                    f"Tax lookup failed for product {product_id}: {e}", product_id=product_id
                ) from e

            if exempt:
                if span:
                    span.set_attribute(ATTR_TAX_EXEMPT, True)
                logger.debug(
                    f"Customer {customer_id} is tax exempt",
                    extra={"customer_id": str(customer_id), "product_id": str(product_id)},
                )
                return self._line_result(
                    subtotal, [], exempt=True, product_id=product_id, line_item_id=line_item_id
                )

            breakdown = [
                TaxBreakdownEntry(
                    tax_rate_id=rate.id,
                    name=rate.name,
                    rate=rate.rate,
                    amount=quantize(subtotal * rate.rate, self._config),
                    taxable_amount=subtotal,
                    jurisdiction_level=rate.jurisdiction_level,
                    jurisdiction_name=rate.jurisdiction_name,
                )
                for rate in rates
            ]

            if span:
                span.set_attribute(ATTR_TAX_RATE_COUNT, len(rates))
                span.set_attribute(ATTR_TAX_EXEMPT, False)

            return self._line_result(
                subtotal, breakdown, exempt=False, product_id=product_id, line_item_id=line_item_id
            )

    async def calculate_basket_tax(
        self,
        basket_id: UUID,
        jurisdiction: Jurisdiction,
        customer_id: UUID | None = None,
    ) -> TaxCalculationResult:
        """
        Calculate tax for every line of a basket.

        Lookup failures surface as TaxCalculationError; the caller decides
        how to degrade.

        Args:
            basket_id: Basket to tax
            jurisdiction: Shipping jurisdiction
            customer_id: Customer whose exemptions apply, if any

        Returns:
            Aggregated result; all zeros for an empty basket
        """
        attributes = {
            ATTR_BASKET_ID: str(basket_id),
            ATTR_TAX_COUNTRY: jurisdiction.country,
        }
        if customer_id is not None:
            attributes[ATTR_CUSTOMER_ID] = str(customer_id)

        with self._tracer.span("checkoutflow.tax.calculate_basket", attributes) as span:
            lines = await self._baskets.list_lines(basket_id)
            if span:
                span.set_attribute(ATTR_LINE_COUNT, len(lines))
            if not lines:
                return TaxCalculationResult()

            subtotal = ZERO
            tax_amount = ZERO
            merged: dict[UUID, TaxBreakdownEntry] = {}
            line_item_taxes: list[LineItemTax] = []
            exempt = True

            for line in lines:
                result = await self.calculate_line_tax(
                    line.product_id,
                    line.quantity,
                    line.unit_price,
                    jurisdiction,
                    customer_id=customer_id,
                    line_item_id=line.id,
                )
                subtotal += result.subtotal
                tax_amount += result.tax_amount
                exempt = exempt and result.exempt
                line_item_taxes.extend(result.line_item_taxes)

                for entry in result.tax_breakdown:
                    existing = merged.get(entry.tax_rate_id)
                    if existing is None:
                        merged[entry.tax_rate_id] = entry
                    else:
                        merged[entry.tax_rate_id] = existing.model_copy(
                            update={
                                "amount": existing.amount + entry.amount,
                                "taxable_amount": existing.taxable_amount + entry.taxable_amount,
                            }
                        )

            subtotal = quantize(subtotal, self._config)
            tax_amount = quantize(tax_amount, self._config)

            logger.debug(
                f"Calculated tax {tax_amount} on {subtotal} for basket {basket_id}",
                extra={
                    "basket_id": str(basket_id),
                    "line_count": len(lines),
                    "rate_count": len(merged),
                },
            )

            return TaxCalculationResult(
                subtotal=subtotal,
                tax_amount=tax_amount,
                total=quantize(subtotal + tax_amount, self._config),
                tax_breakdown=list(merged.values()),
                line_item_taxes=line_item_taxes,
                exempt=exempt,
            )

    def _line_result(
        self,
        subtotal: Decimal,
        breakdown: list[TaxBreakdownEntry],
        exempt: bool,
        product_id: UUID,
        line_item_id: UUID | None,
    ) -> TaxCalculationResult:
        tax_amount = quantize(sum((entry.amount for entry in breakdown), ZERO), self._config)
        line_item_taxes = []
        if line_item_id is not None:
            line_item_taxes.append(
                LineItemTax(
                    line_item_id=line_item_id,
                    product_id=product_id,
                    subtotal=subtotal,
                    tax_amount=tax_amount,
                    tax_breakdown=breakdown,
                )
            )
        return TaxCalculationResult(
            subtotal=subtotal,
            tax_amount=tax_amount,
            total=quantize(subtotal + tax_amount, self._config),
            tax_breakdown=breakdown,
            line_item_taxes=line_item_taxes,
            exempt=exempt,
        )


__all__ = ["TaxCalculationEngine"]
