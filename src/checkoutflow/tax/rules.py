"""
Tax rate matching rules.

Every backend of the tax rate repository funnels candidate rates through
``rate_applies`` and ``order_rates`` so that resolution behaves identically
whatever the storage.

A rate applies to a line when all of the following hold:

- the rate is active and ``now`` falls inside its validity window
- the rate country equals the jurisdiction country
- region: with a region on the address, the rate region is unset or equal;
  without one, only region-less rates match
- postal code: the same rule as region
- category: when the product has a tax category, the rate is unrestricted
  or its restriction list contains that category. A product without a
  category matches every rate.

Applicable rates are ordered by priority, highest first. Equal priorities
are ordered by the string form of the rate id so that results never depend
on storage order.
"""

from collections.abc import Iterable
from datetime import datetime
from uuid import UUID

from checkoutflow.models.address import Jurisdiction
from checkoutflow.models.tax import TaxRate, TaxRateStatus


def scope_matches(rate_value: str | None, address_value: str | None) -> bool:
    """
    Match one optional scope level (region or postal code).

    Example:
        >>> scope_matches(None, "CA")
        True
        >>> scope_matches("CA", None)
        False
        >>> scope_matches(None, None)
        True
    """
    if address_value is None:
        return rate_value is None
    return rate_value is None or rate_value == address_value


def is_effective(rate: TaxRate, now: datetime) -> bool:
    """True when the rate is active and ``now`` lies in its validity window."""
    if rate.status is not TaxRateStatus.ACTIVE:
        return False
    if rate.effective_from is not None and now < rate.effective_from:
        return False
    if rate.effective_until is not None and now >= rate.effective_until:
        return False
    return True


def category_matches(rate: TaxRate, tax_category_id: UUID | None) -> bool:
    """True when the rate's category restriction admits the product's category."""
    if tax_category_id is None or not rate.tax_category_ids:
        return True
    return tax_category_id in rate.tax_category_ids


def rate_applies(
    rate: TaxRate,
    jurisdiction: Jurisdiction,
    tax_category_id: UUID | None,
    now: datetime,
) -> bool:
    """
    Decide whether a rate applies to a line shipped to ``jurisdiction``.

    Args:
        rate: Candidate rate
        jurisdiction: Normalized shipping jurisdiction
        tax_category_id: The product's tax category, if any
        now: Reference time for the validity window

    Returns:
        True if every matching rule holds
    """
    return (
        is_effective(rate, now)
        and rate.country == jurisdiction.country
        and scope_matches(rate.region, jurisdiction.region)
        and scope_matches(rate.postal_code, jurisdiction.postal_code)
        and category_matches(rate, tax_category_id)
    )


def order_rates(rates: Iterable[TaxRate]) -> list[TaxRate]:
    """Order rates by priority descending, then by rate id ascending."""
    return sorted(rates, key=lambda r: (-r.priority, str(r.id)))


def select_applicable_rates(
    candidates: Iterable[TaxRate],
    jurisdiction: Jurisdiction,
    tax_category_id: UUID | None,
    now: datetime,
) -> list[TaxRate]:
    """Filter candidates with ``rate_applies`` and return them in application order."""
    return order_rates(
        rate for rate in candidates if rate_applies(rate, jurisdiction, tax_category_id, now)
    )


__all__ = [
    "category_matches",
    "is_effective",
    "order_rates",
    "rate_applies",
    "scope_matches",
    "select_applicable_rates",
]
