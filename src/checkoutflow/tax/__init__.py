"""
Tax calculation.

- rules: Matching and ordering of tax rates, shared by every rate store
- engine: TaxCalculationEngine for single lines and whole baskets
"""

from checkoutflow.tax.engine import TaxCalculationEngine
from checkoutflow.tax.rules import (
    category_matches,
    is_effective,
    order_rates,
    rate_applies,
    scope_matches,
    select_applicable_rates,
)

__all__ = [
    "TaxCalculationEngine",
    "category_matches",
    "is_effective",
    "order_rates",
    "rate_applies",
    "scope_matches",
    "select_applicable_rates",
]
