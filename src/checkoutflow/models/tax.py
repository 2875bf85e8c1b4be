"""
Tax rates, customer exemptions and tax calculation results.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from checkoutflow.models.address import normalize_code, normalize_postal_code


class TaxRateStatus(str, Enum):
    """Whether a tax rate takes part in resolution."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class TaxExemptionStatus(str, Enum):
    """Review status of a customer tax exemption."""

    PENDING = "pending"
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"
    REJECTED = "rejected"


class JurisdictionLevel(str, Enum):
    """The most specific scope a tax rate is pinned to."""

    COUNTRY = "country"
    REGION = "region"
    POSTAL_CODE = "postal_code"


class TaxRate(BaseModel):
    """
    A percentage tax scoped to a jurisdiction and, optionally, product categories.

    Attributes:
        id: Rate identifier
        name: Display name, e.g. "State Sales Tax"
        rate: Fraction of the taxable amount (0.08 is 8%)
        country: Country code the rate applies in
        region: Region code, or None for every region of the country
        postal_code: Postal code, or None for every postal code
        tax_category_ids: Product tax categories the rate is restricted to,
            or None for no restriction
        priority: Higher priorities are applied first
        status: Only ACTIVE rates are resolved
        effective_from: Start of the validity window (inclusive)
        effective_until: End of the validity window (exclusive)
    """

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: UUID
    name: str
    rate: Decimal = Field(..., ge=0)
    country: str
    region: str | None = None
    postal_code: str | None = None
    tax_category_ids: list[UUID] | None = None
    priority: int = 0
    status: TaxRateStatus = TaxRateStatus.ACTIVE
    effective_from: datetime | None = None
    effective_until: datetime | None = None

    @field_validator("country", "region", mode="before")
    @classmethod
    def normalize_scope_code(cls, value: str | None) -> str | None:
        return normalize_code(value)

    @field_validator("postal_code", mode="before")
    @classmethod
    def normalize_scope_postal_code(cls, value: str | None) -> str | None:
        return normalize_postal_code(value)

    @property
    def jurisdiction_level(self) -> JurisdictionLevel:
        """The narrowest scope this rate is pinned to."""
        if self.postal_code is not None:
            return JurisdictionLevel.POSTAL_CODE
        if self.region is not None:
            return JurisdictionLevel.REGION
        return JurisdictionLevel.COUNTRY

    @property
    def jurisdiction_name(self) -> str:
        """The scope value matching ``jurisdiction_level``."""
        return self.postal_code or self.region or self.country


class TaxExemption(BaseModel):
    """
    A customer-scoped waiver of all tax.

    Attributes:
        id: Exemption identifier
        customer_id: The exempt customer
        status: Review status
        exemption_number: Certificate or registration number
        reason: Free-form justification
        expires_at: End of the exemption, or None for open-ended
    """

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: UUID
    customer_id: UUID
    status: TaxExemptionStatus = TaxExemptionStatus.PENDING
    exemption_number: str | None = None
    reason: str | None = None
    expires_at: datetime | None = None

    def is_active(self, now: datetime) -> bool:
        """True when the status is ACTIVE and the exemption has not expired."""
        if self.status is not TaxExemptionStatus.ACTIVE:
            return False
        return self.expires_at is None or self.expires_at > now


class TaxBreakdownEntry(BaseModel):
    """
    One rate's contribution to a tax result.

    In a basket result, entries for the same rate across lines are merged,
    so ``amount`` and ``taxable_amount`` are sums.
    """

    model_config = ConfigDict(frozen=True)

    tax_rate_id: UUID
    name: str
    rate: Decimal
    amount: Decimal
    taxable_amount: Decimal
    jurisdiction_level: JurisdictionLevel = JurisdictionLevel.COUNTRY
    jurisdiction_name: str = ""


class LineItemTax(BaseModel):
    """Tax computed for a single basket line, kept for receipts and invoices."""

    model_config = ConfigDict(frozen=True)

    line_item_id: UUID
    product_id: UUID
    subtotal: Decimal
    tax_amount: Decimal
    tax_breakdown: list[TaxBreakdownEntry] = Field(default_factory=list)


class TaxCalculationResult(BaseModel):
    """
    Result of a line or basket tax calculation.

    Attributes:
        subtotal: Taxable amount before tax
        tax_amount: Sum of every breakdown entry
        total: subtotal + tax_amount
        tax_breakdown: Per-rate contributions, highest priority first
        line_item_taxes: Per-line results (basket calculations only)
        exempt: True when a customer exemption zeroed the tax
    """

    model_config = ConfigDict(frozen=True)

    subtotal: Decimal = Field(default=Decimal("0.00"))
    tax_amount: Decimal = Field(default=Decimal("0.00"))
    total: Decimal = Field(default=Decimal("0.00"))
    tax_breakdown: list[TaxBreakdownEntry] = Field(default_factory=list)
    line_item_taxes: list[LineItemTax] = Field(default_factory=list)
    exempt: bool = False


__all__ = [
    "JurisdictionLevel",
    "LineItemTax",
    "TaxBreakdownEntry",
    "TaxCalculationResult",
    "TaxExemption",
    "TaxExemptionStatus",
    "TaxRate",
    "TaxRateStatus",
]
