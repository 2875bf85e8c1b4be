"""
Postal addresses and the tax jurisdiction derived from them.

Addresses are stored exactly as the client submitted them, including blank
required fields. Completeness is checked at the service boundary and again
during session validation, using ``Address.missing_required_fields``.
"""

import re
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

_WHITESPACE = re.compile(r"\s+")


class Jurisdiction(BaseModel):
    """
    The (country, region, postal code) tuple used to match tax rates.

    Values are normalized on construction so that comparisons against rate
    scopes are exact: country and region are upper-cased and stripped, postal
    codes are upper-cased with all whitespace removed, and blank optional
    parts become None.

    Example:
        >>> Jurisdiction(country=" us", region="ca ", postal_code="94 105")
        Jurisdiction(country='US', region='CA', postal_code='94105')
    """

    model_config = ConfigDict(frozen=True)

    country: str
    region: str | None = None
    postal_code: str | None = None

    @field_validator("country", mode="before")
    @classmethod
    def normalize_country_field(cls, value: str | None) -> str:
        return normalize_code(value) or ""

    @field_validator("region", mode="before")
    @classmethod
    def normalize_region_field(cls, value: str | None) -> str | None:
        return normalize_code(value)

    @field_validator("postal_code", mode="before")
    @classmethod
    def normalize_postal_code_field(cls, value: str | None) -> str | None:
        return normalize_postal_code(value)


def normalize_code(value: str | None) -> str | None:
    """Upper-case and strip a country or region code; blanks become None."""
    if value is None:
        return None
    value = value.strip().upper()
    return value or None


def normalize_postal_code(value: str | None) -> str | None:
    """Upper-case a postal code and drop all whitespace; blanks become None."""
    if value is None:
        return None
    value = _WHITESPACE.sub("", value).upper()
    return value or None


class Address(BaseModel):
    """
    Structured postal address attached to a checkout session or order.

    Attributes:
        first_name: Recipient first name (required)
        last_name: Recipient last name (required)
        company: Company name
        address_line1: Street address (required)
        address_line2: Apartment, suite, etc.
        city: City (required)
        region: State, province or county
        postal_code: Postal or ZIP code (required)
        country: ISO country code (required)
        phone: Contact phone number
    """

    model_config = ConfigDict(frozen=True)

    REQUIRED_FIELDS: ClassVar[tuple[str, ...]] = (
        "first_name",
        "last_name",
        "address_line1",
        "city",
        "postal_code",
        "country",
    )

    first_name: str = Field(default="")
    last_name: str = Field(default="")
    company: str | None = None
    address_line1: str = Field(default="")
    address_line2: str | None = None
    city: str = Field(default="")
    region: str | None = None
    postal_code: str = Field(default="")
    country: str = Field(default="")
    phone: str | None = None

    def missing_required_fields(self) -> list[str]:
        """
        List the required fields that are blank.

        Returns:
            Field names in declaration order; empty when the address is complete

        Example:
            >>> Address(first_name="Ada", country="GB").missing_required_fields()
            ['last_name', 'address_line1', 'city', 'postal_code']
        """
        return [name for name in self.REQUIRED_FIELDS if not getattr(self, name).strip()]

    @property
    def is_complete(self) -> bool:
        """True when no required field is blank."""
        return not self.missing_required_fields()

    def jurisdiction(self) -> Jurisdiction:
        """Derive the normalized tax jurisdiction for this address."""
        return Jurisdiction(
            country=self.country,
            region=self.region,
            postal_code=self.postal_code,
        )


__all__ = [
    "Address",
    "Jurisdiction",
    "normalize_code",
    "normalize_postal_code",
]
