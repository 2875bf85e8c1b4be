"""
Column value conversion shared by the SQL repositories.

PostgreSQL hands back native UUID, NUMERIC, TIMESTAMPTZ and JSONB values
(JSONB may arrive decoded or as text depending on driver codecs). SQLite
stores all of these as TEXT. Both paths funnel through the helpers here.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from checkoutflow.models.address import Address
from checkoutflow.money import to_decimal
from checkoutflow.serialization import json_dumps, json_loads


def as_uuid(value: Any) -> UUID:
    """Convert a driver UUID or hyphenated string into ``uuid.UUID``."""
    if type(value) is UUID:
        return value
    return UUID(str(value))


def as_optional_uuid(value: Any) -> UUID | None:
    """Like ``as_uuid`` but passes None through."""
    if value is None:
        return None
    return as_uuid(value)


def as_decimal(value: Any) -> Decimal:
    """Convert NUMERIC or TEXT money into Decimal."""
    return to_decimal(value)


def format_datetime(value: datetime | None) -> str | None:
    """
    Format a timestamp for SQLite TEXT storage.

    Values are converted to UTC first so that text comparison and ORDER BY
    follow instant order. Naive values are taken to be UTC already.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC).isoformat()
    return value.astimezone(UTC).isoformat()


def parse_datetime(value: Any) -> datetime | None:
    """
    Parse a stored timestamp into an aware UTC datetime.

    Naive values, as written by SQLite's ``datetime('now')`` default, are
    assumed to be UTC.
    """
    if value is None:
        return None
    if not isinstance(value, datetime):
        value = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value


def load_json(value: Any) -> Any:
    """Decode a JSON column that may already be decoded."""
    if value is None:
        return None
    if isinstance(value, str | bytes):
        return json_loads(value)
    return value


def dump_address(address: Address | None) -> str | None:
    """Serialize an address for a JSON or JSONB column."""
    if address is None:
        return None
    return json_dumps(address.model_dump())


def load_address(value: Any) -> Address | None:
    """Rebuild an address from a JSON or JSONB column."""
    data = load_json(value)
    if data is None:
        return None
    return Address.model_validate(data)


def dump_uuid_list(values: list[UUID] | None) -> str | None:
    """Serialize a UUID list for a SQLite JSON TEXT column."""
    if values is None:
        return None
    return json_dumps([str(v) for v in values])


def load_uuid_list(value: Any) -> list[UUID] | None:
    """Rebuild a UUID list from a PostgreSQL array or a JSON TEXT column."""
    data = load_json(value)
    if data is None:
        return None
    return [as_uuid(v) for v in data]
