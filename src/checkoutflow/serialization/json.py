"""
JSON helpers for the address and category columns.

Addresses and tax category lists are stored as JSON (JSONB on PostgreSQL,
TEXT on SQLite). ``json_dumps`` accepts the UUID, datetime and Decimal values
found in model dumps; pydantic turns the strings back into typed values when
the row is rebuilt.

Example:
    >>> json_dumps({"postal_code": "95814", "id": uuid4()})
    '{"postal_code": "95814", "id": "5c3e..."}'
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID


class CheckoutJSONEncoder(json.JSONEncoder):
    """
    JSONEncoder for UUID, datetime and Decimal.

    Decimals are written as strings so that money amounts keep their exact
    digits (``Decimal("29.99")`` becomes ``"29.99"``, never ``29.989999...``).
    """

    def default(self, obj: Any) -> Any:
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, Decimal):
            return str(obj)
        return super().default(obj)


def json_dumps(obj: Any) -> str:
    """Serialize ``obj`` with CheckoutJSONEncoder."""
    return json.dumps(obj, cls=CheckoutJSONEncoder)


def json_loads(s: str | bytes) -> Any:
    """
    Parse a JSON column value.

    Strings are returned as strings; no UUID or Decimal conversion happens
    here.
    """
    return json.loads(s)


__all__ = [
    "CheckoutJSONEncoder",
    "json_dumps",
    "json_loads",
]
