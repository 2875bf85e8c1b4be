"""Serialization helpers for checkoutflow."""

from checkoutflow.serialization.json import CheckoutJSONEncoder, json_dumps, json_loads

__all__ = [
    "CheckoutJSONEncoder",
    "json_dumps",
    "json_loads",
]
