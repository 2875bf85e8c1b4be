"""
Checkout session workflow.

- manager: CheckoutSessionManager, the session lifecycle and pricing
- service: CheckoutService, the operation surface for transports
"""

from checkoutflow.checkout.manager import CheckoutSessionManager
from checkoutflow.checkout.service import CheckoutService

__all__ = [
    "CheckoutService",
    "CheckoutSessionManager",
]
