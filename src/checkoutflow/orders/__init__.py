"""
Order creation from checkout sessions.
"""

from checkoutflow.orders.coordinator import OrderCommitCoordinator

__all__ = ["OrderCommitCoordinator"]
