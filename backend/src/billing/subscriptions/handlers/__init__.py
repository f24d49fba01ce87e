"""
Subscription Handlers

Handler modules for subscription management operations.
"""

from .customer import CustomerHandler
from .checkout import CheckoutHandler
from .lifecycle import LifecycleHandler

__all__ = [
    'CustomerHandler',
    'CheckoutHandler',
    'LifecycleHandler',
]
