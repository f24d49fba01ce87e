"""
Stripe Webhook Handlers

Contains handlers for different Stripe webhook event types:
- CheckoutHandler: Checkout session events
- SubscriptionHandler: Subscription lifecycle events
- InvoiceHandler: Invoice payment events
"""

from .checkout import CheckoutHandler
from .subscription import SubscriptionHandler
from .invoice import InvoiceHandler, invoice_subscription_id

__all__ = [
    'CheckoutHandler',
    'SubscriptionHandler',
    'InvoiceHandler',
    'invoice_subscription_id',
]
