"""
Invoice Webhook Handler

Handles invoice.payment_failed. Only the status of the record moves; period
and plan fields wait for the next subscription.updated event.
"""

import logging
from typing import Any, Optional

from backend.src.billing.domain import stripe_field, stripe_id

logger = logging.getLogger(__name__)


def invoice_subscription_id(invoice: Any) -> Optional[str]:
    """
    Subscription an invoice bills.

    Newer API versions move it from ``invoice.subscription`` to
    ``invoice.parent.subscription_details.subscription``.
    """
    subscription_id = stripe_id(stripe_field(invoice, 'subscription'))
    if subscription_id:
        return subscription_id

    details = stripe_field(stripe_field(invoice, 'parent'), 'subscription_details')
    return stripe_id(stripe_field(details, 'subscription'))


class InvoiceHandler:
    """Handler for Stripe invoice webhook events."""

    def __init__(self, reconciler):
        self.reconciler = reconciler

    async def handle_invoice_failed(self, event) -> None:
        """Handle invoice.payment_failed: mark the subscription past_due."""
        invoice = stripe_field(stripe_field(event, 'data'), 'object')
        subscription_id = invoice_subscription_id(invoice)

        logger.info(f"[INVOICE] Payment failed: invoice={stripe_field(invoice, 'id')}, sub={subscription_id}")

        if not subscription_id:
            logger.info("[INVOICE] Invoice is not tied to a subscription, skipping")
            return

        await self.reconciler.mark_past_due(subscription_id)
