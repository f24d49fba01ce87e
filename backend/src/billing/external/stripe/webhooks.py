"""
Stripe Webhook Service

Central dispatcher for Stripe webhook events.
Handles signature verification and routing to handlers.

Deliveries are not deduplicated: every handler ends in an idempotent
upsert or a status update keyed by subscription ID, so a redelivered event
converges to the same row.
"""

import logging
from typing import Any, Dict, Optional

from backend.src.billing.domain import stripe_field
from backend.src.billing.shared.exceptions import (
    AccountNotResolvedError,
    InvalidRequestError,
    NotFoundError,
    UpstreamError,
)

from .handlers import CheckoutHandler, InvoiceHandler, SubscriptionHandler

logger = logging.getLogger(__name__)


class WebhookService:
    """
    Central service for processing Stripe webhooks.

    Responsibilities:
    - Verify webhook signatures over the raw request body
    - Route events to appropriate handlers
    - Decide which failures are acknowledged and which make Stripe redeliver

    Usage:
        webhook_service = WebhookService(gateway, reconciler, settings.STRIPE_WEBHOOK_SECRET)
        result = await webhook_service.process_webhook(payload, sig_header)
    """

    def __init__(self, gateway, reconciler, webhook_secret: str, tolerance: int = 300):
        self.gateway = gateway
        self.webhook_secret = webhook_secret
        self.tolerance = tolerance

        self.checkout_handler = CheckoutHandler(gateway, reconciler)
        self.subscription_handler = SubscriptionHandler(gateway, reconciler)
        self.invoice_handler = InvoiceHandler(reconciler)

    async def process_webhook(self, payload: bytes, sig_header: Optional[str]) -> Dict[str, Any]:
        """
        Process an incoming Stripe webhook.

        Args:
            payload: Raw request body, exactly as received
            sig_header: Stripe-Signature header value

        Returns:
            {'received': True} once the event is handled or deliberately skipped

        Raises:
            UpstreamError: Webhook secret not configured, or Stripe failed
            BadSignatureError: Signature, timestamp or payload invalid
            PersistenceError: The entitlement store could not be written
        """
        if not self.webhook_secret:
            logger.error("[WEBHOOK] STRIPE_WEBHOOK_SECRET not configured")
            raise UpstreamError("Webhook secret not configured", operation='construct_event')

        event = self.gateway.construct_event(payload, sig_header, self.webhook_secret, self.tolerance)
        event_id = stripe_field(event, 'id')
        event_type = stripe_field(event, 'type')

        logger.info(f"[WEBHOOK] Processing event type: {event_type} (ID: {event_id})")

        try:
            await self._route_event(event_type, event)
        except (AccountNotResolvedError, NotFoundError, InvalidRequestError) as e:
            # Redelivery cannot fix these
            logger.warning(f"[WEBHOOK] Acknowledging {event_type} ({event_id}) without changes: {e.message}")
        except Exception as e:
            logger.error(f"[WEBHOOK] Error processing {event_type} ({event_id}): {e}", exc_info=True)
            raise

        return {'received': True}

    async def _route_event(self, event_type: str, event) -> None:
        """
        Route event to the appropriate handler.

        Args:
            event_type: Stripe event type
            event: Verified Stripe event object
        """
        if event_type == 'checkout.session.completed':
            await self.checkout_handler.handle_checkout_completed(event)

        elif event_type in ('customer.subscription.created', 'customer.subscription.updated'):
            await self.subscription_handler.handle_subscription_upserted(event)

        elif event_type == 'customer.subscription.deleted':
            await self.subscription_handler.handle_subscription_deleted(event)

        elif event_type == 'customer.subscription.trial_will_end':
            await self.subscription_handler.handle_trial_will_end(event)

        elif event_type == 'invoice.payment_failed':
            await self.invoice_handler.handle_invoice_failed(event)

        else:
            logger.info(f"[WEBHOOK] Unhandled event type: {event_type}")
