"""
Subscription Webhook Handler

Handles subscription lifecycle webhook events:
- customer.subscription.created / updated
- customer.subscription.deleted
- customer.subscription.trial_will_end
"""

import logging
from typing import Optional

from backend.src.billing.domain import (
    SubscriptionSnapshot,
    account_id_from_metadata,
    snapshot_from_stripe,
    stripe_field,
)
from backend.src.billing.shared.exceptions import AccountNotResolvedError, NotFoundError

logger = logging.getLogger(__name__)


class SubscriptionHandler:
    """
    Handler for Stripe subscription webhook events.

    Created and updated events carry the full subscription object, which is
    reconciled as-is. Deleted events only need the ID.
    """

    def __init__(self, gateway, reconciler):
        self.gateway = gateway
        self.reconciler = reconciler

    async def handle_subscription_upserted(self, event) -> None:
        """
        Handle customer.subscription.created and customer.subscription.updated.

        Raises:
            AccountNotResolvedError: Neither the customer nor the subscription
                metadata names an account
        """
        subscription = stripe_field(stripe_field(event, 'data'), 'object')
        snapshot = snapshot_from_stripe(subscription)

        logger.info(
            f"[WEBHOOK] Subscription {snapshot.subscription_id}: "
            f"status={snapshot.status.value}, customer={snapshot.customer_id}"
        )

        account_id = await self._resolve_account_id(snapshot)
        if not account_id:
            raise AccountNotResolvedError(
                f"No account_id for subscription {snapshot.subscription_id}",
                object_id=snapshot.subscription_id
            )

        await self.reconciler.reconcile(
            account_id,
            snapshot,
            snapshot.customer_id,
            plan_key=snapshot.metadata.get('plan_key'),
        )

    async def handle_subscription_deleted(self, event) -> None:
        """Handle customer.subscription.deleted: mark the record canceled."""
        subscription = stripe_field(stripe_field(event, 'data'), 'object')
        subscription_id = stripe_field(subscription, 'id')

        logger.info(f"[WEBHOOK] Subscription deleted: {subscription_id}")
        await self.reconciler.mark_canceled(subscription_id)

    async def handle_trial_will_end(self, event) -> None:
        """Handle customer.subscription.trial_will_end (logged only)."""
        subscription = stripe_field(stripe_field(event, 'data'), 'object')
        logger.info(
            f"[WEBHOOK] Trial ending for subscription {stripe_field(subscription, 'id')} "
            f"at {stripe_field(subscription, 'trial_end')}"
        )

    async def _resolve_account_id(self, snapshot: SubscriptionSnapshot) -> Optional[str]:
        """Account from the customer's metadata, falling back to the subscription's."""
        if snapshot.customer_id:
            try:
                customer = await self.gateway.retrieve_customer(snapshot.customer_id)
            except NotFoundError:
                logger.warning(f"[WEBHOOK] Customer {snapshot.customer_id} not found")
            else:
                account_id = account_id_from_metadata(stripe_field(customer, 'metadata'))
                if account_id:
                    return account_id

        return account_id_from_metadata(snapshot.metadata)
