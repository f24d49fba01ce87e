"""
Lifecycle Handler

Manages user-initiated subscription lifecycle changes:
- Cancel at period end (access continues until period_end)
- Reactivate (undo a scheduled cancellation)

Stripe is updated first; the returned subscription is then reconciled, so
the stored record reflects Stripe's answer rather than the request.
"""

import logging

from backend.src.billing.domain import Entitlement, snapshot_from_stripe
from backend.src.billing.shared.exceptions import InvalidRequestError, NotFoundError

logger = logging.getLogger(__name__)


class LifecycleHandler:
    """
    Handles subscription lifecycle management.

    Usage:
        lifecycle = LifecycleHandler(gateway, store, reconciler)
        entitlement = await lifecycle.cancel_subscription(account_id, subscription_id)
    """

    def __init__(self, gateway, store, reconciler):
        self.gateway = gateway
        self.store = store
        self.reconciler = reconciler

    async def cancel_subscription(self, account_id: str, subscription_id: str) -> Entitlement:
        """
        Schedule cancellation at the end of the current period.

        Raises:
            NotFoundError: No stored subscription with this ID for the account
            UpstreamError: Stripe call failed
        """
        logger.info(f"[CANCEL] Processing cancellation for {account_id}, sub={subscription_id}")
        return await self._set_cancel_at_period_end(account_id, subscription_id, True)

    async def reactivate_subscription(self, account_id: str, subscription_id: str) -> Entitlement:
        """
        Undo a scheduled cancellation.

        Raises:
            NotFoundError: No stored subscription with this ID for the account
            UpstreamError: Stripe call failed
        """
        logger.info(f"[REACTIVATE] Processing reactivation for {account_id}, sub={subscription_id}")
        return await self._set_cancel_at_period_end(account_id, subscription_id, False)

    async def _set_cancel_at_period_end(
        self,
        account_id: str,
        subscription_id: str,
        cancel: bool,
    ) -> Entitlement:
        if not account_id:
            raise InvalidRequestError("account_id is required", field='account_id')
        if not subscription_id:
            raise InvalidRequestError("subscription_id is required", field='subscription_id')

        stored = await self.store.get_by_subscription_id(subscription_id)
        if stored is None or stored.account_id != account_id:
            logger.warning(f"[LIFECYCLE] Subscription {subscription_id} not found for account {account_id}")
            raise NotFoundError("Subscription not found", resource_id=subscription_id)

        subscription = await self.gateway.update_subscription(subscription_id, cancel_at_period_end=cancel)
        snapshot = snapshot_from_stripe(subscription)

        return await self.reconciler.reconcile(
            stored.account_id,
            snapshot,
            snapshot.customer_id or stored.external_customer_id,
            plan_key=snapshot.metadata.get('plan_key'),
        )
