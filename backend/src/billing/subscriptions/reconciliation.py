"""
Reconciliation Engine

Converts an authoritative subscription snapshot into a stored entitlement
record, idempotently. Checkout completion, subscription webhooks and the
manual "verify my session" call all funnel through here, in any order and
possibly at the same time.

The engine is the only component that writes ``status``. It never trusts
caller-supplied status or plan values: both are re-derived from the snapshot
fetched from Stripe. Ordering between paths is last-write-wins; a stale
snapshot delivered after a fresher one overwrites it.
"""

import logging
from dataclasses import replace
from typing import Any, Optional

from backend.src.billing.domain import (
    Entitlement,
    SubscriptionSnapshot,
    SubscriptionStatus,
    account_id_from_metadata,
    snapshot_from_stripe,
    stripe_field,
    stripe_id,
)
from backend.src.billing.shared.config import get_plan_by_price_id, get_plan_name
from backend.src.billing.shared.exceptions import InvalidRequestError
from backend.utils.timezone import timezone

from .store import EntitlementStore

logger = logging.getLogger(__name__)


class ReconciliationEngine:
    """
    Applies subscription snapshots to the entitlement store.

    Usage:
        engine = ReconciliationEngine(store)
        entitlement = await engine.reconcile(account_id, snapshot, customer_id, plan_key)
    """

    def __init__(self, store: EntitlementStore):
        self.store = store

    def build_entitlement(
        self,
        account_id: str,
        snapshot: SubscriptionSnapshot,
        customer_id: Optional[str] = None,
        plan_key: Optional[str] = None,
    ) -> Entitlement:
        """
        Compute the entitlement record a snapshot implies, without writing it.

        The plan comes from the snapshot's price ID when it is a known price;
        ``plan_key`` (from Stripe-side metadata) is only the fallback for
        naming. Unknown plans get the 'Unknown Plan' sentinel.
        """
        plan = get_plan_by_price_id(snapshot.price_id)
        resolved_key = plan.key if plan else plan_key

        return Entitlement(
            account_id=account_id,
            external_customer_id=customer_id or snapshot.customer_id,
            external_subscription_id=snapshot.subscription_id,
            status=snapshot.status,
            plan_id=snapshot.price_id,
            plan_name=get_plan_name(resolved_key),
            period_start=timezone.from_timestamp(snapshot.current_period_start),
            period_end=timezone.from_timestamp(snapshot.current_period_end),
            trial_start=timezone.from_timestamp(snapshot.trial_start),
            trial_end=timezone.from_timestamp(snapshot.trial_end),
            cancel_at_period_end=snapshot.cancel_at_period_end,
        )

    async def reconcile(
        self,
        account_id: str,
        snapshot: SubscriptionSnapshot,
        customer_id: Optional[str] = None,
        plan_key: Optional[str] = None,
    ) -> Entitlement:
        """
        Upsert the entitlement for a subscription snapshot.

        Args:
            account_id: Internal account that owns the subscription
            snapshot: Subscription state fetched from Stripe
            customer_id: Stripe customer ID (defaults to the snapshot's)
            plan_key: Plan key from Stripe-side metadata, naming fallback only

        Returns:
            The entitlement as computed from the snapshot, under the account
            that owns the stored row

        Raises:
            InvalidRequestError: If account_id is missing
            PersistenceError: If the store write fails
        """
        if not account_id:
            raise InvalidRequestError("account_id is required to reconcile", field='account_id')

        entitlement = self.build_entitlement(account_id, snapshot, customer_id, plan_key)

        logger.info(
            f"[RECONCILE] sub={snapshot.subscription_id} account={account_id} "
            f"status={entitlement.status.value} plan={entitlement.plan_id}"
        )

        result = await self.store.upsert(entitlement)
        if result.account_id != entitlement.account_id:
            entitlement = replace(entitlement, account_id=result.account_id)
        return entitlement

    async def mark_canceled(self, subscription_id: str) -> bool:
        """
        Force a subscription to canceled after Stripe deleted it.

        Only the subscription ID is needed. A missing row is a logged skip:
        the record is created by checkout or subscription.created, never here.

        Returns:
            True if a stored record was updated
        """
        updated = await self.store.update_by_subscription_id(
            subscription_id,
            {'status': SubscriptionStatus.CANCELED, 'cancel_at_period_end': False},
        )
        if not updated:
            logger.info(f"[RECONCILE] No stored record for deleted subscription {subscription_id}, skipping")
            return False

        logger.info(f"[RECONCILE] Marked {subscription_id} as canceled")
        return True

    async def mark_past_due(self, subscription_id: str) -> bool:
        """
        Set a subscription to past_due after a failed invoice payment.

        Other fields are left untouched. Canceled is terminal, so a late
        payment failure does not reopen a canceled record.

        Returns:
            True if a stored record was updated
        """
        updated = await self.store.update_by_subscription_id(
            subscription_id,
            {'status': SubscriptionStatus.PAST_DUE},
            unless_status=(SubscriptionStatus.CANCELED,),
        )
        if not updated:
            logger.info(f"[RECONCILE] No open record for subscription {subscription_id}, past_due skipped")
            return False

        logger.info(f"[RECONCILE] Marked {subscription_id} as past_due")
        return True

    async def reconcile_checkout_session(self, session: Any) -> Optional[Entitlement]:
        """
        Reconcile the subscription behind a completed checkout session.

        The session must have been retrieved with ``subscription`` and
        ``customer`` expanded. The account comes from the customer's metadata,
        then ``client_reference_id``, then the session and subscription
        metadata written at checkout.

        Returns:
            The reconciled entitlement, or None when the session has no
            subscription or no resolvable account (both logged)
        """
        session_id = stripe_field(session, 'id')
        subscription = stripe_field(session, 'subscription')
        if not subscription:
            logger.info(f"[RECONCILE] Session {session_id} has no subscription, nothing to reconcile")
            return None
        if isinstance(subscription, str):
            raise InvalidRequestError(
                f"Session {session_id} was retrieved without the subscription expanded",
                field='subscription'
            )

        customer = stripe_field(session, 'customer')
        snapshot = snapshot_from_stripe(subscription)
        session_metadata = stripe_field(session, 'metadata', {})

        account_id = (
            account_id_from_metadata(stripe_field(customer, 'metadata'))
            or stripe_field(session, 'client_reference_id')
            or account_id_from_metadata(session_metadata)
            or account_id_from_metadata(snapshot.metadata)
        )
        if not account_id:
            logger.warning(f"[RECONCILE] No account for session {session_id} (sub={snapshot.subscription_id}), skipping")
            return None

        plan_key = stripe_field(session_metadata, 'plan_key') or snapshot.metadata.get('plan_key')
        return await self.reconcile(account_id, snapshot, stripe_id(customer), plan_key)
