"""
Subscription Service

Main orchestrator for all subscription operations.
Provides a unified interface for:
- Checkout session creation
- Checkout session verification
- Subscription lifecycle (cancel, reactivate)
- Entitlement queries

Based on the handler split: each operation is delegated to a specialized
handler, all sharing one gateway, store and reconciliation engine.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.src.billing.domain import has_paid_access
from backend.src.billing.external.stripe import StripeGateway, WebhookService
from backend.utils.timezone import timezone

from .handlers import CheckoutHandler, CustomerHandler, LifecycleHandler
from .reconciliation import ReconciliationEngine
from .store import EntitlementStore
from .verification import SessionVerifier

logger = logging.getLogger(__name__)


class SubscriptionService:
    """
    Unified subscription management service.

    Acts as the main entry point for all subscription-related operations.
    Delegates to specialized handlers for specific tasks.

    Usage:
        service = build_subscription_service(settings, session_factory)

        redirect_url = await service.create_checkout_session(
            account_id=user_id,
            account_email=email,
            plan_key='pro',
            trial_days=30,
        )
        summary = await service.get_entitlement_summary(user_id)
    """

    def __init__(
        self,
        gateway,
        store: EntitlementStore,
        success_url: str,
        cancel_url: str,
    ):
        self.gateway = gateway
        self.store = store
        self.reconciler = ReconciliationEngine(store)
        self.customers = CustomerHandler(gateway)
        self.checkout = CheckoutHandler(gateway, self.customers, success_url, cancel_url)
        self.lifecycle = LifecycleHandler(gateway, store, self.reconciler)
        self.verifier = SessionVerifier(gateway, self.reconciler)

    # =========================================================================
    # Checkout
    # =========================================================================

    async def create_checkout_session(
        self,
        account_id: str,
        account_email: str,
        plan_key: str,
        trial_days: Any = None,
    ) -> str:
        """
        Create Stripe checkout session for subscription.

        Returns:
            Hosted checkout URL
        """
        return await self.checkout.create_checkout_session(account_id, account_email, plan_key, trial_days)

    async def verify_checkout_session(self, session_id: str) -> Dict[str, Any]:
        """Verify a returned checkout session and reconcile it if settled."""
        return await self.verifier.verify_session(session_id)

    # =========================================================================
    # Subscription Lifecycle
    # =========================================================================

    async def cancel_subscription(self, account_id: str, subscription_id: str) -> Dict:
        """
        Cancel subscription at period end.

        User keeps access until end of billing period.

        Returns:
            The reconciled record as a dict
        """
        entitlement = await self.lifecycle.cancel_subscription(account_id, subscription_id)
        return entitlement.to_dict()

    async def reactivate_subscription(self, account_id: str, subscription_id: str) -> Dict:
        """Undo a scheduled cancellation."""
        entitlement = await self.lifecycle.reactivate_subscription(account_id, subscription_id)
        return entitlement.to_dict()

    # =========================================================================
    # Entitlement Queries
    # =========================================================================

    async def get_entitlement_summary(self, account_id: str, now: Optional[datetime] = None) -> Dict:
        """
        Compute the account's paid-access state from its stored records.

        The reported subscription is the first record granting access, else
        the most recent one.

        Returns:
            Dict with account_id, has_paid_access, is_trialing,
            trial_days_remaining and subscription (or None)
        """
        now = now or timezone.now()
        entitlements = await self.store.list_for_account(account_id)

        current = next((e for e in entitlements if e.grants_access(now)), None)
        if current is None and entitlements:
            current = entitlements[0]

        return {
            'account_id': account_id,
            'has_paid_access': has_paid_access(entitlements, now),
            'is_trialing': bool(current and current.is_trialing()),
            'trial_days_remaining': current.trial_days_remaining(now) if current else None,
            'subscription': current.to_dict() if current else None,
        }


def build_subscription_service(
    settings,
    session_factory: async_sessionmaker[AsyncSession],
    gateway=None,
) -> SubscriptionService:
    """Wire the subscription service from settings and a session factory."""
    gateway = gateway or StripeGateway(settings.STRIPE_SECRET_KEY, settings.STRIPE_API_VERSION)
    return SubscriptionService(
        gateway,
        EntitlementStore(session_factory),
        success_url=settings.checkout_success_url,
        cancel_url=settings.checkout_cancel_url,
    )


def build_webhook_service(settings, service: SubscriptionService) -> WebhookService:
    """Webhook dispatcher sharing the service's gateway and reconciliation engine."""
    return WebhookService(
        service.gateway,
        service.reconciler,
        settings.STRIPE_WEBHOOK_SECRET,
        tolerance=settings.STRIPE_WEBHOOK_TOLERANCE,
    )
