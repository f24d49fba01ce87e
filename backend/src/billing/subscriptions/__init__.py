"""
Subscriptions Module

Subscription synchronization for the billing system.

Components:
- SubscriptionService: Main orchestrator
- Handlers: Customer, Checkout, Lifecycle
- ReconciliationEngine: Snapshot -> stored entitlement
- EntitlementStore: Persistence keyed by Stripe subscription ID
- SessionVerifier: Manual checkout verification

Usage:
    from backend.src.billing.subscriptions import build_subscription_service

    service = build_subscription_service(settings, session_factory)
    redirect_url = await service.create_checkout_session(account_id, email, 'pro', 30)
"""

from .model import EntitlementModel
from .store import EntitlementStore, UpsertResult
from .reconciliation import ReconciliationEngine
from .verification import SessionVerifier

from .handlers import (
    CustomerHandler,
    CheckoutHandler,
    LifecycleHandler,
)

from .service import (
    SubscriptionService,
    build_subscription_service,
    build_webhook_service,
)

__all__ = [
    # Main service
    'SubscriptionService',
    'build_subscription_service',
    'build_webhook_service',
    # Core
    'EntitlementModel',
    'EntitlementStore',
    'UpsertResult',
    'ReconciliationEngine',
    'SessionVerifier',
    # Handlers
    'CustomerHandler',
    'CheckoutHandler',
    'LifecycleHandler',
]
