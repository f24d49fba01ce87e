"""
Billing Module

Subscription lifecycle synchronization with Stripe.

Submodules:
- shared: Configuration, plan table, exceptions
- domain: Core entities (SubscriptionSnapshot, Entitlement)
- external: Payment provider integrations (Stripe gateway, webhooks)
- subscriptions: Entitlement store, reconciliation, checkout, lifecycle
- endpoints: API routes

Usage:
    from backend.src.billing import build_subscription_service, build_webhook_service

    service = build_subscription_service(settings, session_factory)
    webhooks = build_webhook_service(settings, service)
"""

# Shared configuration and utilities
from .shared import (
    Plan,
    PLANS,
    get_plan_by_key,
    get_plan_by_price_id,
    get_plan_name,
    clamp_trial_days,
    # Exceptions
    BillingError,
    InvalidRequestError,
    NotFoundError,
    UpstreamError,
    PersistenceError,
    WebhookError,
    BadSignatureError,
    AccountNotResolvedError,
)

# Domain entities
from .domain import (
    SubscriptionStatus,
    SubscriptionSnapshot,
    snapshot_from_stripe,
    Entitlement,
    has_paid_access,
)

# External integrations (Stripe)
from .external import (
    StripeGateway,
    generate_checkout_idempotency_key,
    WebhookService,
)

# Subscriptions module
from .subscriptions import (
    SubscriptionService,
    build_subscription_service,
    build_webhook_service,
    EntitlementStore,
    ReconciliationEngine,
    SessionVerifier,
    CustomerHandler,
    CheckoutHandler,
    LifecycleHandler,
)

__all__ = [
    # Configuration
    'Plan',
    'PLANS',
    'get_plan_by_key',
    'get_plan_by_price_id',
    'get_plan_name',
    'clamp_trial_days',
    # Exceptions
    'BillingError',
    'InvalidRequestError',
    'NotFoundError',
    'UpstreamError',
    'PersistenceError',
    'WebhookError',
    'BadSignatureError',
    'AccountNotResolvedError',
    # Domain
    'SubscriptionStatus',
    'SubscriptionSnapshot',
    'snapshot_from_stripe',
    'Entitlement',
    'has_paid_access',
    # Stripe
    'StripeGateway',
    'generate_checkout_idempotency_key',
    'WebhookService',
    # Subscriptions
    'SubscriptionService',
    'build_subscription_service',
    'build_webhook_service',
    'EntitlementStore',
    'ReconciliationEngine',
    'SessionVerifier',
    'CustomerHandler',
    'CheckoutHandler',
    'LifecycleHandler',
]
