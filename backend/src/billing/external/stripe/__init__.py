"""
Stripe Integration Module

Provides the Stripe integration for billing:
- Async API gateway with error translation
- Idempotency key generation
- Webhook processing and event handlers

Usage:
    from backend.src.billing.external.stripe import (
        StripeGateway,
        WebhookService,
        generate_checkout_idempotency_key,
    )

    gateway = StripeGateway(api_key=settings.STRIPE_SECRET_KEY)
    session = await gateway.create_checkout_session(
        params,
        idempotency_key=generate_checkout_idempotency_key(account_id, 'pro', 30),
    )
"""

from .client import StripeGateway

from .idempotency import (
    StripeIdempotencyManager,
    stripe_idempotency_manager,
    generate_checkout_idempotency_key,
)

from .webhooks import WebhookService

from .handlers import (
    CheckoutHandler,
    SubscriptionHandler,
    InvoiceHandler,
)

__all__ = [
    # API Client
    'StripeGateway',
    # Idempotency
    'StripeIdempotencyManager',
    'stripe_idempotency_manager',
    'generate_checkout_idempotency_key',
    # Webhook Service
    'WebhookService',
    # Handlers
    'CheckoutHandler',
    'SubscriptionHandler',
    'InvoiceHandler',
]
