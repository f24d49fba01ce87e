"""
External Integrations Module

Integration with external payment providers:
- Stripe (sole payment provider)

Usage:
    from backend.src.billing.external import StripeGateway, WebhookService
"""

from .stripe import (
    StripeGateway,
    StripeIdempotencyManager,
    stripe_idempotency_manager,
    generate_checkout_idempotency_key,
    WebhookService,
)

__all__ = [
    'StripeGateway',
    'StripeIdempotencyManager',
    'stripe_idempotency_manager',
    'generate_checkout_idempotency_key',
    'WebhookService',
]
