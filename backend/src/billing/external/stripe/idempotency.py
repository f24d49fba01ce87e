"""
Stripe Idempotency Key Generation

Deterministic idempotency keys for Stripe API calls. A retried checkout
request for the same account, plan and trial length within Stripe's
idempotency window returns the original session instead of creating a
second subscription.
"""

import logging

logger = logging.getLogger(__name__)


class StripeIdempotencyManager:
    """
    Generates deterministic idempotency keys for Stripe operations.

    Usage:
        key = stripe_idempotency_manager.generate_checkout_key(account_id, plan_key, trial_days)
        session = await gateway.create_checkout_session(params, idempotency_key=key)
    """

    def generate_key(self, operation: str, *parts) -> str:
        """Join the operation and its parts with ':'."""
        return ":".join([operation, *[str(part) for part in parts]])

    def generate_checkout_key(self, account_id: str, plan_key: str, trial_days: int) -> str:
        """
        Key for subscription checkout.

        trial_days must already be clamped, so inputs that clamp to the same
        value share a key.
        """
        key = self.generate_key('checkout', account_id, plan_key, trial_days)
        logger.debug(f"[IDEMPOTENCY] checkout key {key}")
        return key


stripe_idempotency_manager = StripeIdempotencyManager()


def generate_checkout_idempotency_key(account_id: str, plan_key: str, trial_days: int) -> str:
    return stripe_idempotency_manager.generate_checkout_key(account_id, plan_key, trial_days)
