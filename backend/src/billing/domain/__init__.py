"""Domain entities for billing module."""

from .subscription import (
    SubscriptionStatus,
    SubscriptionSnapshot,
    snapshot_from_stripe,
    stripe_field,
    stripe_id,
    account_id_from_metadata,
)
from .entitlement import Entitlement, has_paid_access

__all__ = [
    'SubscriptionStatus',
    'SubscriptionSnapshot',
    'snapshot_from_stripe',
    'stripe_field',
    'stripe_id',
    'account_id_from_metadata',
    'Entitlement',
    'has_paid_access',
]
