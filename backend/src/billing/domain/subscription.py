"""
Subscription Snapshot

Explicit internal view of a Stripe subscription, populated by
``snapshot_from_stripe`` from the gateway's response shape. Nothing outside
this module reads raw Stripe subscription objects, so upstream schema drift
is absorbed here.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from backend.src.billing.shared.config import STATUS_ALIASES
from backend.src.billing.shared.exceptions import InvalidRequestError

logger = logging.getLogger(__name__)


class SubscriptionStatus(str, Enum):
    """Stored subscription statuses; Stripe's own vocabulary."""
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    UNPAID = "unpaid"
    INCOMPLETE = "incomplete"

    @classmethod
    def parse(cls, value: Any) -> 'SubscriptionStatus':
        """
        Normalize a Stripe status string.

        Statuses outside the stored vocabulary go through STATUS_ALIASES;
        anything still unknown is stored as incomplete.
        """
        if isinstance(value, SubscriptionStatus):
            return value
        raw = str(value or '').strip().lower()
        raw = STATUS_ALIASES.get(raw, raw)
        try:
            return cls(raw)
        except ValueError:
            logger.warning(f"[SNAPSHOT] Unknown subscription status {value!r}, storing as incomplete")
            return cls.INCOMPLETE


def stripe_field(obj: Any, key: str, default: Any = None) -> Any:
    """Read a field from a Stripe object, a plain dict, or None."""
    if obj is None:
        return default
    if isinstance(obj, Mapping):
        value = obj.get(key, default)
    elif hasattr(obj, 'keys') and hasattr(obj, '__getitem__'):
        # StripeObject, which shadows names like "items" with methods
        value = obj[key] if key in obj.keys() else default
    else:
        value = getattr(obj, key, default)
    return default if value is None else value


def stripe_id(value: Any) -> Optional[str]:
    """ID of a field that is either an expanded object or a bare ID string."""
    if value is None:
        return None
    if isinstance(value, str):
        return value or None
    return stripe_field(value, 'id')


def _first_item(subscription: Any) -> Any:
    items = stripe_field(stripe_field(subscription, 'items'), 'data', [])
    return items[0] if items else None


def _as_dict(value: Any) -> Dict[str, Any]:
    """Plain dict from a Stripe object, a mapping, or None."""
    if value is None:
        return {}
    if isinstance(value, Mapping):
        return dict(value)
    if hasattr(value, 'to_dict'):
        # StripeObject is no longer a dict subclass in recent stripe-python
        return value.to_dict()
    return {key: value[key] for key in value.keys()}


def _as_int(value: Any) -> Optional[int]:
    if value is None or value == '':
        return None
    return int(value)


@dataclass(frozen=True)
class SubscriptionSnapshot:
    """
    Authoritative subscription state fetched from Stripe.

    Attributes:
        subscription_id: Stripe subscription ID (sub_xxx)
        customer_id: Stripe customer ID (cus_xxx)
        status: Normalized status
        price_id: Price of the first line item
        current_period_start / current_period_end: Billing period, epoch seconds
        trial_start / trial_end: Trial bounds, epoch seconds or None
        cancel_at_period_end: Access lapses at period end
        metadata: Subscription metadata as set at checkout
    """
    subscription_id: str
    customer_id: Optional[str]
    status: SubscriptionStatus
    price_id: Optional[str]
    current_period_start: Optional[int]
    current_period_end: Optional[int]
    trial_start: Optional[int] = None
    trial_end: Optional[int] = None
    cancel_at_period_end: bool = False
    metadata: Dict[str, str] = field(default_factory=dict)


def snapshot_from_stripe(subscription: Any) -> SubscriptionSnapshot:
    """
    Map a Stripe subscription object to a SubscriptionSnapshot.

    Reads ``id``, ``customer``, ``status``, ``items.data[0].price.id``,
    ``current_period_start/end``, ``trial_start/end``, ``cancel_at_period_end``
    and ``metadata``. Newer API versions carry the period bounds on the
    subscription item instead of the subscription; both are accepted.

    Raises:
        InvalidRequestError: If the object has no subscription ID
    """
    subscription_id = stripe_id(subscription)
    if not subscription_id:
        raise InvalidRequestError("Subscription object has no id", field='subscription')

    item = _first_item(subscription)
    price_id = stripe_id(stripe_field(item, 'price'))

    period_start = stripe_field(subscription, 'current_period_start', stripe_field(item, 'current_period_start'))
    period_end = stripe_field(subscription, 'current_period_end', stripe_field(item, 'current_period_end'))

    metadata = _as_dict(stripe_field(subscription, 'metadata'))

    return SubscriptionSnapshot(
        subscription_id=subscription_id,
        customer_id=stripe_id(stripe_field(subscription, 'customer')),
        status=SubscriptionStatus.parse(stripe_field(subscription, 'status')),
        price_id=price_id,
        current_period_start=_as_int(period_start),
        current_period_end=_as_int(period_end),
        trial_start=_as_int(stripe_field(subscription, 'trial_start')),
        trial_end=_as_int(stripe_field(subscription, 'trial_end')),
        cancel_at_period_end=bool(stripe_field(subscription, 'cancel_at_period_end', False)),
        metadata={str(k): str(v) for k, v in metadata.items()},
    )


def account_id_from_metadata(metadata: Any) -> Optional[str]:
    """
    Internal account ID stored in Stripe metadata.

    Customers created before the rename carry ``user_id`` instead of
    ``account_id``; both are accepted.
    """
    return stripe_field(metadata, 'account_id') or stripe_field(metadata, 'user_id') or None
