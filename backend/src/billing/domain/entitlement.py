"""
Entitlement Domain Entity

The stored record of a subscription's paid-access status, one per Stripe
subscription ID. Whether an account has paid access is always computed from
these records, never stored.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from backend.src.billing.shared.config import ENTITLED_STATUSES
from backend.utils.timezone import timezone

from .subscription import SubscriptionStatus


@dataclass
class Entitlement:
    """
    Represents a synchronized subscription record.

    Attributes:
        account_id: Owning account; immutable once stored
        external_customer_id: Stripe customer ID
        external_subscription_id: Stripe subscription ID (natural key)
        status: Current subscription status
        plan_id: Stripe price ID of the subscribed line item
        plan_name: Display name resolved from the plan table
        period_start / period_end: Current billing period
        trial_start / trial_end: Trial bounds, None when no trial was granted
        cancel_at_period_end: Access continues until period_end, then lapses
    """
    account_id: str
    external_customer_id: Optional[str]
    external_subscription_id: str
    status: SubscriptionStatus
    plan_id: Optional[str]
    plan_name: str
    period_start: Optional[datetime]
    period_end: Optional[datetime]
    trial_start: Optional[datetime] = None
    trial_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    created_time: Optional[datetime] = None
    updated_time: Optional[datetime] = None

    def grants_access(self, now: Optional[datetime] = None) -> bool:
        """
        Check whether this record grants paid access at ``now``.

        Trialing or active, and either not set to cancel or still inside the
        current period.
        """
        if self.status.value not in ENTITLED_STATUSES:
            return False
        if not self.cancel_at_period_end:
            return True
        if self.period_end is None:
            return False
        now = now or timezone.now()
        return now < timezone.to_aware(self.period_end)

    def is_trialing(self) -> bool:
        return self.status == SubscriptionStatus.TRIALING

    def trial_days_remaining(self, now: Optional[datetime] = None) -> Optional[int]:
        """Whole days left in the trial (rounded up), None when not trialing."""
        if not self.is_trialing() or self.trial_end is None:
            return None
        now = now or timezone.now()
        seconds = (timezone.to_aware(self.trial_end) - now).total_seconds()
        return max(0, math.ceil(seconds / 86400))

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        def iso(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            'account_id': self.account_id,
            'external_customer_id': self.external_customer_id,
            'external_subscription_id': self.external_subscription_id,
            'status': self.status.value,
            'plan_id': self.plan_id,
            'plan_name': self.plan_name,
            'period_start': iso(self.period_start),
            'period_end': iso(self.period_end),
            'trial_start': iso(self.trial_start),
            'trial_end': iso(self.trial_end),
            'cancel_at_period_end': self.cancel_at_period_end,
        }


def has_paid_access(entitlements: Iterable[Entitlement], now: Optional[datetime] = None) -> bool:
    """True if any of the account's records grants access at ``now``."""
    now = now or timezone.now()
    return any(e.grants_access(now) for e in entitlements)
