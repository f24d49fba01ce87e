"""
Billing Configuration

This module defines subscription plans, trial bounds and status groups.

Usage:
    from backend.src.billing.shared.config import PLANS, get_plan_by_key

    plan = get_plan_by_key('pro')
    print(plan.display_name)  # 'Pro Plan'
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from backend.core.conf import settings


# =============================================================================
# TRIAL CONFIGURATION
# =============================================================================
MIN_TRIAL_DAYS: int = 0
MAX_TRIAL_DAYS: int = 30
DEFAULT_TRIAL_DAYS: int = 30


# =============================================================================
# SUBSCRIPTION STATUS GROUPS
# =============================================================================
# Statuses that grant paid access (subject to cancel_at_period_end)
ENTITLED_STATUSES: frozenset = frozenset({'trialing', 'active'})

# Stripe statuses outside the stored vocabulary and what they are stored as
STATUS_ALIASES: Dict[str, str] = {
    'incomplete_expired': 'canceled',
    'paused': 'past_due',
}

UNKNOWN_PLAN_NAME: str = "Unknown Plan"


# =============================================================================
# PLAN DEFINITION
# =============================================================================
@dataclass
class Plan:
    """
    Subscription plan configuration.

    Attributes:
        key: Internal plan identifier sent by the client (e.g., 'pro')
        display_name: Human-readable name stored on the entitlement
        price_id: Stripe price ID used for new checkouts
        legacy_price_ids: Older Stripe prices that still map to this plan
    """
    key: str
    display_name: str
    price_id: Optional[str] = None
    legacy_price_ids: List[str] = field(default_factory=list)

    @property
    def price_ids(self) -> List[str]:
        ids = [self.price_id] if self.price_id else []
        return ids + [p for p in self.legacy_price_ids if p not in ids]


PLANS: Dict[str, Plan] = {
    'basic': Plan(
        key='basic',
        display_name='Basic Plan',
        price_id=settings.STRIPE_PRICE_IDS.get('basic'),
        legacy_price_ids=['price_basic_monthly'],
    ),
    'pro': Plan(
        key='pro',
        display_name='Pro Plan',
        price_id=settings.STRIPE_PRICE_IDS.get('pro'),
        legacy_price_ids=['price_premium_monthly'],
    ),
    'enterprise': Plan(
        key='enterprise',
        display_name='Enterprise Plan',
        price_id=settings.STRIPE_PRICE_IDS.get('enterprise'),
        legacy_price_ids=['price_enterprise_monthly'],
    ),
}


def get_plan_by_key(plan_key: Optional[str]) -> Optional[Plan]:
    """Get a plan by its key; None when unknown."""
    if not plan_key:
        return None
    return PLANS.get(plan_key)


def get_plan_by_price_id(price_id: Optional[str]) -> Optional[Plan]:
    """Get the plan a Stripe price ID belongs to; None when unknown."""
    if not price_id:
        return None
    for plan in PLANS.values():
        if price_id in plan.price_ids:
            return plan
    return None


def get_plan_name(plan_key: Optional[str]) -> str:
    """Display name for a plan key, or the 'Unknown Plan' sentinel."""
    plan = get_plan_by_key(plan_key)
    return plan.display_name if plan else UNKNOWN_PLAN_NAME


def get_checkout_price_id(plan_key: Optional[str]) -> Optional[str]:
    """Price ID a new checkout for this plan should use; None if not purchasable."""
    plan = get_plan_by_key(plan_key)
    return plan.price_id if plan else None


def clamp_trial_days(trial_days) -> int:
    """
    Coerce requested trial length into [MIN_TRIAL_DAYS, MAX_TRIAL_DAYS].

    None means "not specified" and gets the default. Out-of-range values are
    clamped rather than rejected, infinities included. Raises
    ValueError/TypeError when the value cannot be read as a number at all
    (NaN counts as unreadable).
    """
    if trial_days is None or trial_days == '':
        return DEFAULT_TRIAL_DAYS
    if isinstance(trial_days, bool):
        raise TypeError("trial_days must be a number")

    if isinstance(trial_days, int):
        days = trial_days
    else:
        value = float(trial_days)
        if math.isnan(value):
            raise ValueError("trial_days must be a number")
        if math.isinf(value):
            return MAX_TRIAL_DAYS if value > 0 else MIN_TRIAL_DAYS
        days = int(value)

    return max(MIN_TRIAL_DAYS, min(MAX_TRIAL_DAYS, days))
