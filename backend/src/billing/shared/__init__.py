"""
Shared billing configuration and exceptions.
"""

from .config import (
    Plan,
    PLANS,
    ENTITLED_STATUSES,
    STATUS_ALIASES,
    UNKNOWN_PLAN_NAME,
    MIN_TRIAL_DAYS,
    MAX_TRIAL_DAYS,
    DEFAULT_TRIAL_DAYS,
    get_plan_by_key,
    get_plan_by_price_id,
    get_plan_name,
    get_checkout_price_id,
    clamp_trial_days,
)

from .exceptions import (
    BillingError,
    InvalidRequestError,
    NotFoundError,
    UpstreamError,
    PersistenceError,
    WebhookError,
    BadSignatureError,
    AccountNotResolvedError,
)

__all__ = [
    'Plan',
    'PLANS',
    'ENTITLED_STATUSES',
    'STATUS_ALIASES',
    'UNKNOWN_PLAN_NAME',
    'MIN_TRIAL_DAYS',
    'MAX_TRIAL_DAYS',
    'DEFAULT_TRIAL_DAYS',
    'get_plan_by_key',
    'get_plan_by_price_id',
    'get_plan_name',
    'get_checkout_price_id',
    'clamp_trial_days',
    'BillingError',
    'InvalidRequestError',
    'NotFoundError',
    'UpstreamError',
    'PersistenceError',
    'WebhookError',
    'BadSignatureError',
    'AccountNotResolvedError',
]
