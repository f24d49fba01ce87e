"""
Subscription Endpoints

API endpoints for subscription checkout, verification, lifecycle and
entitlement queries.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from backend.src.billing.subscriptions import SubscriptionService
from .dependencies import get_subscription_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["billing-subscriptions"])


# ============================================================================
# Request Models
# ============================================================================

class CreateCheckoutRequest(BaseModel):
    """Request for checkout session creation."""
    account_id: Optional[str] = None
    account_email: Optional[str] = None
    plan_key: Optional[str] = None
    trial_days: Any = None  # clamped to [0, 30]; omitted means 30


class SubscriptionActionRequest(BaseModel):
    """Request for subscription cancellation or reactivation."""
    account_id: Optional[str] = None
    subscription_id: Optional[str] = None


# ============================================================================
# Endpoints
# ============================================================================

@router.post("/create-checkout-session")
async def create_checkout_session(
    request: CreateCheckoutRequest,
    service: SubscriptionService = Depends(get_subscription_service)
) -> Dict:
    """
    Create Stripe checkout session for subscription.

    Returns the hosted checkout URL to redirect to. Retrying with the same
    account, plan and trial length returns the same session.
    """
    redirect_url = await service.create_checkout_session(
        account_id=request.account_id,
        account_email=request.account_email,
        plan_key=request.plan_key,
        trial_days=request.trial_days,
    )
    return {'redirect_url': redirect_url}


@router.get("/checkout-verify")
async def checkout_verify(
    session_id: Optional[str] = Query(None),
    service: SubscriptionService = Depends(get_subscription_service)
) -> Dict:
    """Verify a checkout session and reconcile its subscription if settled."""
    return await service.verify_checkout_session(session_id)


@router.post("/cancel-subscription")
async def cancel_subscription(
    request: SubscriptionActionRequest,
    service: SubscriptionService = Depends(get_subscription_service)
) -> Dict:
    """
    Cancel subscription at period end.

    Access continues until the end of the current billing period.
    """
    subscription = await service.cancel_subscription(request.account_id, request.subscription_id)
    return {'subscription': subscription}


@router.post("/reactivate-subscription")
async def reactivate_subscription(
    request: SubscriptionActionRequest,
    service: SubscriptionService = Depends(get_subscription_service)
) -> Dict:
    """Reactivate a subscription scheduled for cancellation."""
    subscription = await service.reactivate_subscription(request.account_id, request.subscription_id)
    return {'subscription': subscription}


@router.get("/entitlement")
async def get_entitlement(
    account_id: str = Query(..., min_length=1),
    service: SubscriptionService = Depends(get_subscription_service)
) -> Dict:
    """Computed paid-access state for an account."""
    return await service.get_entitlement_summary(account_id)
