"""
Webhook Endpoints

Stripe webhook endpoint for processing billing events.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from backend.src.billing.external.stripe import WebhookService
from backend.src.billing.shared.exceptions import BillingError
from .dependencies import get_webhook_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["billing-webhooks"])


@router.post("/webhook")
async def stripe_webhook(request: Request, webhook_service: WebhookService = Depends(get_webhook_service)):
    """
    Process Stripe webhook events.

    The signature is checked against the raw body, so the body is read as
    bytes and never parsed before verification.

    Handles:
    - checkout.session.completed
    - customer.subscription.created
    - customer.subscription.updated
    - customer.subscription.deleted
    - invoice.payment_failed

    Returns 400 on a bad signature and 500 when processing failed, so
    Stripe redelivers.
    """
    payload = await request.body()
    sig_header = request.headers.get('stripe-signature')

    try:
        return await webhook_service.process_webhook(payload, sig_header)
    except BillingError:
        raise
    except Exception:
        # Already logged with traceback by the service
        return JSONResponse(status_code=500, content={'error': 'Webhook processing failed'})
