"""
Endpoint Dependencies

Shared dependencies for billing API endpoints. Services are built once in the
application lifespan and read from ``app.state``; tests override these.
"""

import logging

from fastapi import HTTPException, Request

from backend.src.billing.external.stripe import WebhookService
from backend.src.billing.subscriptions import SubscriptionService

logger = logging.getLogger(__name__)


def get_subscription_service(request: Request) -> SubscriptionService:
    service = getattr(request.app.state, 'subscription_service', None)
    if service is None:
        logger.error("[BILLING] Subscription service not initialized")
        raise HTTPException(status_code=503, detail="Billing not initialized")
    return service


def get_webhook_service(request: Request) -> WebhookService:
    service = getattr(request.app.state, 'webhook_service', None)
    if service is None:
        logger.error("[BILLING] Webhook service not initialized")
        raise HTTPException(status_code=503, detail="Billing not initialized")
    return service
