"""
Application factory

Builds the FastAPI app: logging, CORS, routers, the billing exception
handler and a lifespan that wires the database and billing services onto
``app.state``. The schema is expected to be at the Alembic head already.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.app.router import router
from backend.common.log import setup_logging
from backend.core.conf import Settings, settings as default_settings
from backend.database.db import create_async_engine_and_session
from backend.src.billing.shared.exceptions import BillingError
from backend.src.billing.subscriptions import build_subscription_service, build_webhook_service

logger = logging.getLogger(__name__)


def build_lifespan(settings: Settings):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine, session_factory = create_async_engine_and_session(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
        service = build_subscription_service(settings, session_factory)
        app.state.subscription_service = service
        app.state.webhook_service = build_webhook_service(settings, service)

        if not settings.STRIPE_SECRET_KEY:
            logger.warning('[BILLING] STRIPE_SECRET_KEY not set, Stripe calls will fail')
        if not settings.STRIPE_WEBHOOK_SECRET:
            logger.warning('[BILLING] STRIPE_WEBHOOK_SECRET not set, webhooks will be rejected')

        logger.info('[BILLING] Services initialized')
        try:
            yield
        finally:
            await engine.dispose()
            logger.info('[BILLING] Database engine disposed')

    return lifespan


async def billing_exception_handler(request: Request, exc: BillingError) -> JSONResponse:
    """Generic message and class status to the caller; detail to the logs."""
    if exc.status_code >= 500:
        logger.error(f'[BILLING] {request.method} {request.url.path} failed: {exc.to_dict()}')
    else:
        logger.warning(f'[BILLING] {request.method} {request.url.path} rejected: {exc.to_dict()}')
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


def register_app(settings: Settings | None = None) -> FastAPI:
    """Create the FastAPI application"""
    settings = settings or default_settings
    setup_logging(settings.LOG_STD_LEVEL)

    app = FastAPI(
        title=settings.FASTAPI_TITLE,
        description=settings.FASTAPI_DESCRIPTION,
        docs_url=settings.FASTAPI_DOCS_URL,
        openapi_url=settings.FASTAPI_OPENAPI_URL,
        lifespan=build_lifespan(settings),
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=['*'],
        allow_headers=['*'],
    )

    app.add_exception_handler(BillingError, billing_exception_handler)
    app.include_router(router, prefix=settings.FASTAPI_API_V1_PATH)

    @app.get('/health', tags=['Health'])
    async def health() -> dict:
        return {'status': 'ok'}

    return app
