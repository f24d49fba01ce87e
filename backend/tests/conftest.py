"""Shared fixtures for billing tests.

Store-backed tests run against a file-backed SQLite database created per
test, its schema built straight from the models rather than the Alembic
migrations; Stripe is replaced by ``FakeStripeGateway``.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio

from backend import load_all_models
from backend.common.model import Base
from backend.core.conf import Settings
from backend.database.db import create_async_engine_and_session
from backend.src.billing.subscriptions import (
    ReconciliationEngine,
    build_subscription_service,
    build_webhook_service,
)
from backend.tests.fakes import WEBHOOK_SECRET, CountingEntitlementStore, FakeStripeGateway


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        ENVIRONMENT='dev',
        DATABASE_URL=f'sqlite+aiosqlite:///{tmp_path}/billing_test.db',
        STRIPE_SECRET_KEY='sk_test_fake',
        STRIPE_WEBHOOK_SECRET=WEBHOOK_SECRET,
        APP_BASE_URL='https://app.example.com',
    )


@pytest_asyncio.fixture
async def session_factory(test_settings):
    engine, factory = create_async_engine_and_session(test_settings.DATABASE_URL)
    load_all_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield factory
    await engine.dispose()


@pytest.fixture
def store(session_factory) -> CountingEntitlementStore:
    return CountingEntitlementStore(session_factory)


@pytest.fixture
def reconciler(store) -> ReconciliationEngine:
    return ReconciliationEngine(store)


@pytest.fixture
def gateway() -> FakeStripeGateway:
    return FakeStripeGateway()


@pytest.fixture
def subscription_service(test_settings, session_factory, gateway):
    return build_subscription_service(test_settings, session_factory, gateway=gateway)


@pytest.fixture
def webhook_service(test_settings, subscription_service):
    return build_webhook_service(test_settings, subscription_service)


@pytest.fixture
def app(test_settings, subscription_service, webhook_service):
    """
    FastAPI app with services already on app.state.

    httpx's ASGITransport does not run the lifespan, so the state the
    lifespan would build is set here.
    """
    from backend.core.registrar import register_app

    app = register_app(test_settings)
    app.state.subscription_service = subscription_service
    app.state.webhook_service = webhook_service
    return app


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator:
    from httpx import ASGITransport, AsyncClient

    async with AsyncClient(transport=ASGITransport(app=app), base_url='http://test') as c:
        yield c
