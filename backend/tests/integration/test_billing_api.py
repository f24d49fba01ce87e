"""HTTP tests for the billing endpoints.

The app runs in-process through httpx's ASGITransport with services on
app.state backed by a SQLite store and the fake Stripe gateway.
"""

from unittest.mock import AsyncMock, patch

import pytest

from backend.src.billing.shared.exceptions import PersistenceError, UpstreamError
from backend.tests.fakes import make_customer, make_event, make_session, make_subscription, signed_event

BILLING = '/api/v1/billing'


async def post_webhook(client, event, secret=None):
    payload, sig_header = signed_event(event) if secret is None else signed_event(event, secret=secret)
    return await client.post(
        f'{BILLING}/webhook',
        content=payload,
        headers={'stripe-signature': sig_header, 'content-type': 'application/json'},
    )


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get('/health')

    assert response.status_code == 200
    assert response.json() == {'status': 'ok'}


@pytest.mark.asyncio
async def test_api_prefix_from_passed_settings(test_settings, subscription_service, webhook_service):
    from httpx import ASGITransport, AsyncClient

    from backend.core.registrar import register_app

    app = register_app(test_settings.model_copy(update={'FASTAPI_API_V1_PATH': '/api/v2'}))
    app.state.subscription_service = subscription_service
    app.state.webhook_service = webhook_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url='http://test') as client:
        moved = await client.get('/api/v2/billing/entitlement', params={'account_id': 'acct_1'})
        default = await client.get(f'{BILLING}/entitlement', params={'account_id': 'acct_1'})

    assert moved.status_code == 200
    assert default.status_code == 404


class TestCheckoutEndpoint:
    """Tests for POST /billing/create-checkout-session."""

    @pytest.mark.asyncio
    async def test_returns_redirect_url(self, client, gateway):
        response = await client.post(f'{BILLING}/create-checkout-session', json={
            'account_id': 'acct_1',
            'account_email': 'crew@example.com',
            'plan_key': 'pro',
            'trial_days': 30,
        })

        assert response.status_code == 200
        assert response.json()['redirect_url'].startswith('https://checkout.stripe.com/')
        _, params, _ = gateway.calls_to('create_checkout_session')[0]
        assert params['success_url'].startswith('https://app.example.com/')

    @pytest.mark.asyncio
    async def test_missing_email(self, client, gateway):
        response = await client.post(f'{BILLING}/create-checkout-session', json={
            'account_id': 'acct_1',
            'plan_key': 'pro',
        })

        assert response.status_code == 400
        assert 'error' in response.json()
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_overflowing_trial_days_clamped(self, client, gateway):
        """Test a JSON number too large for a float is clamped, not a server error."""
        body = b'{"account_id": "acct_1", "account_email": "crew@example.com", "plan_key": "pro", "trial_days": 1e400}'

        response = await client.post(
            f'{BILLING}/create-checkout-session',
            content=body,
            headers={'content-type': 'application/json'},
        )

        assert response.status_code == 200
        _, params, idempotency_key = gateway.calls_to('create_checkout_session')[0]
        assert params['subscription_data']['trial_period_days'] == 30
        assert idempotency_key == 'checkout:acct_1:pro:30'

    @pytest.mark.asyncio
    async def test_unknown_plan(self, client):
        response = await client.post(f'{BILLING}/create-checkout-session', json={
            'account_id': 'acct_1',
            'account_email': 'crew@example.com',
            'plan_key': 'platinum',
        })

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_upstream_failure_is_generic(self, client, gateway):
        gateway.errors['create_checkout_session'] = UpstreamError(
            'create_checkout_session failed', stripe_error='card_declined: sk_test_secret_detail'
        )

        response = await client.post(f'{BILLING}/create-checkout-session', json={
            'account_id': 'acct_1',
            'account_email': 'crew@example.com',
            'plan_key': 'pro',
        })

        assert response.status_code == 500
        assert response.json() == {'error': 'Payment provider request failed'}


class TestWebhookEndpoint:
    """Tests for POST /billing/webhook."""

    @pytest.mark.asyncio
    async def test_valid_event(self, client, gateway, store):
        gateway.customers['cus_123'] = make_customer()

        response = await post_webhook(client, make_event('customer.subscription.created', make_subscription()))

        assert response.status_code == 200
        assert response.json() == {'received': True}
        assert await store.count_for_subscription('sub_123') == 1

    @pytest.mark.asyncio
    async def test_bad_signature(self, client, store):
        response = await post_webhook(
            client, make_event('customer.subscription.created', make_subscription()), secret='whsec_wrong'
        )

        assert response.status_code == 400
        assert response.json() == {'error': 'Invalid signature'}
        assert await store.count_for_subscription('sub_123') == 0

    @pytest.mark.asyncio
    async def test_persistence_failure_is_500(self, client, gateway, subscription_service):
        gateway.customers['cus_123'] = make_customer()

        with patch.object(subscription_service.store, 'upsert', AsyncMock(side_effect=PersistenceError('db down'))):
            response = await post_webhook(client, make_event('customer.subscription.created', make_subscription()))

        assert response.status_code == 500
        assert response.json() == {'error': 'Failed to save subscription'}

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_500(self, client, webhook_service):
        handler = webhook_service.subscription_handler
        with patch.object(handler, 'handle_subscription_deleted', AsyncMock(side_effect=RuntimeError('bug'))):
            response = await post_webhook(client, make_event('customer.subscription.deleted', make_subscription()))

        assert response.status_code == 500
        assert response.json() == {'error': 'Webhook processing failed'}

    @pytest.mark.asyncio
    async def test_checkout_completed_without_account_acknowledged(self, client, gateway, store):
        gateway.sessions['cs_test_123'] = make_session(
            subscription=make_subscription(metadata={}),
            customer=make_customer(account_id=None),
            client_reference_id=None,
        )

        response = await post_webhook(
            client, make_event('checkout.session.completed', {'id': 'cs_test_123', 'object': 'checkout.session'})
        )

        assert response.status_code == 200
        assert await store.count_for_subscription('sub_123') == 0


class TestVerifyEndpoint:
    """Tests for GET /billing/checkout-verify."""

    @pytest.mark.asyncio
    async def test_verify(self, client, gateway):
        gateway.sessions['cs_test_123'] = make_session(subscription=make_subscription(), customer=make_customer())

        response = await client.get(f'{BILLING}/checkout-verify', params={'session_id': 'cs_test_123'})

        assert response.status_code == 200
        body = response.json()
        assert body['subscription_id'] == 'sub_123'
        assert body['customer_id'] == 'cus_123'
        assert body['payment_status'] == 'paid'
        assert body['reconciled'] is True

    @pytest.mark.asyncio
    async def test_missing_session_id(self, client):
        response = await client.get(f'{BILLING}/checkout-verify')

        assert response.status_code == 400
        assert response.json() == {'error': 'Missing session_id'}

    @pytest.mark.asyncio
    async def test_unknown_session(self, client):
        response = await client.get(f'{BILLING}/checkout-verify', params={'session_id': 'cs_missing'})

        assert response.status_code == 404


class TestLifecycleAndEntitlementEndpoints:
    """Tests for cancel/reactivate and the entitlement summary."""

    @pytest.mark.asyncio
    async def test_cancel_then_entitlement(self, client, gateway):
        gateway.customers['cus_123'] = make_customer()
        gateway.subscriptions['sub_123'] = make_subscription(status='active')
        await post_webhook(client, make_event('customer.subscription.created', gateway.subscriptions['sub_123']))

        response = await client.post(f'{BILLING}/cancel-subscription', json={
            'account_id': 'acct_1',
            'subscription_id': 'sub_123',
        })

        assert response.status_code == 200
        assert response.json()['subscription']['cancel_at_period_end'] is True

        summary = (await client.get(f'{BILLING}/entitlement', params={'account_id': 'acct_1'})).json()
        assert summary['subscription']['cancel_at_period_end'] is True

    @pytest.mark.asyncio
    async def test_reactivate_other_account(self, client, gateway):
        gateway.customers['cus_123'] = make_customer(account_id='acct_owner')
        gateway.subscriptions['sub_123'] = make_subscription(cancel_at_period_end=True)
        await post_webhook(client, make_event('customer.subscription.created', gateway.subscriptions['sub_123']))

        response = await client.post(f'{BILLING}/reactivate-subscription', json={
            'account_id': 'acct_1',
            'subscription_id': 'sub_123',
        })

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_entitlement_for_trialing_account(self, client, gateway):
        gateway.customers['cus_123'] = make_customer()
        await post_webhook(client, make_event('customer.subscription.created', make_subscription()))

        response = await client.get(f'{BILLING}/entitlement', params={'account_id': 'acct_1'})

        assert response.status_code == 200
        body = response.json()
        assert body['has_paid_access'] is True
        assert body['is_trialing'] is True
        assert body['subscription']['plan_name'] == 'Pro Plan'
