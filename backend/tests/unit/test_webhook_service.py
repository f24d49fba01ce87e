"""Tests for webhook verification and dispatch.

Events are signed with the test secret and verified by stripe-python, so
these also cover the raw-body signature path.
"""

import json
import time
from unittest.mock import AsyncMock, patch

import pytest
import stripe

from backend.src.billing.domain import SubscriptionStatus
from backend.src.billing.external.stripe import WebhookService
from backend.src.billing.shared.exceptions import BadSignatureError, PersistenceError, UpstreamError
from backend.tests.fakes import (
    as_stripe_object,
    make_customer,
    make_event,
    make_session,
    make_subscription,
    sign_payload,
    signed_event,
)


async def deliver(webhook_service, event_type, obj):
    payload, sig_header = signed_event(make_event(event_type, obj))
    return await webhook_service.process_webhook(payload, sig_header)


class TestSignatureVerification:
    """Tests for rejected deliveries."""

    @pytest.mark.asyncio
    async def test_wrong_secret_rejected_without_writes(self, webhook_service, store):
        payload, sig_header = signed_event(
            make_event('customer.subscription.created', make_subscription()), secret='whsec_other'
        )

        with pytest.raises(BadSignatureError):
            await webhook_service.process_webhook(payload, sig_header)

        assert await store.count_for_subscription('sub_123') == 0

    @pytest.mark.asyncio
    async def test_tampered_body_rejected(self, webhook_service, store):
        payload, sig_header = signed_event(make_event('customer.subscription.created', make_subscription()))
        tampered = payload.replace(b'trialing', b'active__')

        with pytest.raises(BadSignatureError):
            await webhook_service.process_webhook(tampered, sig_header)

        assert await store.count_for_subscription('sub_123') == 0

    @pytest.mark.asyncio
    async def test_missing_header_rejected(self, webhook_service):
        payload = json.dumps(make_event('customer.subscription.created', make_subscription())).encode()

        with pytest.raises(BadSignatureError):
            await webhook_service.process_webhook(payload, None)

    @pytest.mark.asyncio
    async def test_stale_timestamp_rejected(self, webhook_service):
        payload = json.dumps(make_event('customer.subscription.created', make_subscription())).encode()
        sig_header = sign_payload(payload, timestamp=int(time.time()) - 3600)

        with pytest.raises(BadSignatureError):
            await webhook_service.process_webhook(payload, sig_header)

    @pytest.mark.asyncio
    async def test_missing_secret_is_server_error(self, gateway, reconciler):
        service = WebhookService(gateway, reconciler, webhook_secret='')
        payload, sig_header = signed_event(make_event('customer.subscription.created', make_subscription()))

        with pytest.raises(UpstreamError):
            await service.process_webhook(payload, sig_header)


class TestSubscriptionEvents:
    """Tests for customer.subscription.* events."""

    @pytest.mark.asyncio
    async def test_created_reconciles_with_customer_account(self, webhook_service, gateway, store):
        gateway.customers['cus_123'] = make_customer(account_id='acct_from_customer')

        result = await deliver(webhook_service, 'customer.subscription.created', make_subscription())

        stored = await store.get_by_subscription_id('sub_123')
        assert result == {'received': True}
        assert stored.account_id == 'acct_from_customer'
        assert stored.status == SubscriptionStatus.TRIALING
        assert stored.plan_name == 'Pro Plan'

    @pytest.mark.asyncio
    async def test_falls_back_to_subscription_metadata(self, webhook_service, gateway, store):
        gateway.customers['cus_123'] = make_customer(account_id=None)

        await deliver(webhook_service, 'customer.subscription.created', make_subscription())

        assert (await store.get_by_subscription_id('sub_123')).account_id == 'acct_1'

    @pytest.mark.asyncio
    async def test_unresolvable_account_acknowledged(self, webhook_service, gateway, store):
        gateway.customers['cus_123'] = make_customer(account_id=None)

        result = await deliver(webhook_service, 'customer.subscription.created', make_subscription(metadata={}))

        assert result == {'received': True}
        assert await store.count_for_subscription('sub_123') == 0

    @pytest.mark.asyncio
    async def test_updated_with_stripe_object_customer(self, webhook_service, gateway, store):
        gateway.customers['cus_123'] = as_stripe_object(make_customer(account_id='acct_9'), stripe.Customer)

        result = await deliver(webhook_service, 'customer.subscription.updated', make_subscription(status='active'))

        stored = await store.get_by_subscription_id('sub_123')
        assert result == {'received': True}
        assert stored.account_id == 'acct_9'
        assert stored.status == SubscriptionStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_redelivered_update_converges(self, webhook_service, gateway, store):
        gateway.customers['cus_123'] = make_customer()
        subscription = make_subscription(status='active', trial_start=None, trial_end=None)

        for _ in range(3):
            await deliver(webhook_service, 'customer.subscription.updated', subscription)

        assert await store.count_for_subscription('sub_123') == 1
        assert (await store.get_by_subscription_id('sub_123')).status == SubscriptionStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_deleted_without_row_is_noop(self, webhook_service, store):
        result = await deliver(webhook_service, 'customer.subscription.deleted', make_subscription(status='canceled'))

        assert result == {'received': True}
        assert await store.count_for_subscription('sub_123') == 0

    @pytest.mark.asyncio
    async def test_deleted_marks_canceled(self, webhook_service, gateway, store):
        gateway.customers['cus_123'] = make_customer()
        await deliver(webhook_service, 'customer.subscription.created', make_subscription(cancel_at_period_end=True))

        await deliver(webhook_service, 'customer.subscription.deleted', make_subscription(status='canceled'))

        stored = await store.get_by_subscription_id('sub_123')
        assert stored.status == SubscriptionStatus.CANCELED
        assert stored.cancel_at_period_end is False

    @pytest.mark.asyncio
    async def test_trial_will_end_is_acknowledged(self, webhook_service, store):
        result = await deliver(webhook_service, 'customer.subscription.trial_will_end', make_subscription())

        assert result == {'received': True}
        assert await store.count_for_subscription('sub_123') == 0


class TestInvoiceEvents:
    """Tests for invoice.payment_failed."""

    @pytest.mark.asyncio
    async def test_payment_failed_marks_past_due(self, webhook_service, reconciler, store):
        from backend.src.billing.domain import snapshot_from_stripe
        await reconciler.reconcile('acct_1', snapshot_from_stripe(make_subscription(status='active')))

        await deliver(webhook_service, 'invoice.payment_failed', {'id': 'in_1', 'object': 'invoice', 'subscription': 'sub_123'})

        assert (await store.get_by_subscription_id('sub_123')).status == SubscriptionStatus.PAST_DUE

    @pytest.mark.asyncio
    async def test_subscription_from_invoice_parent(self, webhook_service, reconciler, store):
        from backend.src.billing.domain import snapshot_from_stripe
        await reconciler.reconcile('acct_1', snapshot_from_stripe(make_subscription(status='active')))
        invoice = {
            'id': 'in_2',
            'object': 'invoice',
            'parent': {'subscription_details': {'subscription': 'sub_123'}},
        }

        await deliver(webhook_service, 'invoice.payment_failed', invoice)

        assert (await store.get_by_subscription_id('sub_123')).status == SubscriptionStatus.PAST_DUE

    @pytest.mark.asyncio
    async def test_invoice_without_subscription(self, webhook_service):
        result = await deliver(webhook_service, 'invoice.payment_failed', {'id': 'in_3', 'object': 'invoice'})

        assert result == {'received': True}


class TestCheckoutEvents:
    """Tests for checkout.session.completed."""

    @pytest.mark.asyncio
    async def test_completed_refetches_and_reconciles(self, webhook_service, gateway, store):
        gateway.sessions['cs_test_123'] = make_session(subscription=make_subscription(), customer=make_customer())

        result = await deliver(webhook_service, 'checkout.session.completed', {'id': 'cs_test_123', 'object': 'checkout.session', 'mode': 'subscription'})

        assert result == {'received': True}
        assert gateway.calls_to('retrieve_checkout_session') == [
            ('retrieve_checkout_session', 'cs_test_123', ['subscription', 'customer'])
        ]
        assert (await store.get_by_subscription_id('sub_123')).account_id == 'acct_1'

    @pytest.mark.asyncio
    async def test_completed_with_stripe_objects_from_gateway(self, webhook_service, gateway, store):
        """Test a re-fetched checkout.Session StripeObject reconciles end to end."""
        gateway.sessions['cs_test_123'] = as_stripe_object(
            make_session(subscription=make_subscription(), customer=make_customer()),
            stripe.checkout.Session,
        )

        result = await deliver(webhook_service, 'checkout.session.completed', {'id': 'cs_test_123', 'object': 'checkout.session', 'mode': 'subscription'})

        stored = await store.get_by_subscription_id('sub_123')
        assert result == {'received': True}
        assert stored.account_id == 'acct_1'
        assert stored.status == SubscriptionStatus.TRIALING

    @pytest.mark.asyncio
    async def test_completed_without_account_acknowledged(self, webhook_service, gateway, store):
        gateway.sessions['cs_test_123'] = make_session(
            subscription=make_subscription(metadata={}),
            customer=make_customer(account_id=None),
            client_reference_id=None,
        )

        result = await deliver(webhook_service, 'checkout.session.completed', {'id': 'cs_test_123', 'object': 'checkout.session'})

        assert result == {'received': True}
        assert await store.count_for_subscription('sub_123') == 0

    @pytest.mark.asyncio
    async def test_completed_for_missing_session_acknowledged(self, webhook_service):
        result = await deliver(webhook_service, 'checkout.session.completed', {'id': 'cs_gone', 'object': 'checkout.session'})

        assert result == {'received': True}

    @pytest.mark.asyncio
    async def test_payment_mode_ignored(self, webhook_service, gateway):
        await deliver(webhook_service, 'checkout.session.completed', {'id': 'cs_pay', 'object': 'checkout.session', 'mode': 'payment'})

        assert gateway.calls_to('retrieve_checkout_session') == []


class TestProcessingFailures:
    """Tests for failures that must make Stripe redeliver."""

    @pytest.mark.asyncio
    async def test_persistence_error_propagates(self, webhook_service, subscription_service, gateway):
        gateway.customers['cus_123'] = make_customer()

        with patch.object(subscription_service.store, 'upsert', AsyncMock(side_effect=PersistenceError('db down'))):
            with pytest.raises(PersistenceError):
                await deliver(webhook_service, 'customer.subscription.created', make_subscription())

    @pytest.mark.asyncio
    async def test_upstream_error_propagates(self, webhook_service, gateway):
        gateway.errors['retrieve_checkout_session'] = UpstreamError('timeout', operation='retrieve_checkout_session')

        with pytest.raises(UpstreamError):
            await deliver(webhook_service, 'checkout.session.completed', {'id': 'cs_test_123', 'object': 'checkout.session'})


@pytest.mark.asyncio
async def test_unhandled_event_acknowledged(webhook_service, gateway):
    result = await deliver(webhook_service, 'customer.created', make_customer())

    assert result == {'received': True}
    assert gateway.calls == []
