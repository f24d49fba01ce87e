"""
Checkout Handler

Creates hosted Stripe checkout sessions for subscriptions.
Features:
- Customer lookup/creation by email
- Trial length clamping
- Deterministic idempotency keys, so a retried request returns the same session
- Metadata on both the session and the subscription for webhook processing

Nothing is written locally here; the entitlement appears once the
checkout.session.completed webhook or the verify call reconciles it.
"""

import logging
from typing import Any, Dict

from backend.src.billing.domain import stripe_field
from backend.src.billing.external.stripe import generate_checkout_idempotency_key
from backend.src.billing.shared.config import clamp_trial_days, get_checkout_price_id
from backend.src.billing.shared.exceptions import InvalidRequestError, UpstreamError

from .customer import CustomerHandler

logger = logging.getLogger(__name__)


class CheckoutHandler:
    """
    Handles Stripe checkout session creation for subscriptions.

    Usage:
        checkout = CheckoutHandler(gateway, CustomerHandler(gateway), success_url, cancel_url)
        redirect_url = await checkout.create_checkout_session(account_id, email, 'pro', 30)
    """

    def __init__(self, gateway, customers: CustomerHandler, success_url: str, cancel_url: str):
        self.gateway = gateway
        self.customers = customers
        self.success_url = success_url
        self.cancel_url = cancel_url

    async def create_checkout_session(
        self,
        account_id: str,
        account_email: str,
        plan_key: str,
        trial_days: Any = None,
    ) -> str:
        """
        Create Stripe checkout session for a subscription.

        Args:
            account_id: Internal account ID
            account_email: Email for customer lookup/creation
            plan_key: Key of a plan in the plan table
            trial_days: Requested trial length; None means the default,
                out-of-range values are clamped to [0, 30]

        Returns:
            Hosted checkout URL to redirect the user to

        Raises:
            InvalidRequestError: Missing fields, unknown plan, unreadable trial_days
            UpstreamError: Stripe failed or returned a session without a URL
        """
        if not account_id:
            raise InvalidRequestError("account_id is required", field='account_id')
        if not account_email:
            raise InvalidRequestError("account_email is required", field='account_email')

        price_id = get_checkout_price_id(plan_key)
        if not price_id:
            raise InvalidRequestError("Invalid plan selected", field='plan_key')

        try:
            trial_days = clamp_trial_days(trial_days)
        except (TypeError, ValueError):
            raise InvalidRequestError("trial_days must be a number", field='trial_days')

        customer_id = await self.customers.find_or_create_customer(account_id, account_email)

        params = self._build_session_params(account_id, customer_id, plan_key, price_id, trial_days)
        idempotency_key = generate_checkout_idempotency_key(account_id, plan_key, trial_days)

        logger.info(
            f"[CHECKOUT] Creating session: account={account_id}, plan={plan_key}, "
            f"trial_days={trial_days}, customer={customer_id}"
        )

        session = await self.gateway.create_checkout_session(params, idempotency_key=idempotency_key)

        redirect_url = stripe_field(session, 'url')
        if not redirect_url:
            logger.error(f"[CHECKOUT] Session {stripe_field(session, 'id')} has no url")
            raise UpstreamError("Checkout session has no redirect url", operation='create_checkout_session')

        logger.info(f"[CHECKOUT] Session {stripe_field(session, 'id')} created for {account_id}")
        return redirect_url

    def _build_session_params(
        self,
        account_id: str,
        customer_id: str,
        plan_key: str,
        price_id: str,
        trial_days: int,
    ) -> Dict[str, Any]:
        metadata = {'account_id': account_id, 'plan_key': plan_key}

        subscription_data: Dict[str, Any] = {'metadata': dict(metadata)}
        if trial_days > 0:
            subscription_data['trial_period_days'] = trial_days

        return {
            'mode': 'subscription',
            'customer': customer_id,
            'client_reference_id': account_id,
            'line_items': [{'price': price_id, 'quantity': 1}],
            'subscription_data': subscription_data,
            'metadata': metadata,
            'success_url': self.success_url,
            'cancel_url': self.cancel_url,
        }
