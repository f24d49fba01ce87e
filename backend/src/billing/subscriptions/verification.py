"""
Session Verification

Synchronous alternative to waiting for the checkout.session.completed
webhook: the client returns from checkout with a session ID and asks for it
to be verified. Races with the webhook path are expected and harmless, since
both end in the same idempotent reconcile.
"""

import logging
from typing import Any, Dict

from backend.src.billing.domain import stripe_field, stripe_id
from backend.src.billing.shared.exceptions import InvalidRequestError

logger = logging.getLogger(__name__)

# Trial checkouts complete with nothing charged
SETTLED_PAYMENT_STATUSES = frozenset({'paid', 'no_payment_required'})


class SessionVerifier:
    """
    Verifies a checkout session and reconciles its subscription.

    Usage:
        verifier = SessionVerifier(gateway, reconciler)
        result = await verifier.verify_session(session_id)
    """

    def __init__(self, gateway, reconciler):
        self.gateway = gateway
        self.reconciler = reconciler

    async def verify_session(self, session_id: str) -> Dict[str, Any]:
        """
        Retrieve a checkout session and reconcile it if settled.

        Args:
            session_id: Stripe checkout session ID (cs_xxx)

        Returns:
            Dict with mode, payment_status, subscription_id, customer_id,
            email and whether a reconcile happened

        Raises:
            InvalidRequestError: session_id missing
            NotFoundError: Session does not exist
            UpstreamError / PersistenceError: Stripe or store failure
        """
        if not session_id:
            raise InvalidRequestError("Missing session_id", field='session_id')

        session = await self.gateway.retrieve_checkout_session(session_id, expand=['subscription', 'customer'])

        customer = stripe_field(session, 'customer')
        subscription = stripe_field(session, 'subscription')
        payment_status = stripe_field(session, 'payment_status')

        result = {
            'mode': stripe_field(session, 'mode'),
            'payment_status': payment_status,
            'subscription_id': stripe_id(subscription),
            'customer_id': stripe_id(customer),
            'email': (
                stripe_field(stripe_field(session, 'customer_details'), 'email')
                or stripe_field(customer, 'email')
            ),
            'reconciled': False,
        }

        if payment_status in SETTLED_PAYMENT_STATUSES and subscription and customer:
            entitlement = await self.reconciler.reconcile_checkout_session(session)
            result['reconciled'] = entitlement is not None
        else:
            logger.info(
                f"[VERIFY] Session {session_id} not reconciled: payment_status={payment_status}, "
                f"subscription={result['subscription_id']}, customer={result['customer_id']}"
            )

        logger.info(f"[VERIFY] Session {session_id}: reconciled={result['reconciled']}")
        return result
