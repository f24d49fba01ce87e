"""
Checkout Session Webhook Handler

Handles checkout.session.completed. The event payload only carries IDs, so
the session is re-fetched with subscription and customer expanded and the
subscription it created is reconciled.
"""

import logging

from backend.src.billing.domain import stripe_field

logger = logging.getLogger(__name__)


class CheckoutHandler:
    """
    Handler for Stripe Checkout session webhook events.

    Handles:
    - checkout.session.completed: Subscription checkout finished
    """

    def __init__(self, gateway, reconciler):
        self.gateway = gateway
        self.reconciler = reconciler

    async def handle_checkout_completed(self, event) -> None:
        """
        Handle checkout.session.completed event.

        Args:
            event: Stripe event object

        Raises:
            NotFoundError: Session no longer exists upstream
            UpstreamError / PersistenceError: Propagated so Stripe redelivers
        """
        session = stripe_field(stripe_field(event, 'data'), 'object')
        session_id = stripe_field(session, 'id')
        mode = stripe_field(session, 'mode')

        logger.info(f"[CHECKOUT] Processing completed checkout: mode={mode}, session_id={session_id}")

        if mode and mode != 'subscription':
            logger.info(f"[CHECKOUT] Ignoring {mode} checkout {session_id}")
            return

        session = await self.gateway.retrieve_checkout_session(session_id, expand=['subscription', 'customer'])
        entitlement = await self.reconciler.reconcile_checkout_session(session)

        if entitlement:
            logger.info(
                f"[CHECKOUT] Session {session_id} reconciled: "
                f"account={entitlement.account_id} status={entitlement.status.value}"
            )
