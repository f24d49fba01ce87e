"""
Stripe API Client Wrapper

Thin typed wrapper around the Stripe API calls this service makes.
Each gateway is constructed with its own API key and passed to the services
that need it; no module-level ``stripe.api_key`` is set, so tests can hand
the services a double instead.

All Stripe errors are translated into billing exceptions here:
- resource_missing -> NotFoundError
- any other StripeError -> UpstreamError
- signature / payload failures -> BadSignatureError
"""

import logging
from typing import Any, Callable, Dict, List, Optional

import stripe

from backend.src.billing.shared.exceptions import BadSignatureError, NotFoundError, UpstreamError

logger = logging.getLogger(__name__)


class StripeGateway:
    """
    Async wrapper for Stripe API calls.

    Usage:
        gateway = StripeGateway(api_key=settings.STRIPE_SECRET_KEY)
        customers = await gateway.list_customers_by_email("test@example.com")
    """

    def __init__(self, api_key: str, api_version: Optional[str] = None):
        self.api_key = api_key
        self.api_version = api_version

    def _request_options(self) -> Dict[str, Any]:
        options = {'api_key': self.api_key}
        if self.api_version:
            options['stripe_version'] = self.api_version
        return options

    async def _call(self, operation: str, func: Callable, *args, **kwargs) -> Any:
        """
        Execute a Stripe API call, translating Stripe errors.

        Args:
            operation: Name used in logs and error details
            func: Async Stripe API function
            *args: Positional arguments
            **kwargs: Keyword arguments (request options are added here)

        Returns:
            Result from Stripe API
        """
        if not self.api_key:
            raise UpstreamError("STRIPE_SECRET_KEY not configured", operation=operation)

        try:
            return await func(*args, **kwargs, **self._request_options())
        except stripe.InvalidRequestError as e:
            if getattr(e, 'code', None) == 'resource_missing':
                logger.warning(f"[STRIPE CLIENT] {operation}: resource missing ({e.user_message or e})")
                raise NotFoundError(f"{operation}: {e}", resource_id=getattr(e, 'param', None)) from e
            logger.error(f"[STRIPE CLIENT] {operation} rejected: {e}", exc_info=True)
            raise UpstreamError(f"{operation} failed", operation=operation, stripe_error=str(e)) from e
        except stripe.StripeError as e:
            logger.error(f"[STRIPE CLIENT] {operation} failed: {e}", exc_info=True)
            raise UpstreamError(f"{operation} failed", operation=operation, stripe_error=str(e)) from e

    # -------------------------------------------------------------------------
    # Customer Operations
    # -------------------------------------------------------------------------

    async def list_customers_by_email(self, email: str, limit: int = 1) -> List[Any]:
        """List customers with an exact email match, newest first."""
        result = await self._call('list_customers', stripe.Customer.list_async, email=email, limit=limit)
        return list(result.data)

    async def create_customer(self, email: str, metadata: Dict[str, str]) -> Any:
        """Create a new Stripe customer."""
        return await self._call('create_customer', stripe.Customer.create_async, email=email, metadata=metadata)

    async def update_customer(self, customer_id: str, metadata: Dict[str, str]) -> Any:
        """Merge metadata into an existing Stripe customer."""
        return await self._call(
            'update_customer', stripe.Customer.modify_async, customer_id, metadata=metadata
        )

    async def retrieve_customer(self, customer_id: str) -> Any:
        """Retrieve a Stripe customer by ID (may come back with deleted=True)."""
        return await self._call('retrieve_customer', stripe.Customer.retrieve_async, customer_id)

    # -------------------------------------------------------------------------
    # Checkout Session Operations
    # -------------------------------------------------------------------------

    async def create_checkout_session(self, params: Dict[str, Any], idempotency_key: str) -> Any:
        """
        Create a Stripe Checkout session.

        Args:
            params: Session parameters (mode, line_items, customer, urls, metadata)
            idempotency_key: Retries with the same key within Stripe's window
                return the original session

        Returns:
            Stripe Checkout Session object
        """
        return await self._call(
            'create_checkout_session',
            stripe.checkout.Session.create_async,
            idempotency_key=idempotency_key,
            **params
        )

    async def retrieve_checkout_session(
        self,
        session_id: str,
        expand: Optional[List[str]] = None
    ) -> Any:
        """Retrieve a checkout session, expanding subscription and customer by default."""
        return await self._call(
            'retrieve_checkout_session',
            stripe.checkout.Session.retrieve_async,
            session_id,
            expand=expand if expand is not None else ['subscription', 'customer']
        )

    # -------------------------------------------------------------------------
    # Subscription Operations
    # -------------------------------------------------------------------------

    async def retrieve_subscription(self, subscription_id: str) -> Any:
        """Retrieve a subscription by ID."""
        return await self._call('retrieve_subscription', stripe.Subscription.retrieve_async, subscription_id)

    async def update_subscription(self, subscription_id: str, **params) -> Any:
        """Modify an existing subscription (e.g. cancel_at_period_end)."""
        return await self._call(
            'update_subscription', stripe.Subscription.modify_async, subscription_id, **params
        )

    # -------------------------------------------------------------------------
    # Webhook Verification
    # -------------------------------------------------------------------------

    def construct_event(
        self,
        payload: bytes,
        sig_header: Optional[str],
        secret: str,
        tolerance: int = 300
    ) -> Any:
        """
        Verify a webhook signature over the exact raw body and decode the event.

        Raises:
            BadSignatureError: Missing/invalid signature, timestamp outside
                tolerance, or a body that is not a JSON event
        """
        if not sig_header:
            raise BadSignatureError("Missing stripe-signature header")

        try:
            return stripe.Webhook.construct_event(
                payload,
                sig_header,
                secret,
                tolerance=tolerance,
                api_key=self.api_key
            )
        except stripe.SignatureVerificationError as e:
            logger.warning(f"[STRIPE CLIENT] Invalid webhook signature: {e}")
            raise BadSignatureError("Invalid webhook signature") from e
        except ValueError as e:
            logger.warning(f"[STRIPE CLIENT] Invalid webhook payload: {e}")
            raise BadSignatureError("Invalid webhook payload") from e
