"""
Customer Handler

Finds or creates the Stripe customer for an account.
Customers are looked up by exact email; the first match wins and is
re-tagged with the account ID so later webhooks can resolve the account.
"""

import logging

from backend.src.billing.domain import stripe_field, stripe_id
from backend.src.billing.shared.exceptions import InvalidRequestError

logger = logging.getLogger(__name__)


class CustomerHandler:
    """
    Handles Stripe customer management.

    Usage:
        customers = CustomerHandler(gateway)
        customer_id = await customers.find_or_create_customer(account_id, email)
    """

    def __init__(self, gateway):
        self.gateway = gateway

    async def find_or_create_customer(self, account_id: str, email: str) -> str:
        """
        Get or create the Stripe customer for an account.

        Args:
            account_id: Internal account ID, written to customer metadata
            email: Account email used for the lookup

        Returns:
            Stripe customer ID

        Raises:
            InvalidRequestError: account_id or email missing
            UpstreamError: Stripe call failed
        """
        if not account_id:
            raise InvalidRequestError("account_id is required", field='account_id')
        if not email:
            raise InvalidRequestError("account_email is required", field='account_email')

        customers = await self.gateway.list_customers_by_email(email, limit=1)

        if customers:
            customer = customers[0]
            customer_id = stripe_id(customer)
            if account_id_matches(customer, account_id):
                logger.debug(f"[CUSTOMER] Reusing customer {customer_id} for {account_id}")
                return customer_id

            await self.gateway.update_customer(customer_id, metadata={'account_id': account_id})
            logger.info(f"[CUSTOMER] Tagged existing customer {customer_id} with account {account_id}")
            return customer_id

        customer = await self.gateway.create_customer(email=email, metadata={'account_id': account_id})
        customer_id = stripe_id(customer)
        logger.info(f"[CUSTOMER] Created customer {customer_id} for {account_id}")
        return customer_id


def account_id_matches(customer, account_id: str) -> bool:
    return stripe_field(stripe_field(customer, 'metadata'), 'account_id') == account_id
