"""
Billing Exceptions

Custom exception classes for billing-related errors.
Each class carries the HTTP status its failure maps to, so endpoints and the
webhook dispatcher can surface a generic message plus status code while the
full detail stays in server-side logs.
"""


class BillingError(Exception):
    """
    Base exception for all billing-related errors.

    All billing exceptions inherit from this class, allowing for
    broad exception handling when needed.
    """

    status_code: int = 500
    public_message: str = "Billing request failed"

    def __init__(self, message: str, code: str = "BILLING_ERROR", details: dict = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert exception to dictionary for server-side logging."""
        return {
            'error': self.code,
            'message': self.message,
            'details': self.details
        }

    def to_response(self) -> dict:
        """Generic body returned to external callers."""
        return {'error': self.public_message}


class InvalidRequestError(BillingError):
    """
    Raised when caller input is missing or malformed.

    Examples:
        - account_id or email missing on checkout
        - Unrecognized plan key
        - Missing session_id on verification
    """

    status_code = 400

    def __init__(self, message: str = "Invalid request", field: str = None):
        super().__init__(
            message=message,
            code="INVALID_REQUEST",
            details={'field': field} if field else {}
        )
        self.field = field

    def to_response(self) -> dict:
        # Input errors are safe to echo back
        return {'error': self.message}


class NotFoundError(BillingError):
    """Raised when a referenced session or subscription does not exist."""

    status_code = 404
    public_message = "Resource not found"

    def __init__(self, message: str = "Resource not found", resource_id: str = None):
        super().__init__(
            message=message,
            code="NOT_FOUND",
            details={'resource_id': resource_id} if resource_id else {}
        )
        self.resource_id = resource_id


class UpstreamError(BillingError):
    """
    Raised when Stripe is unreachable or returns an error.

    Callers may retry; webhook deliveries fail with 500 so Stripe redelivers.
    """

    status_code = 500
    public_message = "Payment provider request failed"

    def __init__(
        self,
        message: str = "Payment provider error",
        operation: str = None,
        stripe_error: str = None
    ):
        details = {}
        if operation:
            details['operation'] = operation
        if stripe_error:
            details['stripe_error'] = stripe_error

        super().__init__(
            message=message,
            code="UPSTREAM_ERROR",
            details=details
        )
        self.operation = operation
        self.stripe_error = stripe_error


class PersistenceError(BillingError):
    """Raised when the entitlement store cannot be read or written."""

    status_code = 500
    public_message = "Failed to save subscription"

    def __init__(self, message: str = "Entitlement store error", subscription_id: str = None):
        super().__init__(
            message=message,
            code="PERSISTENCE_ERROR",
            details={'subscription_id': subscription_id} if subscription_id else {}
        )
        self.subscription_id = subscription_id


class WebhookError(BillingError):
    """
    Raised when there's an issue processing a webhook.

    Examples:
        - Invalid signature
        - Undecodable payload
    """

    public_message = "Webhook processing failed"

    def __init__(
        self,
        message: str = "Webhook processing error",
        code: str = "WEBHOOK_ERROR",
        event_id: str = None,
        event_type: str = None
    ):
        details = {}
        if event_id:
            details['event_id'] = event_id
        if event_type:
            details['event_type'] = event_type

        super().__init__(
            message=message,
            code=code,
            details=details
        )
        self.event_id = event_id
        self.event_type = event_type


class BadSignatureError(WebhookError):
    """Raised when a webhook signature, timestamp or payload fails verification."""

    status_code = 400
    public_message = "Invalid signature"

    def __init__(self, message: str = "Invalid webhook signature"):
        super().__init__(message=message, code="BAD_SIGNATURE")


class AccountNotResolvedError(BillingError):
    """
    Raised when a billing object cannot be tied to an internal account.

    Webhook handlers log and acknowledge this instead of failing, since a
    redelivery would not resolve it either.
    """

    status_code = 400
    public_message = "Account could not be resolved"

    def __init__(self, message: str = "No account_id found", object_id: str = None):
        super().__init__(
            message=message,
            code="ACCOUNT_NOT_RESOLVED",
            details={'object_id': object_id} if object_id else {}
        )
        self.object_id = object_id
