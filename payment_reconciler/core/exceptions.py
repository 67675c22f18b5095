"""
Error taxonomy for payment initiation and webhook reconciliation.

Every error carries the HTTP status it is translated to at the API
boundary. None of them are retried internally.
"""
from typing import Optional


class PaymentError(Exception):
    """Base exception for payment processing errors."""

    status_code: int = 500

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        """
        Initialize payment error.

        Args:
            message: Error message
            original_error: Underlying exception, if any
        """
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class PaymentValidationError(PaymentError):
    """Raised when a payment request is malformed."""

    status_code = 400


class UpstreamError(PaymentError):
    """Raised when Stripe is unreachable, times out, or rejects the call."""

    status_code = 500


class PersistenceError(PaymentError):
    """Raised when the payment store is unavailable or a write fails."""

    status_code = 500


class AuthenticityError(PaymentError):
    """Raised when a webhook signature, header or payload fails verification."""

    status_code = 400


class MalformedEventError(PaymentError):
    """Raised when a verified event does not carry a payment intent id."""

    status_code = 400


class PayloadTooLargeError(PaymentError):
    """Raised when a webhook payload exceeds the size ceiling."""

    status_code = 413


class PaymentNotFoundError(PaymentError):
    """Raised when no payment matches a reconciled payment intent."""

    status_code = 404


class BodyReadError(PaymentError):
    """Raised when the webhook request body cannot be read."""

    status_code = 503
