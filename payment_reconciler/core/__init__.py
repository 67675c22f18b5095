"""Core payment workflows: initiation and webhook reconciliation."""
from .exceptions import (
    AuthenticityError,
    BodyReadError,
    MalformedEventError,
    PayloadTooLargeError,
    PaymentError,
    PaymentNotFoundError,
    PaymentValidationError,
    PersistenceError,
    UpstreamError,
)

__all__ = [
    "AuthenticityError",
    "BodyReadError",
    "MalformedEventError",
    "PayloadTooLargeError",
    "PaymentError",
    "PaymentNotFoundError",
    "PaymentValidationError",
    "PersistenceError",
    "UpstreamError",
]
