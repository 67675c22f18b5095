"""FastAPI application, routes and schemas."""
from .schemas import (
    CreatePaymentIntentRequest,
    CreatePaymentIntentResponse,
    ErrorResponse,
    HealthCheckResponse,
    WebhookResponse,
)

__all__ = [
    "CreatePaymentIntentRequest",
    "CreatePaymentIntentResponse",
    "ErrorResponse",
    "HealthCheckResponse",
    "WebhookResponse",
]
