"""
Pydantic schemas for API request/response models.
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from payment_reconciler.core.initiation import CreatePaymentIntentRequest

__all__ = [
    "CreatePaymentIntentRequest",
    "CreatePaymentIntentResponse",
    "ErrorResponse",
    "HealthCheckResponse",
    "WebhookResponse",
]


class CreatePaymentIntentResponse(BaseModel):
    """Response schema for payment intent creation."""

    client_secret: str = Field(..., description="PaymentIntent client secret for the payer's client")

    model_config = {
        "json_schema_extra": {
            "examples": [{"client_secret": "pi_1234567890_secret_abcdef"}]
        }
    }


class WebhookResponse(BaseModel):
    """Acknowledgment returned for every webhook event handled without error."""

    status: str = Field(default="success", description="Processing status")


class ErrorResponse(BaseModel):
    """Error body returned for every failed request."""

    error: str = Field(..., description="Error message")


class HealthCheckResponse(BaseModel):
    """Response schema for health checks."""

    status: str = Field(..., description="Overall health status (healthy/unhealthy)")
    checks: Optional[Dict[str, Any]] = Field(default=None, description="Individual service checks")
