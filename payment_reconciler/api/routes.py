"""
API routes for payment initiation and Stripe webhooks.
"""
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Header, Request, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.requests import ClientDisconnect

from payment_reconciler.core.exceptions import BodyReadError, PaymentValidationError
from payment_reconciler.core.initiation import PaymentInitiationHandler
from payment_reconciler.core.reconciliation import WebhookReconciliationHandler
from payment_reconciler.monitoring.health import HealthCheck

from .schemas import (
    CreatePaymentIntentRequest,
    CreatePaymentIntentResponse,
    ErrorResponse,
    HealthCheckResponse,
    WebhookResponse,
)

logger = structlog.get_logger(__name__)

payment_router = APIRouter(tags=["payments"])
webhook_router = APIRouter(tags=["webhooks"])
monitoring_router = APIRouter(tags=["monitoring"])


def get_initiation_handler(request: Request) -> PaymentInitiationHandler:
    """Handler built by the app factory."""
    return request.app.state.initiation_handler


def get_webhook_handler(request: Request) -> WebhookReconciliationHandler:
    """Handler built by the app factory."""
    return request.app.state.webhook_handler


def get_health_check(request: Request) -> HealthCheck:
    """Health check built by the app factory."""
    return request.app.state.health_check


async def read_limited_body(request: Request, handler: WebhookReconciliationHandler) -> bytes:
    """
    Read the request body, refusing to buffer more than the webhook ceiling.

    Raises:
        PayloadTooLargeError: If the declared or streamed size is over the ceiling
        BodyReadError: If the client disconnects mid-body
    """
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit():
        handler.check_size(int(content_length))

    body = bytearray()
    try:
        async for chunk in request.stream():
            body.extend(chunk)
            handler.check_size(len(body))
    except ClientDisconnect as e:
        logger.warning("webhook_body_read_failed", error=str(e) or "client disconnected")
        raise BodyReadError("Failed to read request body", original_error=e) from e
    return bytes(body)


@payment_router.post(
    "/create-payment-intent",
    response_model=CreatePaymentIntentResponse,
    summary="Create a payment intent",
    description="Create a Stripe PaymentIntent and record the payment",
    responses={
        400: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {
                "application/json": {"schema": CreatePaymentIntentRequest.model_json_schema()}
            },
        }
    },
)
async def create_payment_intent(
    request: Request,
    handler: PaymentInitiationHandler = Depends(get_initiation_handler),
) -> CreatePaymentIntentResponse:
    """Create a payment intent and return its client secret."""
    try:
        body = await request.json()
    except ValueError as e:
        raise PaymentValidationError("Request body must be valid JSON", original_error=e) from e

    client_secret = await handler.create_payment_intent(body)
    return CreatePaymentIntentResponse(client_secret=client_secret)


@webhook_router.post(
    "/webhook",
    response_model=WebhookResponse,
    summary="Stripe webhook endpoint",
    description="Verify and reconcile Stripe webhook events",
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None, alias="Stripe-Signature"),
    handler: WebhookReconciliationHandler = Depends(get_webhook_handler),
) -> WebhookResponse:
    """
    Handle Stripe webhook events.

    The raw body is passed through untouched; signature verification needs
    the exact bytes Stripe signed.
    """
    payload = await read_limited_body(request, handler)
    await handler.handle(payload, stripe_signature)
    return WebhookResponse()


@monitoring_router.get(
    "/health",
    response_model=HealthCheckResponse,
    summary="Health check",
    description="Check database connectivity",
)
async def health(health_check: HealthCheck = Depends(get_health_check)) -> JSONResponse:
    """Health check endpoint for monitoring."""
    result = await health_check.check_all()
    status_code = (
        status.HTTP_200_OK if result["status"] == "healthy" else status.HTTP_503_SERVICE_UNAVAILABLE
    )
    return JSONResponse(status_code=status_code, content=result)


@monitoring_router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Expose Prometheus metrics",
    include_in_schema=False,
)
async def prometheus_metrics() -> Response:
    """Expose Prometheus metrics."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
