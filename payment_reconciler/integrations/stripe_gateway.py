"""
Stripe gateway: the two processor operations this service consumes.

- Create a PaymentIntent (bounded by a request timeout, no SDK retries)
- Verify a webhook signature and parse the event
"""
import time
from dataclasses import dataclass
from typing import Optional

import stripe
import structlog
from starlette.concurrency import run_in_threadpool

from payment_reconciler.config import Settings
from payment_reconciler.core.exceptions import AuthenticityError, UpstreamError
from payment_reconciler.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PaymentIntentResult:
    """The fields of a created PaymentIntent the service relies on."""

    id: str
    client_secret: str
    status: str


class StripeGateway:
    """
    Wrapper around the Stripe SDK.

    Holds its own ``stripe.StripeClient`` so the secret key never lands in
    the SDK's module-level globals.
    """

    def __init__(self, settings: Settings, client: Optional[stripe.StripeClient] = None) -> None:
        """
        Initialize Stripe gateway.

        Args:
            settings: Application settings carrying the Stripe credentials
            client: Optional preconfigured Stripe client
        """
        self._webhook_secret = settings.stripe_webhook_secret
        self._tolerance = settings.stripe_webhook_tolerance_seconds
        self._client = client or stripe.StripeClient(
            api_key=settings.stripe_secret_key,
            stripe_version=settings.stripe_api_version,
            http_client=stripe.RequestsClient(timeout=settings.stripe_timeout_seconds),
            max_network_retries=0,
        )

        logger.info(
            "stripe_gateway_initialized",
            api_version=settings.stripe_api_version,
            timeout_seconds=settings.stripe_timeout_seconds,
            test_mode=settings.is_test_mode,
        )

    async def create_payment_intent(self, amount: int, currency: str) -> PaymentIntentResult:
        """
        Create a Stripe PaymentIntent.

        Args:
            amount: Amount in minor currency units
            currency: Lowercase ISO currency code

        Returns:
            PaymentIntentResult: ID, client secret and status of the intent

        Raises:
            UpstreamError: If Stripe fails, times out, or returns no intent ID
        """
        logger.info("creating_payment_intent", amount=amount, currency=currency)
        start_time = time.time()

        try:
            intent = await run_in_threadpool(
                self._client.payment_intents.create,
                params={
                    "amount": amount,
                    "currency": currency,
                    "automatic_payment_methods": {"enabled": True},
                },
            )
        except stripe.StripeError as e:
            duration = time.time() - start_time
            metrics.record_stripe_api_call("create_payment_intent", "error", duration)
            metrics.record_stripe_api_error(type(e).__name__)
            logger.error(
                "stripe_api_error",
                error_type=type(e).__name__,
                error_code=getattr(e, "code", None),
                error_message=str(e),
                duration_seconds=duration,
            )
            raise UpstreamError(f"Payment intent creation failed: {e}", original_error=e) from e

        duration = time.time() - start_time
        metrics.record_stripe_api_call("create_payment_intent", "success", duration)

        if not intent.id:
            logger.error("stripe_payment_intent_missing_id", status=intent.status)
            raise UpstreamError("Payment intent creation returned no payment intent ID")

        logger.info(
            "payment_intent_created",
            payment_intent_id=intent.id,
            status=intent.status,
            duration_seconds=duration,
        )

        return PaymentIntentResult(
            id=intent.id,
            client_secret=intent.client_secret,
            status=intent.status,
        )

    def construct_event(self, payload: bytes, signature: Optional[str]) -> stripe.Event:
        """
        Verify webhook signature and construct event.

        Args:
            payload: Raw request body as bytes
            signature: Stripe-Signature header value

        Returns:
            stripe.Event: Verified Stripe event

        Raises:
            AuthenticityError: If the header is missing, the signature or its
                timestamp does not verify, or the payload is not valid JSON
        """
        if not signature:
            logger.warning("webhook_signature_missing")
            raise AuthenticityError("Missing Stripe-Signature header")

        try:
            event = stripe.Webhook.construct_event(
                payload=payload,
                sig_header=signature,
                secret=self._webhook_secret,
                tolerance=self._tolerance,
            )
        except stripe.SignatureVerificationError as e:
            logger.warning("webhook_signature_rejected", error=str(e))
            raise AuthenticityError(f"Invalid webhook signature: {e}", original_error=e) from e
        except ValueError as e:
            logger.warning("webhook_payload_invalid", error=str(e))
            raise AuthenticityError(f"Invalid webhook payload: {e}", original_error=e) from e

        logger.info("webhook_signature_verified", event_id=event.id, event_type=event.type)
        return event
