"""
Payment initiation: create a Stripe PaymentIntent and record it locally.

Flow:
1. Validate the request
2. Create the PaymentIntent with Stripe
3. Insert the payment row
4. Return the intent's client secret

If step 3 fails the intent already exists at Stripe with no local row.
That window is logged and left to an operator; nothing compensates it.
"""
from typing import Any, Union

import pydantic
import structlog
from pydantic import BaseModel, Field, field_validator

from payment_reconciler.core.exceptions import PaymentValidationError, PersistenceError
from payment_reconciler.database.store import PaymentStore
from payment_reconciler.integrations.stripe_gateway import StripeGateway
from payment_reconciler.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)


class CreatePaymentIntentRequest(BaseModel):
    """Request schema for creating a payment intent."""

    amount: int = Field(..., gt=0, strict=True, description="Amount in minor currency units")
    currency: str = Field(
        ...,
        min_length=3,
        max_length=3,
        pattern=r"^[A-Za-z]{3}$",
        description="ISO currency code (e.g., usd)",
    )

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        """Stripe expects lowercase currency codes."""
        return v.lower()

    model_config = {
        "json_schema_extra": {"examples": [{"amount": 1000, "currency": "usd"}]}
    }


class PaymentInitiationHandler:
    """Creates payment intents. Only ever inserts into the store."""

    def __init__(self, gateway: StripeGateway, store: PaymentStore) -> None:
        self.gateway = gateway
        self.store = store

    @staticmethod
    def parse_request(data: Any) -> CreatePaymentIntentRequest:
        """
        Validate a decoded request body.

        Raises:
            PaymentValidationError: If the body is not ``{amount, currency}``
        """
        if isinstance(data, CreatePaymentIntentRequest):
            return data
        try:
            return CreatePaymentIntentRequest.model_validate(data)
        except pydantic.ValidationError as e:
            errors = "; ".join(
                f"{'.'.join(str(loc) for loc in err['loc']) or 'body'}: {err['msg']}"
                for err in e.errors()
            )
            raise PaymentValidationError(f"Invalid payment request: {errors}", original_error=e) from e

    async def create_payment_intent(
        self, data: Union[CreatePaymentIntentRequest, Any]
    ) -> str:
        """
        Create a payment intent and persist the payment.

        Args:
            data: A validated request or a decoded JSON body

        Returns:
            str: The client secret for the payer

        Raises:
            PaymentValidationError: If the request is malformed
            UpstreamError: If Stripe fails
            PersistenceError: If the payment cannot be stored
        """
        request = self.parse_request(data)

        logger.info(
            "payment_initiation_started",
            amount=request.amount,
            currency=request.currency,
        )

        intent = await self.gateway.create_payment_intent(
            amount=request.amount,
            currency=request.currency,
        )

        try:
            payment = await self.store.insert(
                amount=request.amount,
                currency=request.currency,
                processor_payment_id=intent.id,
                processor_status=intent.status,
            )
        except PersistenceError:
            logger.error(
                "payment_intent_orphaned",
                payment_intent_id=intent.id,
                amount=request.amount,
                currency=request.currency,
            )
            raise

        metrics.record_payment_created(request.currency, request.amount)

        logger.info(
            "payment_initiation_completed",
            payment_id=str(payment.id),
            payment_intent_id=intent.id,
            processor_status=intent.status,
        )

        return intent.client_secret
