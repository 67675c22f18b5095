"""
Webhook reconciliation: apply Stripe settlement outcomes to stored payments.

Stripe delivers events at least once and may redeliver. Only
``payment_intent.succeeded`` changes state, and re-applying it converges
on the same row state, so redeliveries and concurrent deliveries are safe
without deduplication or locking.
"""
from typing import Any, Optional

import structlog

from payment_reconciler.config import Settings
from payment_reconciler.core.exceptions import (
    AuthenticityError,
    MalformedEventError,
    PayloadTooLargeError,
    PaymentNotFoundError,
)
from payment_reconciler.database.store import PaymentStore
from payment_reconciler.integrations.stripe_gateway import StripeGateway
from payment_reconciler.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)

PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"

OUTCOME_RECONCILED = "reconciled"
OUTCOME_IGNORED = "ignored"
OUTCOME_NOT_FOUND = "not_found"


class WebhookReconciliationHandler:
    """Verifies Stripe webhooks and marks matching payments succeeded."""

    def __init__(self, gateway: StripeGateway, store: PaymentStore, settings: Settings) -> None:
        self.gateway = gateway
        self.store = store
        self.max_body_bytes = settings.webhook_max_body_bytes
        self.ack_unknown_payments = settings.webhook_ack_unknown_payments

    def check_size(self, size: int) -> None:
        """
        Reject payloads over the ceiling.

        Raises:
            PayloadTooLargeError: If ``size`` exceeds the configured maximum
        """
        if size > self.max_body_bytes:
            metrics.record_webhook_rejection("too_large")
            logger.warning(
                "webhook_payload_too_large",
                size=size,
                max_body_bytes=self.max_body_bytes,
            )
            raise PayloadTooLargeError(
                f"Webhook payload exceeds {self.max_body_bytes} bytes"
            )

    @staticmethod
    def _payment_intent_id(event: Any) -> Optional[str]:
        data = getattr(event, "data", None)
        intent = getattr(data, "object", None)
        return getattr(intent, "id", None) or None

    async def handle(self, payload: bytes, signature: Optional[str]) -> str:
        """
        Handle one webhook delivery.

        Args:
            payload: Raw request body
            signature: Stripe-Signature header value

        Returns:
            str: The outcome, one of ``reconciled``, ``ignored`` or ``not_found``
                (the last only when unknown payments are acknowledged)

        Raises:
            PayloadTooLargeError: If the payload is over the ceiling
            AuthenticityError: If signature verification fails
            MalformedEventError: If a succeeded event carries no intent ID
            PaymentNotFoundError: If no payment matches the intent ID
            PersistenceError: If the store fails
        """
        self.check_size(len(payload))

        try:
            event = self.gateway.construct_event(payload, signature)
        except AuthenticityError:
            metrics.record_webhook_rejection("authenticity")
            raise

        event_type = event.type
        if event_type != PAYMENT_INTENT_SUCCEEDED:
            metrics.record_webhook_event(str(event_type), OUTCOME_IGNORED)
            logger.info("webhook_event_ignored", event_id=event.id, event_type=event_type)
            return OUTCOME_IGNORED

        payment_intent_id = self._payment_intent_id(event)
        if payment_intent_id is None:
            metrics.record_webhook_rejection("malformed")
            logger.warning("webhook_event_missing_payment_intent", event_id=event.id)
            raise MalformedEventError("Event does not contain a payment intent ID")

        payment = await self.store.mark_succeeded(payment_intent_id)
        if payment is None:
            metrics.record_webhook_event(event_type, OUTCOME_NOT_FOUND)
            metrics.record_reconciliation_gap()
            logger.warning(
                "reconciliation_gap",
                event_id=event.id,
                payment_intent_id=payment_intent_id,
                acknowledged=self.ack_unknown_payments,
            )
            if self.ack_unknown_payments:
                return OUTCOME_NOT_FOUND
            raise PaymentNotFoundError("Payment not found")

        metrics.record_webhook_event(event_type, OUTCOME_RECONCILED)
        logger.info(
            "payment_reconciled",
            event_id=event.id,
            payment_id=str(payment.id),
            payment_intent_id=payment_intent_id,
        )
        return OUTCOME_RECONCILED
