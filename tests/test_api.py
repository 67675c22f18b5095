"""
Integration tests for the HTTP surface.
"""
from typing import Any, Callable, Iterable
from unittest.mock import MagicMock

import pytest
import stripe
from httpx import AsyncClient
from starlette.requests import Request

from payment_reconciler.api.routes import read_limited_body
from payment_reconciler.core.exceptions import BodyReadError, PayloadTooLargeError
from payment_reconciler.core.reconciliation import WebhookReconciliationHandler
from payment_reconciler.database import PaymentStatus, PaymentStore


def build_request(messages: Iterable[dict[str, Any]], headers: Iterable[tuple[bytes, bytes]] = ()) -> Request:
    """Build a webhook request whose body arrives as the given ASGI messages."""
    pending = list(messages)

    async def receive() -> dict[str, Any]:
        return pending.pop(0)

    scope = {
        "type": "http",
        "method": "POST",
        "path": "/webhook",
        "query_string": b"",
        "headers": list(headers),
    }
    return Request(scope, receive)


class TestCreatePaymentIntentEndpoint:
    """Tests for POST /create-payment-intent."""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_create_payment_intent(
        self, client: AsyncClient, store: PaymentStore
    ) -> None:
        response = await client.post(
            "/create-payment-intent", json={"amount": 2000, "currency": "usd"}
        )

        assert response.status_code == 200
        assert response.json() == {"client_secret": "pi_test_1_secret_abc"}
        assert response.headers["X-Request-ID"]

        payment = await store.get_by_processor_payment_id("pi_test_1")
        assert payment is not None
        assert payment.amount == 2000
        assert payment.status == PaymentStatus.CREATED.value

    @pytest.mark.integration
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            {"currency": "usd"},
            {"amount": "lots", "currency": "usd"},
            {"amount": 1000, "currency": ""},
        ],
    )
    async def test_validation_error(
        self,
        client: AsyncClient,
        stripe_sdk: MagicMock,
        count_payments: Callable[[], Any],
        body: dict[str, Any],
    ) -> None:
        response = await client.post("/create-payment-intent", json=body)

        assert response.status_code == 400
        assert "error" in response.json()
        stripe_sdk.payment_intents.create.assert_not_called()
        assert await count_payments() == 0

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_invalid_json_body(
        self, client: AsyncClient, count_payments: Callable[[], Any]
    ) -> None:
        response = await client.post(
            "/create-payment-intent",
            content=b"amount=1000",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Request body must be valid JSON"}
        assert await count_payments() == 0

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_upstream_error(
        self,
        client: AsyncClient,
        stripe_sdk: MagicMock,
        count_payments: Callable[[], Any],
    ) -> None:
        stripe_sdk.payment_intents.create.side_effect = stripe.APIConnectionError(
            "Could not connect to Stripe"
        )

        response = await client.post(
            "/create-payment-intent", json={"amount": 1000, "currency": "usd"}
        )

        assert response.status_code == 500
        assert "Could not connect to Stripe" in response.json()["error"]
        assert await count_payments() == 0


class TestWebhookEndpoint:
    """Tests for POST /webhook."""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_full_reconciliation_flow(
        self,
        client: AsyncClient,
        store: PaymentStore,
        make_event: Callable[..., bytes],
        sign: Callable[..., str],
    ) -> None:
        created = await client.post(
            "/create-payment-intent", json={"amount": 1500, "currency": "eur"}
        )
        assert created.status_code == 200

        payload = make_event(payment_intent_id="pi_test_1")
        for _ in range(2):
            response = await client.post(
                "/webhook", content=payload, headers={"Stripe-Signature": sign(payload)}
            )
            assert response.status_code == 200
            assert response.json() == {"status": "success"}

        payment = await store.get_by_processor_payment_id("pi_test_1")
        assert payment.status == PaymentStatus.SUCCEEDED.value

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_bad_signature(
        self, client: AsyncClient, make_event: Callable[..., bytes], sign: Callable[..., str]
    ) -> None:
        payload = make_event()

        response = await client.post(
            "/webhook",
            content=payload,
            headers={"Stripe-Signature": sign(payload, secret="whsec_wrong")},
        )

        assert response.status_code == 400
        assert "signature" in response.json()["error"]

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_missing_signature_header(
        self, client: AsyncClient, make_event: Callable[..., bytes]
    ) -> None:
        response = await client.post("/webhook", content=make_event())

        assert response.status_code == 400
        assert response.json() == {"error": "Missing Stripe-Signature header"}

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_unknown_payment(
        self, client: AsyncClient, make_event: Callable[..., bytes], sign: Callable[..., str]
    ) -> None:
        payload = make_event(payment_intent_id="pi_never_stored")

        response = await client.post(
            "/webhook", content=payload, headers={"Stripe-Signature": sign(payload)}
        )

        assert response.status_code == 404
        assert response.json() == {"error": "Payment not found"}

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_succeeded_event_without_intent_id(
        self, client: AsyncClient, make_event: Callable[..., bytes], sign: Callable[..., str]
    ) -> None:
        payload = make_event(payment_intent_id=None)

        response = await client.post(
            "/webhook", content=payload, headers={"Stripe-Signature": sign(payload)}
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Event does not contain a payment intent ID"}

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_unrecognized_event_type(
        self, client: AsyncClient, make_event: Callable[..., bytes], sign: Callable[..., str]
    ) -> None:
        payload = make_event(event_type="payment_intent.created", payment_intent_id="pi_never_stored")

        response = await client.post(
            "/webhook", content=payload, headers={"Stripe-Signature": sign(payload)}
        )

        assert response.status_code == 200
        assert response.json() == {"status": "success"}

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_oversize_payload(self, client: AsyncClient, sign: Callable[..., str]) -> None:
        payload = b"{" + b" " * 65536 + b"}"

        response = await client.post(
            "/webhook", content=payload, headers={"Stripe-Signature": sign(payload)}
        )

        assert response.status_code == 413
        assert "error" in response.json()


class TestReadLimitedBody:
    """Tests for streaming the webhook body under the size ceiling."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_reads_chunked_body(self, webhook_handler: WebhookReconciliationHandler) -> None:
        request = build_request(
            [
                {"type": "http.request", "body": b'{"id": ', "more_body": True},
                {"type": "http.request", "body": b'"evt_1"}', "more_body": False},
            ]
        )

        assert await read_limited_body(request, webhook_handler) == b'{"id": "evt_1"}'

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_declared_length_over_ceiling(
        self, webhook_handler: WebhookReconciliationHandler
    ) -> None:
        request = build_request([], headers=[(b"content-length", b"70000")])

        with pytest.raises(PayloadTooLargeError):
            await read_limited_body(request, webhook_handler)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_streamed_body_over_ceiling(
        self, webhook_handler: WebhookReconciliationHandler
    ) -> None:
        chunk = b"x" * 40000
        request = build_request(
            [
                {"type": "http.request", "body": chunk, "more_body": True},
                {"type": "http.request", "body": chunk, "more_body": True},
                {"type": "http.request", "body": chunk, "more_body": False},
            ]
        )

        with pytest.raises(PayloadTooLargeError):
            await read_limited_body(request, webhook_handler)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_client_disconnect(self, webhook_handler: WebhookReconciliationHandler) -> None:
        request = build_request(
            [
                {"type": "http.request", "body": b"{", "more_body": True},
                {"type": "http.disconnect"},
            ]
        )

        with pytest.raises(BodyReadError) as exc_info:
            await read_limited_body(request, webhook_handler)

        assert exc_info.value.status_code == 503


class TestMonitoringEndpoints:
    """Tests for health and metrics."""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_health_check(self, client: AsyncClient) -> None:
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["checks"]["database"]["status"] == "healthy"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_metrics_endpoint(self, client: AsyncClient) -> None:
        await client.post("/create-payment-intent", json={"amount": 1000, "currency": "usd"})

        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "text/plain" in response.headers["content-type"]
        assert "payment_intents_created_total" in response.text
