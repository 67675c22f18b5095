"""
Pytest configuration and fixtures.
"""
import hashlib
import hmac
import itertools
import json
import time
from types import SimpleNamespace
from typing import Any, AsyncGenerator, Callable, Optional
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from payment_reconciler.api.main import create_app
from payment_reconciler.config import Settings
from payment_reconciler.core.initiation import PaymentInitiationHandler
from payment_reconciler.core.reconciliation import WebhookReconciliationHandler
from payment_reconciler.database import Payment, PaymentStore, create_session_factory, init_db
from payment_reconciler.integrations.stripe_gateway import StripeGateway

TEST_WEBHOOK_SECRET = "whsec_test_fake_secret"


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "unit: fast tests with no network access")
    config.addinivalue_line("markers", "integration: tests that drive the HTTP app")


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        _env_file=None,
        stripe_secret_key="sk_test_fake_key_for_testing",
        stripe_webhook_secret=TEST_WEBHOOK_SECRET,
        database_url="sqlite+aiosqlite://",
        app_name="payment-reconciler-test",
        app_env="test",
        log_level="DEBUG",
    )


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, Any]:
    """In-memory SQLite engine shared by every session of a test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture
def store(session_factory: async_sessionmaker[AsyncSession]) -> PaymentStore:
    return PaymentStore(session_factory)


@pytest.fixture
def stripe_sdk() -> MagicMock:
    """
    Stand-in for ``stripe.StripeClient``.

    Each create call returns a fresh intent ID.
    """
    counter = itertools.count(1)

    def _create(params: dict[str, Any]) -> SimpleNamespace:
        intent_id = f"pi_test_{next(counter)}"
        return SimpleNamespace(
            id=intent_id,
            client_secret=f"{intent_id}_secret_abc",
            status="requires_payment_method",
        )

    client = MagicMock()
    client.payment_intents.create.side_effect = _create
    return client


@pytest.fixture
def gateway(test_settings: Settings, stripe_sdk: MagicMock) -> StripeGateway:
    return StripeGateway(test_settings, client=stripe_sdk)


@pytest.fixture
def initiation_handler(gateway: StripeGateway, store: PaymentStore) -> PaymentInitiationHandler:
    return PaymentInitiationHandler(gateway, store)


@pytest.fixture
def webhook_handler(
    gateway: StripeGateway, store: PaymentStore, test_settings: Settings
) -> WebhookReconciliationHandler:
    return WebhookReconciliationHandler(gateway, store, test_settings)


@pytest_asyncio.fixture
async def client(
    test_settings: Settings, gateway: StripeGateway, store: PaymentStore
) -> AsyncGenerator[AsyncClient, Any]:
    """Create test HTTP client."""
    app = create_app(test_settings, gateway=gateway, store=store)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_event() -> Callable[..., bytes]:
    """Build a raw Stripe event payload."""

    def _make(
        event_type: str = "payment_intent.succeeded",
        payment_intent_id: Optional[str] = "pi_test_1",
        event_id: str = "evt_test_1",
    ) -> bytes:
        intent: dict[str, Any] = {"object": "payment_intent", "status": "succeeded"}
        if payment_intent_id is not None:
            intent["id"] = payment_intent_id
        return json.dumps(
            {
                "id": event_id,
                "object": "event",
                "type": event_type,
                "data": {"object": intent},
            }
        ).encode("utf-8")

    return _make


@pytest.fixture
def sign() -> Callable[..., str]:
    """Compute a Stripe-Signature header for a payload."""

    def _sign(
        payload: bytes,
        secret: str = TEST_WEBHOOK_SECRET,
        timestamp: Optional[int] = None,
    ) -> str:
        timestamp = int(time.time()) if timestamp is None else timestamp
        signed_payload = f"{timestamp}.".encode("utf-8") + payload
        signature = hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()
        return f"t={timestamp},v1={signature}"

    return _sign


@pytest.fixture
def count_payments(session_factory: async_sessionmaker[AsyncSession]) -> Callable[[], Any]:
    async def _count() -> int:
        async with session_factory() as session:
            result = await session.execute(select(func.count()).select_from(Payment))
            return result.scalar_one()

    return _count
