"""
Main FastAPI application.

Payment intent creation and Stripe webhook reconciliation with:
- Explicitly wired handlers, gateway and store
- Error translation to JSON bodies
- Request ID tracking
- Structured logging
- Prometheus metrics
"""
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from payment_reconciler import __version__
from payment_reconciler.config import Settings, get_settings
from payment_reconciler.core.exceptions import PaymentError
from payment_reconciler.core.initiation import PaymentInitiationHandler
from payment_reconciler.core.reconciliation import WebhookReconciliationHandler
from payment_reconciler.database.connection import create_engine, create_session_factory, init_db
from payment_reconciler.database.store import PaymentStore
from payment_reconciler.integrations.stripe_gateway import StripeGateway
from payment_reconciler.monitoring.health import HealthCheck
from payment_reconciler.monitoring.logging import setup_logging

from .routes import monitoring_router, payment_router, webhook_router

logger = structlog.get_logger(__name__)


def create_app(
    settings: Settings,
    gateway: Optional[StripeGateway] = None,
    store: Optional[PaymentStore] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Application settings
        gateway: Optional Stripe gateway (built from settings if omitted)
        store: Optional payment store. When omitted, an engine is built
            from ``settings.database_url`` and its schema is created at
            startup; a failure there aborts startup.

    Returns:
        FastAPI: The configured application
    """
    engine = None
    if store is None:
        engine = create_engine(settings)
        store = PaymentStore(create_session_factory(engine))
    if gateway is None:
        gateway = StripeGateway(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, Any]:
        """
        Application lifespan manager.

        Handles startup and shutdown events.
        """
        logger.info(
            "application_startup",
            app_name=settings.app_name,
            env=settings.app_env,
            test_mode=settings.is_test_mode,
        )

        if engine is not None:
            try:
                await init_db(engine)
                logger.info("database_initialized")
            except Exception as e:
                logger.error("database_initialization_failed", error=str(e))
                raise

        yield

        logger.info("application_shutdown")
        if engine is not None:
            await engine.dispose()
            logger.info("database_connections_closed")

    app = FastAPI(
        title="Payment Reconciler",
        description=(
            "Creates Stripe payment intents, records them, and reconciles them "
            "from signed Stripe webhook events."
        ),
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
    )

    app.state.settings = settings
    app.state.initiation_handler = PaymentInitiationHandler(gateway, store)
    app.state.webhook_handler = WebhookReconciliationHandler(gateway, store, settings)
    app.state.health_check = HealthCheck(store)

    @app.middleware("http")
    async def add_request_id_middleware(request: Request, call_next: Any) -> Response:
        """
        Add request ID to all requests for tracing.

        Also adds timing information and structured logging context.
        """
        request_id = str(uuid.uuid4())
        start_time = time.time()

        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        logger.info(
            "request_started",
            client_host=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id

            logger.info(
                "request_completed",
                status_code=response.status_code,
                duration_seconds=time.time() - start_time,
            )
            return response

        except Exception as e:
            logger.error(
                "request_failed",
                error=str(e),
                duration_seconds=time.time() - start_time,
            )
            raise

        finally:
            structlog.contextvars.clear_contextvars()

    @app.exception_handler(PaymentError)
    async def payment_error_handler(request: Request, exc: PaymentError) -> JSONResponse:
        """Translate workflow errors to their status and a JSON error body."""
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "payment_request_error",
            error=exc.message,
            error_type=type(exc).__name__,
            status_code=exc.status_code,
        )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Report request validation failures as 400 rather than 422."""
        logger.warning("request_validation_error", errors=str(exc.errors()))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid request"},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler for unhandled exceptions.
        """
        logger.error(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal server error",
                "message": "An unexpected error occurred. Please try again later.",
            },
        )

    app.include_router(payment_router)
    app.include_router(webhook_router)
    app.include_router(monitoring_router)

    return app


def build_app() -> FastAPI:
    """
    Load settings from the environment, configure logging and build the app.

    Usable as ``uvicorn --factory payment_reconciler.api.main:build_app``.
    Missing Stripe credentials raise here and abort startup.
    """
    settings = get_settings()
    setup_logging(settings)
    return create_app(settings)


def main() -> None:
    """Run the API server."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        build_app(),
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
