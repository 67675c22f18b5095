"""
Prometheus metrics for payment reconciliation monitoring.

Tracks:
- Payment intents created by currency
- Stripe API call counts, errors and duration
- Webhook events by type and outcome
- Reconciliation gaps (succeeded events with no local payment)
"""
from prometheus_client import Counter, Histogram

# Payment metrics
payment_intents_created_total = Counter(
    "payment_intents_created_total",
    "Total payment intents created and stored",
    ["currency"],
)

payment_amount = Histogram(
    "payment_amount_minor_units",
    "Payment amounts in minor currency units",
    buckets=(50, 100, 500, 1000, 5000, 10000, 50000, 100000, 500000, 1000000),
)

# Stripe API metrics
stripe_api_requests_total = Counter(
    "stripe_api_requests_total",
    "Total Stripe API requests",
    ["operation", "status"],
)

stripe_api_errors_total = Counter(
    "stripe_api_errors_total",
    "Total Stripe API errors",
    ["error_type"],
)

stripe_api_duration_seconds = Histogram(
    "stripe_api_duration_seconds",
    "Stripe API call duration in seconds",
    ["operation"],
    buckets=(0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0),
)

# Webhook metrics
webhook_events_total = Counter(
    "webhook_events_total",
    "Total webhook events handled",
    ["event_type", "outcome"],  # outcome: reconciled, ignored, not_found
)

webhook_rejections_total = Counter(
    "webhook_rejections_total",
    "Total webhook requests rejected before reaching an event handler",
    ["reason"],  # too_large, authenticity, malformed
)

reconciliation_gaps_total = Counter(
    "reconciliation_gaps_total",
    "Succeeded events whose payment intent has no local payment",
)


class MetricsCollector:
    """Helper class for collecting metrics."""

    @staticmethod
    def record_payment_created(currency: str, amount: int) -> None:
        """Record a stored payment intent."""
        payment_intents_created_total.labels(currency=currency).inc()
        payment_amount.observe(amount)

    @staticmethod
    def record_stripe_api_call(operation: str, status: str, duration_seconds: float) -> None:
        """Record Stripe API call."""
        stripe_api_requests_total.labels(operation=operation, status=status).inc()
        stripe_api_duration_seconds.labels(operation=operation).observe(duration_seconds)

    @staticmethod
    def record_stripe_api_error(error_type: str) -> None:
        """Record Stripe API error."""
        stripe_api_errors_total.labels(error_type=error_type).inc()

    @staticmethod
    def record_webhook_event(event_type: str, outcome: str) -> None:
        """Record a verified webhook event."""
        webhook_events_total.labels(event_type=event_type, outcome=outcome).inc()

    @staticmethod
    def record_webhook_rejection(reason: str) -> None:
        """Record a rejected webhook request."""
        webhook_rejections_total.labels(reason=reason).inc()

    @staticmethod
    def record_reconciliation_gap() -> None:
        """Record a succeeded event with no matching payment."""
        reconciliation_gaps_total.inc()


# Export singleton instance
metrics = MetricsCollector()
