"""External integrations for payment processing."""
from .stripe_gateway import PaymentIntentResult, StripeGateway

__all__ = ["PaymentIntentResult", "StripeGateway"]
