"""Stripe payment intent creation and webhook-driven reconciliation service."""

__version__ = "0.1.0"
