"""Database package for the payment reconciler."""
from .connection import create_engine, create_session_factory, init_db
from .models import Base, Payment, PaymentStatus
from .store import PaymentStore

__all__ = [
    "Base",
    "Payment",
    "PaymentStatus",
    "PaymentStore",
    "create_engine",
    "create_session_factory",
    "init_db",
]
