"""SQLAlchemy database models for the payment reconciler."""
import enum
import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Integer, String, Uuid, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class PaymentStatus(str, enum.Enum):
    """Local payment status. The only transition is CREATED -> SUCCEEDED."""

    CREATED = "created"
    SUCCEEDED = "succeeded"


class Payment(Base):
    """
    Payment records table.

    One row per Stripe PaymentIntent created through this service.
    ``processor_payment_id`` is set at insert, never changes, and is the
    key webhook events are matched on.
    """

    __tablename__ = "payments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    processor_payment_id: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.CREATED.value
    )
    processor_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="positive_amount"),
        CheckConstraint("length(currency) = 3", name="valid_currency"),
        CheckConstraint("status IN ('created', 'succeeded')", name="valid_status"),
    )

    def __repr__(self) -> str:
        """String representation of Payment."""
        return (
            f"<Payment(id={self.id}, processor_payment_id={self.processor_payment_id}, "
            f"amount={self.amount}, status={self.status})>"
        )
