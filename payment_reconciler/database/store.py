"""
Payment store: the read/write operations the payment workflows issue.

Every public method runs in its own session and transaction. SQLAlchemy
failures are surfaced as ``PersistenceError``.
"""
from typing import Optional

import structlog
from sqlalchemy import func, select, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payment_reconciler.core.exceptions import PersistenceError
from payment_reconciler.database.models import Payment, PaymentStatus

logger = structlog.get_logger(__name__)


class PaymentStore:
    """Persisted payments, shared by the initiation and reconciliation handlers."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def insert(
        self,
        amount: int,
        currency: str,
        processor_payment_id: str,
        processor_status: Optional[str] = None,
    ) -> Payment:
        """
        Insert a newly created payment.

        Args:
            amount: Amount in minor currency units
            currency: Lowercase ISO currency code
            processor_payment_id: Stripe PaymentIntent ID
            processor_status: Status Stripe reported at creation

        Returns:
            Payment: The persisted row

        Raises:
            PersistenceError: If the write fails
        """
        payment = Payment(
            amount=amount,
            currency=currency,
            processor_payment_id=processor_payment_id,
            status=PaymentStatus.CREATED.value,
            processor_status=processor_status,
        )
        try:
            async with self._session_factory() as session:
                session.add(payment)
                await session.commit()
                await session.refresh(payment)
        except SQLAlchemyError as e:
            logger.error(
                "payment_insert_failed",
                processor_payment_id=processor_payment_id,
                error=str(e),
            )
            raise PersistenceError(f"Failed to store payment: {e}", original_error=e) from e

        logger.info(
            "payment_inserted",
            payment_id=str(payment.id),
            processor_payment_id=processor_payment_id,
        )
        return payment

    async def get_by_processor_payment_id(self, processor_payment_id: str) -> Optional[Payment]:
        """Look up a payment by its Stripe PaymentIntent ID."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Payment).where(Payment.processor_payment_id == processor_payment_id)
                )
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to look up payment: {e}", original_error=e) from e

    async def mark_succeeded(self, processor_payment_id: str) -> Optional[Payment]:
        """
        Set a payment's status to succeeded.

        The update is issued even when the row is already succeeded, so a
        redelivered event converges on the same end state.

        Args:
            processor_payment_id: Stripe PaymentIntent ID

        Returns:
            Optional[Payment]: The updated row, or None if no row matches

        Raises:
            PersistenceError: If the lookup or update fails
        """
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Payment).where(Payment.processor_payment_id == processor_payment_id)
                )
                payment = result.scalar_one_or_none()
                if payment is None:
                    return None

                previous_status = payment.status
                await session.execute(
                    update(Payment)
                    .where(Payment.id == payment.id)
                    .values(
                        status=PaymentStatus.SUCCEEDED.value,
                        processor_status=PaymentStatus.SUCCEEDED.value,
                        updated_at=func.now(),
                    )
                    .execution_options(synchronize_session=False)
                )
                await session.commit()
                await session.refresh(payment)
        except SQLAlchemyError as e:
            logger.error(
                "payment_update_failed",
                processor_payment_id=processor_payment_id,
                error=str(e),
            )
            raise PersistenceError(f"Failed to update payment: {e}", original_error=e) from e

        logger.info(
            "payment_marked_succeeded",
            payment_id=str(payment.id),
            processor_payment_id=processor_payment_id,
            previous_status=previous_status,
        )
        return payment

    async def ping(self) -> None:
        """Run a trivial query to check connectivity."""
        async with self._session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
