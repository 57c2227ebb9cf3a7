"""
Booking payment service.

Records money received against a booking and keeps `paid_amount` /
`payment_status` in step. The paid amount is what a cancellation refunds.
"""

import logging
from typing import List, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rental_backend.app.core.clock import Clock
from rental_backend.app.core.exceptions import BookingValidationError, InvalidTransitionError
from rental_backend.app.domain.booking.actor import ActorContext
from rental_backend.app.domain.booking.side_effects import commit_status_write, ensure_back_office, load_booking
from rental_backend.app.models.booking import Booking
from rental_backend.app.models.booking_enums import BookingStatus, PaymentStatus
from rental_backend.app.models.booking_payment import BookingPayment
from rental_backend.app.services.audit import AuditAction, append_audit_entry

logger = logging.getLogger("rental.payments")


def payment_status_for(paid_amount: float, total_amount: float) -> PaymentStatus:
    if paid_amount <= 0:
        return PaymentStatus.UNPAID
    if paid_amount < total_amount:
        return PaymentStatus.PARTIAL
    return PaymentStatus.PAID


async def record_payment(
    db: AsyncSession,
    booking_id: int,
    actor: ActorContext,
    clock: Clock,
    amount: float,
    payment_method: str
) -> Tuple[Booking, BookingPayment]:
    """
    Record a payment on a booking.

    Args:
        db: Database session
        booking_id: Booking being paid
        actor: Back-office user recording the payment
        clock: Time source
        amount: Amount received, must be positive
        payment_method: e.g. "cash", "transfer"

    Returns:
        (updated booking, created payment)

    Raises:
        InvalidTransitionError: booking is cancelled
        BookingValidationError: non-positive amount or missing method
    """
    booking = await load_booking(db, booking_id)
    ensure_back_office(actor)

    if booking.status == BookingStatus.CANCELLED:
        raise InvalidTransitionError("record payment on", booking.status.value)
    if amount is None or amount <= 0:
        raise BookingValidationError("Payment amount must be positive", details={"amount": amount})
    method = (payment_method or "").strip()
    if not method:
        raise BookingValidationError("payment_method is required", details={"field": "payment_method"})

    payment = BookingPayment(
        booking_id=booking.id,
        amount=amount,
        payment_method=method,
        recorded_by_id=actor.user_id
    )
    db.add(payment)

    booking.paid_amount = (booking.paid_amount or 0) + amount
    booking.payment_status = payment_status_for(booking.paid_amount, booking.total_amount)
    await commit_status_write(db, booking, clock.now())
    await db.refresh(payment)

    logger.info(
        "Payment %s recorded on booking %s: paid %s of %s",
        amount, booking_id, booking.paid_amount, booking.total_amount
    )

    await append_audit_entry(
        db, AuditAction.PAYMENT_RECORDED, actor=actor, booking_id=booking_id,
        metadata={
            "code_booking": booking.code_booking,
            "payment_id": payment.id,
            "amount": amount,
            "payment_method": method,
            "paid_amount": booking.paid_amount,
            "payment_status": booking.payment_status.value,
        }
    )
    await db.refresh(booking)
    await db.refresh(payment)
    return booking, payment


async def list_payments(db: AsyncSession, booking_id: int) -> List[BookingPayment]:
    result = await db.execute(
        select(BookingPayment)
        .where(BookingPayment.booking_id == booking_id)
        .order_by(BookingPayment.id)
    )
    return list(result.scalars().all())
