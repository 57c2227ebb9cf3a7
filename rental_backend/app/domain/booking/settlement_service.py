"""
Settlement Orchestrator (Domain Logic).

Entry point for every booking action: confirm, start, finish, cancel,
backdate-edit and retry. Each action validates before writing, commits the
status write, then performs the side effects that status licenses.
"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from rental_backend.app.core.clock import Clock
from rental_backend.app.core.exceptions import BookingValidationError, DependencyFailureError
from rental_backend.app.domain.booking.actor import ActorContext
from rental_backend.app.domain.booking.backdate import BackdateHandler
from rental_backend.app.domain.booking.late_fee import calculate_late_fee
from rental_backend.app.domain.booking.side_effects import (
    STEP_LICENSED_BY,
    SettlementResult,
    SideEffect,
    apply_side_effect,
    commit_status_write,
    complete_settlement,
    ensure_back_office,
    load_booking,
    pending_failures,
    refresh_result,
)
from rental_backend.app.domain.booking.state_machine import (
    BookingAction,
    ensure_finish_gate,
    ensure_start_window,
    ensure_transition,
    require_note,
)
from rental_backend.app.models.booking_enums import (
    BookingStatus,
    LedgerReason,
    PaymentStatus,
    SettlementFailureStatus,
    VehicleAvailability,
)
from rental_backend.app.models.ledger_adjustment import LedgerAdjustment
from rental_backend.app.models.settlement_failure import SettlementFailure
from rental_backend.app.services.audit import AuditAction, append_audit_entry
from rental_backend.app.services.vehicle_availability import count_active_bookings, get_vehicle

logger = logging.getLogger("rental.settlement")


class SettlementOrchestrator:

    @staticmethod
    async def confirm(
        db: AsyncSession,
        booking_id: int,
        actor: ActorContext,
        clock: Clock,
        admin_note: Optional[str] = None
    ) -> SettlementResult:
        """
        Confirm a pending booking.

        Always writes CONFIRMED, never ONGOING; promotion is the schedule
        job's. Reserves the vehicle unless the booking is backdated.
        """
        booking = await load_booking(db, booking_id)
        ensure_back_office(actor)
        ensure_transition(booking, BookingAction.CONFIRM, actor)

        effects = []
        if not booking.is_backdated:
            vehicle = await get_vehicle(db, booking.vehicle_id)
            # Cancelled bookings leave the flag set; only active bookings hold the vehicle
            if await count_active_bookings(db, vehicle.id) > 0:
                raise BookingValidationError(
                    f"Vehicle {vehicle.license_plate} is held by another active booking",
                    details={"vehicle_id": vehicle.id}
                )
            effects.append(SideEffect.vehicle(booking, VehicleAvailability.RENTED))

        previous_status = booking.status
        booking.status = BookingStatus.CONFIRMED
        note = (admin_note or "").strip()
        if note:
            booking.admin_note = note
        await commit_status_write(db, booking, clock.now())

        result = SettlementResult(booking=booking, action=BookingAction.CONFIRM.value, previous_status=previous_status)
        return await complete_settlement(
            db, booking, result, effects, actor,
            audit_action=AuditAction.BOOKING_CONFIRMED,
            metadata={"admin_note": note or None}
        )

    @staticmethod
    async def start(
        db: AsyncSession,
        booking_id: int,
        clock: Clock,
        actor: Optional[ActorContext] = None
    ) -> SettlementResult:
        """
        Promote a confirmed booking to ongoing once its rental period began.

        Invoked by the schedule job, not by back-office users directly.
        """
        booking = await load_booking(db, booking_id)
        ensure_transition(booking, BookingAction.START, actor)
        ensure_start_window(booking, clock.today())

        effects = []
        if not booking.is_backdated:
            effects.append(SideEffect.vehicle(booking, VehicleAvailability.RENTED))

        previous_status = booking.status
        booking.status = BookingStatus.ONGOING
        await commit_status_write(db, booking, clock.now())

        result = SettlementResult(booking=booking, action=BookingAction.START.value, previous_status=previous_status)
        return await complete_settlement(
            db, booking, result, effects, actor,
            audit_action=AuditAction.BOOKING_STARTED
        )

    @staticmethod
    async def finish(
        db: AsyncSession,
        booking_id: int,
        actor: ActorContext,
        clock: Clock,
        actual_return_date: Optional[date] = None
    ) -> SettlementResult:
        """
        Complete a booking.

        Non-backdated: the return date is today (the end date when the
        booking is finish-enabled and still on time), the late fee is
        debited from the driver and the vehicle is released.
        Backdated: delegated to BackdateHandler.

        Raises:
            InvalidTransitionError: booking not confirmed/ongoing (pending is
                allowed for privileged roles)
            InsufficientPermissionsError: finish_enabled is false and the
                actor is not privileged
            BookingValidationError: bad backdate date or vehicle rate
            DependencyFailureError: completed, but a side effect failed
        """
        booking = await load_booking(db, booking_id)
        ensure_back_office(actor)
        ensure_transition(booking, BookingAction.FINISH, actor)
        ensure_finish_gate(booking, actor)

        if booking.is_backdated:
            return await BackdateHandler.finish(db, booking, actor, clock, actual_return_date)

        vehicle = await get_vehicle(db, booking.vehicle_id)
        today = clock.today()
        if booking.finish_enabled and today <= booking.end_date:
            returned_on = booking.end_date
        else:
            returned_on = today

        quote = calculate_late_fee(booking.end_date, returned_on, vehicle.daily_rate)

        effects = []
        if quote.late_fee > 0:
            effects.append(SideEffect.driver_ledger(
                booking,
                amount=-quote.late_fee,
                reason=LedgerReason.LATE_FEE,
                description=f"Late fee {quote.late_days} day(s) booking {booking.code_booking}"
            ))
        # A pending booking never took the vehicle; release only if no active booking holds it
        if booking.status != BookingStatus.PENDING or await count_active_bookings(db, vehicle.id) == 0:
            effects.append(SideEffect.vehicle(booking, VehicleAvailability.AVAILABLE))

        previous_status = booking.status
        now = clock.now()
        booking.status = BookingStatus.COMPLETED
        booking.actual_return_date = returned_on
        booking.late_days = quote.late_days
        booking.late_fee = quote.late_fee
        booking.completed_at = now
        await commit_status_write(db, booking, now)

        result = SettlementResult(booking=booking, action=BookingAction.FINISH.value, previous_status=previous_status)
        return await complete_settlement(
            db, booking, result, effects, actor,
            audit_action=AuditAction.BOOKING_COMPLETED,
            metadata={
                "is_backdated": False,
                "actual_return_date": returned_on.isoformat(),
                "late_days": quote.late_days,
                "late_fee": quote.late_fee,
                "forced": not booking.finish_enabled,
            }
        )

    @staticmethod
    async def cancel(
        db: AsyncSession,
        booking_id: int,
        actor: ActorContext,
        clock: Clock,
        reason: str
    ) -> SettlementResult:
        """
        Cancel a non-terminal booking and refund what was paid.

        The refund is credited to the driver's saldo; backdated bookings
        never move money.
        """
        booking = await load_booking(db, booking_id)
        ensure_back_office(actor)
        ensure_transition(booking, BookingAction.CANCEL, actor)
        reason = require_note(reason, "reason")

        refund = booking.paid_amount or 0
        effects = []
        if refund > 0 and not booking.is_backdated:
            effects.append(SideEffect.driver_ledger(
                booking,
                amount=refund,
                reason=LedgerReason.REFUND,
                description=f"Refund cancelled booking {booking.code_booking}"
            ))

        previous_status = booking.status
        now = clock.now()
        booking.status = BookingStatus.CANCELLED
        booking.cancellation_reason = reason
        booking.cancelled_at = now
        if effects:
            booking.refunded_amount = refund
            booking.payment_status = PaymentStatus.REFUNDED
        await commit_status_write(db, booking, now)

        result = SettlementResult(booking=booking, action=BookingAction.CANCEL.value, previous_status=previous_status)
        return await complete_settlement(
            db, booking, result, effects, actor,
            audit_action=AuditAction.BOOKING_CANCELLED,
            metadata={"reason": reason, "refund_amount": refund if effects else 0}
        )

    @staticmethod
    async def edit_backdated_return(
        db: AsyncSession,
        booking_id: int,
        actor: ActorContext,
        clock: Clock,
        actual_return_date: date,
        note: str
    ) -> SettlementResult:
        return await BackdateHandler.edit_return_date(db, booking_id, actor, clock, actual_return_date, note)

    @staticmethod
    async def retry_failed_steps(
        db: AsyncSession,
        booking_id: int,
        actor: ActorContext,
        clock: Clock
    ) -> SettlementResult:
        """
        Re-run side effects that failed after a committed status write.

        A step is only replayed while the booking is still in a status that
        licenses it; otherwise it stays failed.

        Raises:
            BookingValidationError: nothing to retry
            DependencyFailureError: some steps still fail
        """
        booking = await load_booking(db, booking_id)
        ensure_back_office(actor)

        failures = await pending_failures(db, booking_id)
        if not failures:
            raise BookingValidationError(
                f"Booking {booking_id} has no failed settlement steps",
                details={"booking_id": booking_id}
            )

        status = booking.status
        result = SettlementResult(booking=booking, action="retry", previous_status=status)
        still_failing = []

        # Rollbacks below expire every loaded instance
        queued = [(failure.id, failure.step, failure.payload or {}) for failure in failures]

        for failure_id, step, payload in queued:
            if status not in STEP_LICENSED_BY[step]:
                logger.warning(
                    "Not replaying %s for booking %s in status %s", step.value, booking_id, status.value
                )
                still_failing.append(step.value)
                continue

            effect = SideEffect(step, payload)
            try:
                outcome = await apply_side_effect(db, booking_id, effect, actor.user_id)
                failure = await db.get(SettlementFailure, failure_id)
                failure.status = SettlementFailureStatus.RESOLVED
                failure.retry_count += 1
                failure.last_retry_at = clock.now()
                failure.resolved_at = clock.now()
                await db.commit()
            except Exception as e:
                await db.rollback()
                logger.error("Retry of %s failed for booking %s: %s", step.value, booking_id, e, exc_info=True)
                failure = await db.get(SettlementFailure, failure_id)
                failure.retry_count += 1
                failure.last_retry_at = clock.now()
                failure.error_message = f"{type(e).__name__}: {e}"
                await db.commit()
                still_failing.append(step.value)
                continue

            result.resolved_steps.append(step.value)
            if isinstance(outcome, LedgerAdjustment):
                result.ledger_adjustments.append(outcome)
            else:
                result.vehicle_availability = outcome

        await refresh_result(db, result)

        audit_log = await append_audit_entry(
            db, AuditAction.SETTLEMENT_RETRIED, actor=actor, booking_id=booking_id,
            metadata={
                "status": status.value,
                "resolved_steps": result.resolved_steps,
                "failed_steps": still_failing,
                "amount_moved": result.amount_moved,
            }
        )
        if audit_log is not None:
            result.audit_log_id = audit_log.id
        else:
            await refresh_result(db, result)

        if still_failing:
            raise DependencyFailureError(booking_id, status.value, still_failing)
        return result
