"""
Backdate Handler.

Backdated bookings are entered after the fact. They complete without a late
fee, without a ledger entry and without touching vehicle availability; the
only thing recorded is the return date, which must match the scheduled end.
"""

from datetime import date
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from rental_backend.app.core.clock import Clock
from rental_backend.app.core.exceptions import BookingValidationError, InsufficientPermissionsError
from rental_backend.app.domain.booking.actor import ActorContext
from rental_backend.app.domain.booking.late_fee import to_calendar_day
from rental_backend.app.domain.booking.side_effects import (
    SettlementResult,
    commit_status_write,
    complete_settlement,
    ensure_back_office,
    load_booking,
)
from rental_backend.app.domain.booking.state_machine import BookingAction, ensure_transition, require_note
from rental_backend.app.models.booking import Booking
from rental_backend.app.models.booking_enums import BookingStatus
from rental_backend.app.services.audit import AuditAction


def is_reconciled(booking: Booking) -> bool:
    """A backdated booking is reconciled once its return date equals its end date."""
    return booking.actual_return_date == booking.end_date


class BackdateHandler:

    @staticmethod
    async def finish(
        db: AsyncSession,
        booking: Booking,
        actor: ActorContext,
        clock: Clock,
        actual_return_date: Optional[date]
    ) -> SettlementResult:
        """
        Complete a backdated booking.

        The caller has already checked transition legality and the
        finish_enabled gate.

        Raises:
            BookingValidationError: return date missing or not equal to end_date
        """
        if actual_return_date is None:
            raise BookingValidationError(
                "actual_return_date is required to finish a backdated booking",
                details={"booking_id": booking.id, "end_date": booking.end_date.isoformat()}
            )

        submitted = to_calendar_day(actual_return_date)
        if submitted != booking.end_date:
            raise BookingValidationError(
                "Backdated booking return date must equal its end date",
                details={
                    "booking_id": booking.id,
                    "end_date": booking.end_date.isoformat(),
                    "actual_return_date": submitted.isoformat(),
                }
            )

        previous_status = booking.status
        now = clock.now()

        booking.status = BookingStatus.COMPLETED
        booking.actual_return_date = submitted
        booking.late_days = 0
        booking.late_fee = 0
        booking.completed_at = now
        await commit_status_write(db, booking, now)

        result = SettlementResult(
            booking=booking,
            action=BookingAction.FINISH.value,
            previous_status=previous_status
        )
        return await complete_settlement(
            db, booking, result,
            effects=[],
            actor=actor,
            audit_action=AuditAction.BOOKING_COMPLETED,
            metadata={
                "is_backdated": True,
                "actual_return_date": submitted.isoformat(),
                "late_days": 0,
                "late_fee": 0,
            }
        )

    @staticmethod
    async def edit_return_date(
        db: AsyncSession,
        booking_id: int,
        actor: ActorContext,
        clock: Clock,
        actual_return_date: date,
        note: str
    ) -> SettlementResult:
        """
        Correct the return date of a completed backdated booking.

        Unreconciled records may be corrected by any back-office role; once
        reconciled only Super Admin / Admin may change them. The previous
        value and the editor are kept on the booking and in the audit row.
        """
        booking = await load_booking(db, booking_id)
        ensure_back_office(actor)

        if not booking.is_backdated:
            raise BookingValidationError(
                "Return date can only be edited on backdated bookings",
                details={"booking_id": booking_id}
            )

        ensure_transition(booking, BookingAction.BACKDATE_EDIT, actor)
        note = require_note(note, "note")

        if is_reconciled(booking) and not actor.is_privileged:
            raise InsufficientPermissionsError(
                message="Only Super Admin or Admin can edit a reconciled return date",
                details={"booking_id": booking_id, "role": actor.role.value}
            )

        new_date = to_calendar_day(actual_return_date)
        if new_date < booking.start_date:
            raise BookingValidationError(
                "Return date cannot precede the booking start date",
                details={"start_date": booking.start_date.isoformat(), "actual_return_date": new_date.isoformat()}
            )

        previous_status = booking.status
        previous_date = booking.actual_return_date
        now = clock.now()

        booking.actual_return_date = new_date
        booking.return_date_note = note
        booking.return_date_edited_by = actor.display_name
        await commit_status_write(db, booking, now)

        result = SettlementResult(
            booking=booking,
            action=BookingAction.BACKDATE_EDIT.value,
            previous_status=previous_status
        )
        return await complete_settlement(
            db, booking, result,
            effects=[],
            actor=actor,
            audit_action=AuditAction.BOOKING_RETURN_DATE_EDITED,
            metadata={
                "previous_actual_return_date": previous_date.isoformat() if previous_date else None,
                "actual_return_date": new_date.isoformat(),
                "note": note,
                "edited_by": actor.display_name,
            }
        )
