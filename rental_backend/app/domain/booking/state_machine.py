"""
Booking state machine.

Which action is legal from which status, and what status it writes.
Every check here runs before any write, so a rejection never mutates.
"""

import enum
from datetime import date

from rental_backend.app.core.exceptions import (
    InvalidTransitionError,
    InsufficientPermissionsError,
    BookingValidationError,
)
from rental_backend.app.domain.booking.actor import ActorContext
from rental_backend.app.models.booking import Booking
from rental_backend.app.models.booking_enums import BookingStatus


class BookingAction(str, enum.Enum):
    CONFIRM = "confirm"
    START = "start"  # Schedule job only
    FINISH = "finish"
    CANCEL = "cancel"
    BACKDATE_EDIT = "backdate-edit"


ALLOWED_FROM = {
    BookingAction.CONFIRM: frozenset({BookingStatus.PENDING}),
    BookingAction.START: frozenset({BookingStatus.CONFIRMED}),
    BookingAction.FINISH: frozenset({BookingStatus.CONFIRMED, BookingStatus.ONGOING}),
    BookingAction.CANCEL: frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.ONGOING}),
    BookingAction.BACKDATE_EDIT: frozenset({BookingStatus.COMPLETED}),
}

# Statuses a privileged role may force-finish from, on top of ALLOWED_FROM
FORCE_FINISH_FROM = frozenset({BookingStatus.PENDING})

TARGET_STATUS = {
    BookingAction.CONFIRM: BookingStatus.CONFIRMED,
    BookingAction.START: BookingStatus.ONGOING,
    BookingAction.FINISH: BookingStatus.COMPLETED,
    BookingAction.CANCEL: BookingStatus.CANCELLED,
}


def allowed_statuses(action: BookingAction, actor: ActorContext = None) -> frozenset:
    statuses = ALLOWED_FROM[action]
    if action == BookingAction.FINISH and actor is not None and actor.is_privileged:
        statuses = statuses | FORCE_FINISH_FROM
    return statuses


def ensure_transition(booking: Booking, action: BookingAction, actor: ActorContext = None) -> BookingStatus:
    """
    Check that `action` is legal from the booking's current status.

    Returns:
        The status the action writes (current status for BACKDATE_EDIT)

    Raises:
        InvalidTransitionError
    """
    if booking.status not in allowed_statuses(action, actor):
        raise InvalidTransitionError(action.value, booking.status.value)
    return TARGET_STATUS.get(action, booking.status)


def ensure_finish_gate(booking: Booking, actor: ActorContext) -> None:
    """
    Non-privileged roles may only finish once the end date has been reached.

    Raises:
        InsufficientPermissionsError
    """
    if booking.finish_enabled or actor.is_privileged:
        return
    raise InsufficientPermissionsError(
        message="Booking cannot be finished before its end date without Admin privileges",
        details={"booking_id": booking.id, "finish_enabled": False, "role": actor.role.value}
    )


def ensure_start_window(booking: Booking, today: date) -> None:
    """A confirmed booking becomes ongoing only inside its rental period."""
    if not (booking.start_date <= today <= booking.end_date):
        raise BookingValidationError(
            "Booking can only start between its start and end date",
            details={
                "booking_id": booking.id,
                "start_date": booking.start_date.isoformat(),
                "end_date": booking.end_date.isoformat(),
                "today": today.isoformat(),
            }
        )


def require_note(value: str, field: str) -> str:
    """Reject missing or whitespace-only notes and reasons."""
    note = (value or "").strip()
    if not note:
        raise BookingValidationError(f"{field} is required", details={"field": field})
    return note
