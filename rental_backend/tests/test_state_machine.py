"""
Booking state machine tests (no database).
"""

from datetime import date

import pytest

from rental_backend.app.core.exceptions import (
    BookingValidationError,
    InsufficientPermissionsError,
    InvalidTransitionError,
)
from rental_backend.app.domain.booking.actor import ActorContext
from rental_backend.app.domain.booking.state_machine import (
    BookingAction,
    ensure_finish_gate,
    ensure_start_window,
    ensure_transition,
    require_note,
)
from rental_backend.app.models.booking import Booking
from rental_backend.app.models.booking_enums import BookingStatus, TERMINAL_STATUSES
from rental_backend.app.models.enums import UserRole

ADMIN = ActorContext(user_id=1, username="admin", role=UserRole.ADMIN)
SUPER_ADMIN = ActorContext(user_id=2, username="root", role=UserRole.SUPER_ADMIN)
STAFF = ActorContext(user_id=3, username="staff", role=UserRole.STAFF_ADMIN)


def make_booking(status, finish_enabled=False):
    return Booking(
        id=1,
        status=status,
        finish_enabled=finish_enabled,
        start_date=date(2024, 1, 5),
        end_date=date(2024, 1, 10)
    )


@pytest.mark.parametrize("status", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
@pytest.mark.parametrize("action", [BookingAction.FINISH, BookingAction.CANCEL, BookingAction.CONFIRM])
@pytest.mark.parametrize("actor", [STAFF, ADMIN])
def test_terminal_statuses_reject_actions(status, action, actor):
    with pytest.raises(InvalidTransitionError) as exc_info:
        ensure_transition(make_booking(status), action, actor)
    assert exc_info.value.details == {"action": action.value, "status": status.value}


@pytest.mark.parametrize("status,action,target", [
    (BookingStatus.PENDING, BookingAction.CONFIRM, BookingStatus.CONFIRMED),
    (BookingStatus.CONFIRMED, BookingAction.START, BookingStatus.ONGOING),
    (BookingStatus.CONFIRMED, BookingAction.FINISH, BookingStatus.COMPLETED),
    (BookingStatus.ONGOING, BookingAction.FINISH, BookingStatus.COMPLETED),
    (BookingStatus.PENDING, BookingAction.CANCEL, BookingStatus.CANCELLED),
    (BookingStatus.ONGOING, BookingAction.CANCEL, BookingStatus.CANCELLED),
    (BookingStatus.COMPLETED, BookingAction.BACKDATE_EDIT, BookingStatus.COMPLETED),
])
def test_legal_transitions(status, action, target):
    assert ensure_transition(make_booking(status), action, STAFF) == target


def test_confirm_never_writes_ongoing():
    with pytest.raises(InvalidTransitionError):
        ensure_transition(make_booking(BookingStatus.CONFIRMED), BookingAction.CONFIRM, ADMIN)


@pytest.mark.parametrize("status", [BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.CANCELLED])
def test_backdate_edit_only_on_completed(status):
    with pytest.raises(InvalidTransitionError):
        ensure_transition(make_booking(status), BookingAction.BACKDATE_EDIT, ADMIN)


def test_force_finish_from_pending_is_privileged():
    booking = make_booking(BookingStatus.PENDING)
    assert ensure_transition(booking, BookingAction.FINISH, ADMIN) == BookingStatus.COMPLETED
    assert ensure_transition(booking, BookingAction.FINISH, SUPER_ADMIN) == BookingStatus.COMPLETED
    with pytest.raises(InvalidTransitionError):
        ensure_transition(booking, BookingAction.FINISH, STAFF)


def test_finish_gate():
    gated = make_booking(BookingStatus.ONGOING, finish_enabled=False)
    with pytest.raises(InsufficientPermissionsError):
        ensure_finish_gate(gated, STAFF)
    ensure_finish_gate(gated, ADMIN)
    ensure_finish_gate(make_booking(BookingStatus.ONGOING, finish_enabled=True), STAFF)


@pytest.mark.parametrize("today,ok", [
    (date(2024, 1, 4), False),
    (date(2024, 1, 5), True),
    (date(2024, 1, 10), True),
    (date(2024, 1, 11), False),
])
def test_start_window(today, ok):
    booking = make_booking(BookingStatus.CONFIRMED)
    if ok:
        ensure_start_window(booking, today)
    else:
        with pytest.raises(BookingValidationError):
            ensure_start_window(booking, today)


@pytest.mark.parametrize("value", [None, "", "   ", "\n\t"])
def test_require_note_rejects_blank(value):
    with pytest.raises(BookingValidationError):
        require_note(value, "reason")


def test_require_note_strips():
    assert require_note("  customer no-show ", "reason") == "customer no-show"
