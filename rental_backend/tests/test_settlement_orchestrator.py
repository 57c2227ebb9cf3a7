"""
Settlement orchestrator tests: confirm, finish, cancel and their side effects.
"""

from datetime import date

import pytest
from sqlalchemy import select, func

from rental_backend.app.core.exceptions import (
    BookingValidationError,
    InsufficientPermissionsError,
    InvalidTransitionError,
)
from rental_backend.app.domain.booking.actor import ActorContext
from rental_backend.app.domain.booking.settlement_service import SettlementOrchestrator
from rental_backend.app.models.audit_log import AuditLog
from rental_backend.app.models.booking_enums import (
    BookingStatus,
    LedgerReason,
    PaymentStatus,
    VehicleAvailability,
)
from rental_backend.app.models.enums import UserRole
from rental_backend.app.models.ledger_adjustment import LedgerAdjustment
from rental_backend.app.services.audit import AuditAction


async def count_ledger_rows(db_session):
    return await db_session.scalar(select(func.count(LedgerAdjustment.id)))


async def audit_rows(db_session, booking_id):
    result = await db_session.execute(
        select(AuditLog).where(AuditLog.target_booking_id == booking_id).order_by(AuditLog.id)
    )
    return list(result.scalars().all())


# Finish

@pytest.mark.asyncio
async def test_finish_late_debits_driver(db_session, make_booking, driver, vehicle, staff, clock):
    """end 2024-01-10, returned 2024-01-13, rate 100000 -> 3 days, 300000 debit."""
    booking = await make_booking()

    result = await SettlementOrchestrator.finish(db_session, booking.id, staff, clock)

    assert result.booking.status == BookingStatus.COMPLETED
    assert result.booking.actual_return_date == date(2024, 1, 13)
    assert result.booking.late_days == 3
    assert result.booking.late_fee == 300_000
    assert result.booking.completed_at is not None
    assert result.amount_moved == -300_000
    assert result.vehicle_availability == VehicleAvailability.AVAILABLE

    await db_session.refresh(driver)
    await db_session.refresh(vehicle)
    assert driver.saldo == 700_000
    assert vehicle.availability == VehicleAvailability.AVAILABLE

    [entry] = result.ledger_adjustments
    assert entry.amount == -300_000
    assert entry.balance_after == 700_000
    assert entry.reason == LedgerReason.LATE_FEE
    assert entry.booking_id == booking.id
    assert entry.actor_id == staff.user_id

    [audit] = await audit_rows(db_session, booking.id)
    assert audit.action == AuditAction.BOOKING_COMPLETED
    assert audit.actor_username == "staff"
    assert audit.meta_data["before_status"] == "ongoing"
    assert audit.meta_data["after_status"] == "completed"
    assert audit.meta_data["amount_moved"] == -300_000
    assert audit.meta_data["ledger_adjustment_ids"] == [entry.id]


@pytest.mark.asyncio
async def test_finish_on_time_skips_ledger(db_session, make_booking, driver, vehicle, staff, clock):
    booking = await make_booking(end_date=date(2024, 1, 15))

    result = await SettlementOrchestrator.finish(db_session, booking.id, staff, clock)

    # finish_enabled and not yet past the end date: returned on schedule
    assert result.booking.actual_return_date == date(2024, 1, 15)
    assert result.booking.late_fee == 0
    assert result.ledger_adjustments == []
    assert await count_ledger_rows(db_session) == 0

    await db_session.refresh(vehicle)
    assert vehicle.availability == VehicleAvailability.AVAILABLE


@pytest.mark.asyncio
async def test_finish_gate_blocks_staff_without_mutation(db_session, make_booking, driver, vehicle, staff, clock):
    booking = await make_booking(finish_enabled=False)

    with pytest.raises(InsufficientPermissionsError):
        await SettlementOrchestrator.finish(db_session, booking.id, staff, clock)

    await db_session.refresh(booking)
    await db_session.refresh(driver)
    await db_session.refresh(vehicle)
    assert booking.status == BookingStatus.ONGOING
    assert booking.revision == 1
    assert booking.actual_return_date is None
    assert driver.saldo == 1_000_000
    assert vehicle.availability == VehicleAvailability.RENTED
    assert await count_ledger_rows(db_session) == 0
    assert await audit_rows(db_session, booking.id) == []


@pytest.mark.asyncio
async def test_admin_overrides_finish_gate(db_session, make_booking, admin, clock):
    booking = await make_booking(finish_enabled=False)

    result = await SettlementOrchestrator.finish(db_session, booking.id, admin, clock)

    assert result.booking.status == BookingStatus.COMPLETED
    assert result.booking.late_fee == 300_000

    [audit] = await audit_rows(db_session, booking.id)
    assert audit.meta_data["forced"] is True


@pytest.mark.asyncio
async def test_admin_force_finishes_pending(db_session, make_booking, admin, staff, clock):
    booking = await make_booking(status=BookingStatus.PENDING, finish_enabled=False)

    with pytest.raises(InvalidTransitionError):
        await SettlementOrchestrator.finish(db_session, booking.id, staff, clock)

    result = await SettlementOrchestrator.finish(db_session, booking.id, admin, clock)
    assert result.previous_status == BookingStatus.PENDING
    assert result.booking.status == BookingStatus.COMPLETED


@pytest.mark.asyncio
async def test_force_finish_pending_keeps_vehicle_held_by_other_booking(db_session, make_booking, vehicle, admin, clock):
    holder = await make_booking(code_booking="BK-HOLDER", status=BookingStatus.CONFIRMED, finish_enabled=False)
    pending = await make_booking(status=BookingStatus.PENDING, finish_enabled=False)

    result = await SettlementOrchestrator.finish(db_session, pending.id, admin, clock)

    assert result.booking.status == BookingStatus.COMPLETED
    assert result.vehicle_availability is None
    await db_session.refresh(vehicle)
    await db_session.refresh(holder)
    assert vehicle.availability == VehicleAvailability.RENTED
    assert holder.status == BookingStatus.CONFIRMED


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [BookingStatus.COMPLETED, BookingStatus.CANCELLED])
async def test_terminal_booking_rejects_finish_and_cancel(db_session, make_booking, driver, vehicle, admin, clock, status):
    booking = await make_booking(status=status, paid_amount=200_000)

    with pytest.raises(InvalidTransitionError):
        await SettlementOrchestrator.finish(db_session, booking.id, admin, clock)
    with pytest.raises(InvalidTransitionError):
        await SettlementOrchestrator.cancel(db_session, booking.id, admin, clock, reason="duplicate")

    await db_session.refresh(booking)
    await db_session.refresh(driver)
    await db_session.refresh(vehicle)
    assert booking.status == status
    assert booking.revision == 1
    assert driver.saldo == 1_000_000
    assert vehicle.availability == VehicleAvailability.RENTED
    assert await count_ledger_rows(db_session) == 0


@pytest.mark.asyncio
async def test_second_finish_does_not_charge_twice(db_session, make_booking, driver, staff, clock):
    booking = await make_booking()
    await SettlementOrchestrator.finish(db_session, booking.id, staff, clock)

    with pytest.raises(InvalidTransitionError):
        await SettlementOrchestrator.finish(db_session, booking.id, staff, clock)

    await db_session.refresh(driver)
    assert driver.saldo == 700_000
    assert await count_ledger_rows(db_session) == 1


@pytest.mark.asyncio
async def test_customer_cannot_act(db_session, make_booking, make_user, clock):
    customer = await make_user("cust", UserRole.CUSTOMER)
    booking = await make_booking()
    actor = ActorContext(user_id=customer.id, username=customer.username, role=customer.role)

    with pytest.raises(InsufficientPermissionsError):
        await SettlementOrchestrator.finish(db_session, booking.id, actor, clock)


@pytest.mark.asyncio
async def test_invalid_vehicle_rate_rejected_before_write(db_session, make_booking, vehicle, staff, clock):
    vehicle.daily_rate = 0
    await db_session.commit()
    booking = await make_booking()

    with pytest.raises(BookingValidationError):
        await SettlementOrchestrator.finish(db_session, booking.id, staff, clock)

    await db_session.refresh(booking)
    assert booking.status == BookingStatus.ONGOING


# Cancel

@pytest.mark.asyncio
async def test_cancel_confirmed_refunds_payment(db_session, make_booking, driver, vehicle, staff, clock):
    booking = await make_booking(status=BookingStatus.CONFIRMED, finish_enabled=False, paid_amount=250_000)

    result = await SettlementOrchestrator.cancel(db_session, booking.id, staff, clock, reason="customer no-show")

    assert result.booking.status == BookingStatus.CANCELLED
    assert result.booking.cancellation_reason == "customer no-show"
    assert result.booking.cancelled_at is not None
    assert result.amount_moved == 250_000
    assert result.booking.refunded_amount == 250_000
    assert result.booking.payment_status == PaymentStatus.REFUNDED

    [entry] = result.ledger_adjustments
    assert entry.reason == LedgerReason.REFUND
    assert entry.amount == 250_000

    await db_session.refresh(driver)
    await db_session.refresh(vehicle)
    assert driver.saldo == 1_250_000
    # Cancellation does not touch the vehicle
    assert vehicle.availability == VehicleAvailability.RENTED

    [audit] = await audit_rows(db_session, booking.id)
    assert audit.action == AuditAction.BOOKING_CANCELLED
    assert audit.meta_data["reason"] == "customer no-show"
    assert audit.meta_data["refund_amount"] == 250_000


@pytest.mark.asyncio
async def test_cancel_unpaid_moves_no_money(db_session, make_booking, staff, clock):
    booking = await make_booking(status=BookingStatus.PENDING)

    result = await SettlementOrchestrator.cancel(db_session, booking.id, staff, clock, reason="changed plans")

    assert result.booking.status == BookingStatus.CANCELLED
    assert result.ledger_adjustments == []
    assert result.booking.refunded_amount == 0
    assert result.booking.payment_status == PaymentStatus.UNPAID
    assert await count_ledger_rows(db_session) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("reason", [None, "", "   "])
async def test_cancel_requires_reason(db_session, make_booking, driver, staff, clock, reason):
    booking = await make_booking(paid_amount=100_000)

    with pytest.raises(BookingValidationError):
        await SettlementOrchestrator.cancel(db_session, booking.id, staff, clock, reason=reason)

    await db_session.refresh(booking)
    await db_session.refresh(driver)
    assert booking.status == BookingStatus.ONGOING
    assert booking.cancellation_reason is None
    assert driver.saldo == 1_000_000


# Confirm

@pytest.mark.asyncio
async def test_confirm_reserves_vehicle(db_session, make_booking, vehicle, staff, clock):
    vehicle.availability = VehicleAvailability.AVAILABLE
    await db_session.commit()
    booking = await make_booking(status=BookingStatus.PENDING, finish_enabled=False)

    result = await SettlementOrchestrator.confirm(db_session, booking.id, staff, clock, admin_note="  DP received ")

    assert result.booking.status == BookingStatus.CONFIRMED
    assert result.booking.admin_note == "DP received"
    assert result.vehicle_availability == VehicleAvailability.RENTED
    await db_session.refresh(vehicle)
    assert vehicle.availability == VehicleAvailability.RENTED

    [audit] = await audit_rows(db_session, booking.id)
    assert audit.action == AuditAction.BOOKING_CONFIRMED


@pytest.mark.asyncio
async def test_confirm_rejects_vehicle_held_by_active_booking(db_session, make_booking, staff, clock):
    await make_booking(status=BookingStatus.CONFIRMED)
    booking = await make_booking(status=BookingStatus.PENDING)

    with pytest.raises(BookingValidationError):
        await SettlementOrchestrator.confirm(db_session, booking.id, staff, clock)

    await db_session.refresh(booking)
    assert booking.status == BookingStatus.PENDING
    assert booking.revision == 1


@pytest.mark.asyncio
async def test_confirm_after_cancel_on_same_vehicle(db_session, make_booking, vehicle, staff, clock):
    vehicle.availability = VehicleAvailability.AVAILABLE
    await db_session.commit()
    first = await make_booking(status=BookingStatus.PENDING, finish_enabled=False)
    second = await make_booking(status=BookingStatus.PENDING, finish_enabled=False)

    await SettlementOrchestrator.confirm(db_session, first.id, staff, clock)
    await SettlementOrchestrator.cancel(db_session, first.id, staff, clock, reason="customer no-show")
    await db_session.refresh(vehicle)
    # Cancellation leaves the flag as it was
    assert vehicle.availability == VehicleAvailability.RENTED

    result = await SettlementOrchestrator.confirm(db_session, second.id, staff, clock)

    assert result.booking.status == BookingStatus.CONFIRMED
    await db_session.refresh(vehicle)
    assert vehicle.availability == VehicleAvailability.RENTED


@pytest.mark.asyncio
async def test_confirm_twice_rejected(db_session, make_booking, vehicle, staff, clock):
    vehicle.availability = VehicleAvailability.AVAILABLE
    await db_session.commit()
    booking = await make_booking(status=BookingStatus.PENDING)

    await SettlementOrchestrator.confirm(db_session, booking.id, staff, clock)
    with pytest.raises(InvalidTransitionError):
        await SettlementOrchestrator.confirm(db_session, booking.id, staff, clock)


# Availability coupling

@pytest.mark.asyncio
async def test_completion_and_release_happen_together(db_session, make_booking, vehicle, staff, clock):
    gated = await make_booking(finish_enabled=False)
    with pytest.raises(InsufficientPermissionsError):
        await SettlementOrchestrator.finish(db_session, gated.id, staff, clock)
    await db_session.refresh(vehicle)
    assert vehicle.availability == VehicleAvailability.RENTED

    open_booking = await make_booking()
    result = await SettlementOrchestrator.finish(db_session, open_booking.id, staff, clock)
    await db_session.refresh(vehicle)
    assert result.booking.status == BookingStatus.COMPLETED
    assert vehicle.availability == VehicleAvailability.AVAILABLE
