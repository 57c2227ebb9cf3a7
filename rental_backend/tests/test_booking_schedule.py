"""
Booking schedule job tests.
"""

from datetime import date

import pytest
from sqlalchemy import select

from rental_backend.app.models.audit_log import AuditLog
from rental_backend.app.models.booking_enums import BookingStatus, VehicleAvailability
from rental_backend.app.services.audit import AuditAction
from rental_backend.app.services.booking_schedule import run_booking_schedule


@pytest.mark.asyncio
async def test_schedule_starts_and_enables_finish(db_session, make_booking, vehicle, clock):
    vehicle.availability = VehicleAvailability.AVAILABLE
    await db_session.commit()

    running = await make_booking(
        status=BookingStatus.CONFIRMED, finish_enabled=False,
        start_date=date(2024, 1, 12), end_date=date(2024, 1, 15)
    )
    ends_today = await make_booking(
        status=BookingStatus.CONFIRMED, finish_enabled=False,
        start_date=date(2024, 1, 11), end_date=date(2024, 1, 13), is_backdated=True
    )
    overdue = await make_booking(status=BookingStatus.ONGOING, finish_enabled=False)
    future = await make_booking(
        status=BookingStatus.CONFIRMED, finish_enabled=False,
        start_date=date(2024, 1, 20), end_date=date(2024, 1, 22)
    )
    pending = await make_booking(status=BookingStatus.PENDING, finish_enabled=False)

    result = await run_booking_schedule(db_session, clock)

    assert result.started == [running.id, ends_today.id]
    assert result.finish_enabled == [ends_today.id, overdue.id]
    assert result.skipped == []

    for booking in (running, ends_today, overdue, future, pending):
        await db_session.refresh(booking)
    assert running.status == BookingStatus.ONGOING
    assert running.finish_enabled is False
    assert ends_today.status == BookingStatus.ONGOING
    assert ends_today.finish_enabled is True
    assert overdue.finish_enabled is True
    assert future.status == BookingStatus.CONFIRMED
    assert pending.status == BookingStatus.PENDING
    assert pending.finish_enabled is False

    await db_session.refresh(vehicle)
    assert vehicle.availability == VehicleAvailability.RENTED

    started_audit = await db_session.scalar(
        select(AuditLog).where(
            AuditLog.action == AuditAction.BOOKING_STARTED,
            AuditLog.target_booking_id == running.id
        )
    )
    assert started_audit.actor_username == "system"
    assert started_audit.meta_data["after_status"] == "ongoing"


@pytest.mark.asyncio
async def test_schedule_run_is_idempotent(db_session, make_booking, clock):
    await make_booking(status=BookingStatus.ONGOING, finish_enabled=False)

    first = await run_booking_schedule(db_session, clock)
    second = await run_booking_schedule(db_session, clock)

    assert len(first.finish_enabled) == 1
    assert second.started == []
    assert second.finish_enabled == []
