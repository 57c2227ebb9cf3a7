"""
Booking schedule job.

Time-based promotions that nobody clicks for:
- confirmed bookings whose rental period has begun become ongoing
- confirmed/ongoing bookings that reached their end date get finish_enabled

Run from the admin ops endpoint or from cron (scripts/run_booking_schedule.py).
Promotion goes through the same orchestrator transition as every other
status change.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rental_backend.app.core.clock import Clock
from rental_backend.app.core.exceptions import (
    BookingValidationError,
    ConcurrentUpdateError,
    DependencyFailureError,
    InvalidTransitionError,
)
from rental_backend.app.domain.booking.actor import ActorContext
from rental_backend.app.domain.booking.settlement_service import SettlementOrchestrator
from rental_backend.app.domain.booking.side_effects import commit_status_write
from rental_backend.app.models.booking import Booking
from rental_backend.app.models.booking_enums import BookingStatus
from rental_backend.app.services.audit import AuditAction, append_audit_entry

logger = logging.getLogger("rental.schedule")


@dataclass
class ScheduleRunResult:
    started: List[int] = field(default_factory=list)
    finish_enabled: List[int] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)
    failed_side_effects: List[int] = field(default_factory=list)


async def start_due_bookings(
    db: AsyncSession,
    clock: Clock,
    result: ScheduleRunResult,
    actor: Optional[ActorContext] = None
) -> None:
    today = clock.today()
    rows = await db.execute(
        select(Booking.id)
        .where(
            Booking.status == BookingStatus.CONFIRMED,
            Booking.start_date <= today,
            Booking.end_date >= today
        )
        .order_by(Booking.id)
    )

    for booking_id in rows.scalars().all():
        try:
            await SettlementOrchestrator.start(db, booking_id, clock, actor=actor)
        except DependencyFailureError as e:
            # Status is committed; the vehicle step waits for a retry
            logger.error("Booking %s started with failed steps %s", booking_id, e.details.get("failed_steps"))
            result.started.append(booking_id)
            result.failed_side_effects.append(booking_id)
            continue
        except (ConcurrentUpdateError, InvalidTransitionError, BookingValidationError) as e:
            logger.warning("Skipping start of booking %s: %s", booking_id, e.message)
            result.skipped.append(booking_id)
            continue

        result.started.append(booking_id)


async def enable_due_finishes(
    db: AsyncSession,
    clock: Clock,
    result: ScheduleRunResult,
    actor: Optional[ActorContext] = None
) -> None:
    today = clock.today()
    rows = await db.execute(
        select(Booking.id)
        .where(
            Booking.status.in_([BookingStatus.CONFIRMED, BookingStatus.ONGOING]),
            Booking.finish_enabled.is_(False),
            Booking.end_date <= today
        )
        .order_by(Booking.id)
    )

    for booking_id in rows.scalars().all():
        booking = await db.get(Booking, booking_id)
        booking.finish_enabled = True
        try:
            await commit_status_write(db, booking, clock.now())
        except ConcurrentUpdateError:
            result.skipped.append(booking_id)
            continue

        await append_audit_entry(
            db, AuditAction.BOOKING_FINISH_ENABLED, actor=actor, booking_id=booking_id,
            metadata={"end_date": booking.end_date.isoformat(), "today": today.isoformat()}
        )
        result.finish_enabled.append(booking_id)


async def run_booking_schedule(
    db: AsyncSession,
    clock: Clock,
    actor: Optional[ActorContext] = None
) -> ScheduleRunResult:
    """
    Run one pass of the schedule.

    Idempotent: a second run on the same day finds nothing to do.

    Args:
        db: Database session
        clock: Time source
        actor: Admin who triggered the run, None when run from cron

    Returns:
        ScheduleRunResult with the booking ids touched
    """
    result = ScheduleRunResult()

    await start_due_bookings(db, clock, result, actor)
    await enable_due_finishes(db, clock, result, actor)

    logger.info(
        "Booking schedule run: %d started, %d finish-enabled, %d skipped",
        len(result.started), len(result.finish_enabled), len(result.skipped)
    )
    return result
