"""
Admin Operations API Endpoints.

Manual triggers for scheduled maintenance.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from rental_backend.app.db.session import get_db
from rental_backend.app.core.clock import Clock, get_clock
from rental_backend.app.core.guards import require_privileged
from rental_backend.app.domain.booking.actor import ActorContext
from rental_backend.app.schemas.ops import ScheduleRunResponse
from rental_backend.app.services.booking_schedule import run_booking_schedule

router = APIRouter(prefix="/admin/ops", tags=["Admin - Ops"])


@router.post("/booking-schedule/run", response_model=ScheduleRunResponse)
async def trigger_booking_schedule(
    actor: ActorContext = Depends(require_privileged),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db)
):
    """
    Run the booking schedule now instead of waiting for cron.

    Starts confirmed bookings whose period began and enables finishing for
    bookings that reached their end date.
    """
    result = await run_booking_schedule(db, clock, actor=actor)
    return ScheduleRunResponse(
        started=result.started,
        finish_enabled=result.finish_enabled,
        skipped=result.skipped,
        failed_side_effects=result.failed_side_effects
    )
