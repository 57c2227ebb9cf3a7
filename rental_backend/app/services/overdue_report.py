"""
Overdue bookings report.

Lists driver bookings that are, or were, returned after their end date,
with the late fee they carry or would carry if returned today.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from rental_backend.app.core.clock import Clock
from rental_backend.app.core.exceptions import BookingValidationError
from rental_backend.app.domain.booking.late_fee import calculate_late_fee, count_late_days
from rental_backend.app.models.booking import Booking
from rental_backend.app.models.booking_enums import BookingStatus
from rental_backend.app.models.driver import Driver
from rental_backend.app.models.vehicle import Vehicle

logger = logging.getLogger("rental.reports")


class OverdueFilter(str, enum.Enum):
    RETURNED = "returned"
    NOT_RETURNED = "not_returned"


@dataclass
class OverdueBooking:
    booking: Booking
    driver_name: str
    license_plate: str
    daily_rate: float
    returned: bool
    late_days: int
    late_fee: float


async def list_overdue_bookings(
    db: AsyncSession,
    clock: Clock,
    status: Optional[OverdueFilter] = None,
    search: Optional[str] = None
) -> List[OverdueBooking]:
    """
    Build the overdue report.

    Cancelled and backdated bookings never accrue late fees and are left
    out. Bookings not yet returned are measured against today. Bookings
    whose vehicle has no positive daily rate are skipped with a warning.

    Args:
        db: Database session
        clock: Time source for "today"
        status: Only returned / only not-returned bookings
        search: Case-insensitive match on driver name or booking code

    Returns:
        Overdue bookings, most late first
    """
    today = clock.today()

    query = (
        select(Booking, Driver.full_name, Vehicle.license_plate, Vehicle.daily_rate)
        .join(Driver, Driver.id == Booking.driver_id)
        .join(Vehicle, Vehicle.id == Booking.vehicle_id)
        .where(
            Booking.status != BookingStatus.CANCELLED,
            Booking.is_backdated.is_(False),
            Booking.end_date < today
        )
    )

    if status == OverdueFilter.RETURNED:
        query = query.where(Booking.actual_return_date.is_not(None))
    elif status == OverdueFilter.NOT_RETURNED:
        query = query.where(Booking.actual_return_date.is_(None))

    term = (search or "").strip()
    if term:
        pattern = f"%{term}%"
        query = query.where(or_(Driver.full_name.ilike(pattern), Booking.code_booking.ilike(pattern)))

    result = await db.execute(query.order_by(Booking.end_date))

    items = []
    for booking, driver_name, license_plate, daily_rate in result.all():
        returned_on: date = booking.actual_return_date or today
        if count_late_days(booking.end_date, returned_on) == 0:
            continue

        try:
            quote = calculate_late_fee(booking.end_date, returned_on, daily_rate)
        except BookingValidationError as e:
            logger.warning("Overdue booking %s left out of report: %s", booking.code_booking, e.message)
            continue

        items.append(OverdueBooking(
            booking=booking,
            driver_name=driver_name,
            license_plate=license_plate,
            daily_rate=daily_rate,
            returned=booking.actual_return_date is not None,
            late_days=quote.late_days,
            late_fee=quote.late_fee
        ))

    items.sort(key=lambda item: item.late_days, reverse=True)
    return items
