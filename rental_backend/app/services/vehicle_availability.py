"""
Vehicle availability service.

Flips the vehicle registry's availability flag when a booking takes or
releases a vehicle.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func as sql_func

from rental_backend.app.core.exceptions import ResourceNotFoundError
from rental_backend.app.models.booking import Booking
from rental_backend.app.models.booking_enums import BookingStatus, VehicleAvailability
from rental_backend.app.models.vehicle import Vehicle


async def get_vehicle(db: AsyncSession, vehicle_id: int) -> Vehicle:
    """
    Load a vehicle from the registry.

    Raises:
        ResourceNotFoundError: vehicle does not exist
    """
    vehicle = await db.get(Vehicle, vehicle_id)
    if vehicle is None:
        raise ResourceNotFoundError("Vehicle", vehicle_id)
    return vehicle


async def set_vehicle_availability(
    db: AsyncSession,
    vehicle_id: int,
    availability: VehicleAvailability
) -> bool:
    """
    Set a vehicle's availability.

    Args:
        db: Database session (commit is the caller's)
        vehicle_id: Vehicle to update
        availability: AVAILABLE or RENTED

    Returns:
        True if the flag changed, False if it already had that value
    """
    vehicle = await get_vehicle(db, vehicle_id)

    if vehicle.availability == availability:
        return False

    vehicle.availability = availability
    await db.flush()

    return True


async def count_active_bookings(db: AsyncSession, vehicle_id: int) -> int:
    """
    Count confirmed or ongoing bookings holding a vehicle.

    Should be 0 or 1.
    """
    result = await db.execute(
        select(sql_func.count(Booking.id)).where(
            Booking.vehicle_id == vehicle_id,
            Booking.status.in_([BookingStatus.CONFIRMED, BookingStatus.ONGOING]),
            Booking.is_backdated.is_(False)
        )
    )
    return result.scalar()
