"""
Vehicle database model.

The vehicle registry: per-day rate used for late fees and the
availability flag flipped by settlement.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Enum
from sqlalchemy.sql import func
from rental_backend.app.db.session import Base
from rental_backend.app.models.booking_enums import VehicleAvailability


class Vehicle(Base):
    """
    Vehicle model.

    `availability` is RENTED while a confirmed booking holds the vehicle and
    goes back to AVAILABLE when that booking is completed.
    """
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Identification
    make = Column(String(100), nullable=True)
    model = Column(String(100), nullable=True)
    license_plate = Column(String(20), unique=True, nullable=False, index=True)

    # Per-day rental rate, also the late fee per overdue day
    daily_rate = Column(Float, nullable=False)

    availability = Column(
        Enum(VehicleAvailability),
        default=VehicleAvailability.AVAILABLE,
        nullable=False,
        index=True
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Vehicle(id={self.id}, plate='{self.license_plate}', availability='{self.availability.value}')>"
