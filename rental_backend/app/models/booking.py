"""
Booking database model.

A driver rental booking, created by the customer/agent flow in PENDING and
mutated only by the settlement orchestrator.
"""

from sqlalchemy import Column, Integer, String, Float, Boolean, Date, DateTime, Enum, ForeignKey, Text
from sqlalchemy.sql import func
from rental_backend.app.db.session import Base
from rental_backend.app.models.booking_enums import BookingStatus, PaymentStatus


class Booking(Base):
    """
    Booking model.

    Lifecycle: PENDING -> CONFIRMED -> ONGOING -> COMPLETED, CANCELLED from
    any non-terminal status. Never deleted.

    `revision` is the optimistic lock: every UPDATE is issued as
    `WHERE id = :id AND revision = :seen` and bumps it, so two admin sessions
    cannot both settle the same booking.
    """
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    code_booking = Column(String(50), unique=True, nullable=False, index=True)

    # Parties
    driver_id = Column(Integer, ForeignKey('drivers.id'), nullable=False, index=True)
    vehicle_id = Column(Integer, ForeignKey('vehicles.id'), nullable=False, index=True)
    created_by_id = Column(Integer, ForeignKey('users.id'), nullable=True)

    # Schedule (calendar days)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False, index=True)
    actual_return_date = Column(Date, nullable=True)

    # Classification
    status = Column(Enum(BookingStatus), default=BookingStatus.PENDING, nullable=False, index=True)
    is_backdated = Column(Boolean, default=False, nullable=False)
    finish_enabled = Column(Boolean, default=False, nullable=False)

    # Financials
    total_amount = Column(Float, nullable=False, default=0)
    paid_amount = Column(Float, nullable=False, default=0)
    refunded_amount = Column(Float, nullable=False, default=0)
    payment_status = Column(Enum(PaymentStatus), default=PaymentStatus.UNPAID, nullable=False)
    late_days = Column(Integer, nullable=False, default=0)
    late_fee = Column(Float, nullable=False, default=0)

    # Admin notes
    admin_note = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    return_date_note = Column(Text, nullable=True)
    return_date_edited_by = Column(String(255), nullable=True)

    revision = Column(Integer, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    __mapper_args__ = {"version_id_col": revision}

    def __repr__(self):
        return f"<Booking(id={self.id}, code='{self.code_booking}', status='{self.status.value}')>"
