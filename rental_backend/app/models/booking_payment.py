"""
Booking Payment database model.

Append-only record of money received against a booking; the sum is what a
cancellation refunds.
"""

from sqlalchemy import Column, Integer, Float, String, ForeignKey, DateTime
from sqlalchemy.sql import func
from rental_backend.app.db.session import Base


class BookingPayment(Base):
    """Payment received for a booking. NO updates or deletions."""
    __tablename__ = "booking_payments"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    booking_id = Column(Integer, ForeignKey('bookings.id'), nullable=False, index=True)

    amount = Column(Float, nullable=False)
    payment_method = Column(String(50), nullable=False)

    recorded_by_id = Column(Integer, ForeignKey('users.id'), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<BookingPayment(id={self.id}, booking_id={self.booking_id}, amount={self.amount})>"
