"""
Audit Log Database Model.

Tracks every booking settlement action and saldo adjustment.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from rental_backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model for booking actions.

    Events logged:
    - BOOKING_CONFIRMED / BOOKING_STARTED / BOOKING_COMPLETED / BOOKING_CANCELLED
    - BOOKING_RETURN_DATE_EDITED
    - SETTLEMENT_RETRIED
    - PAYMENT_RECORDED / SALDO_ADJUSTED
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    actor_id = Column(Integer, index=True, nullable=True)
    actor_username = Column(String(100), nullable=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # Booking acted upon, if any
    target_booking_id = Column(Integer, index=True, nullable=True)

    # Before/after status, amounts, notes
    meta_data = Column(JSON, nullable=True)

    # Timestamp
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_username}, booking={self.target_booking_id})>"
