"""
Settlement Failure model.

Stores side effects that failed after a booking's status write was
committed, so an admin can retry just those steps.
"""

from sqlalchemy import Column, Integer, Text, DateTime, JSON, Enum, ForeignKey
from sqlalchemy.sql import func
from rental_backend.app.db.session import Base
from rental_backend.app.models.booking_enums import SettlementStep, SettlementFailureStatus


class SettlementFailure(Base):
    """
    Failed settlement step.

    `payload` holds what the step needs to be replayed (amount, vehicle id,
    target availability).
    """
    __tablename__ = "settlement_failures"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    booking_id = Column(Integer, ForeignKey('bookings.id'), nullable=False, index=True)
    step = Column(Enum(SettlementStep), nullable=False)
    payload = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=False)

    status = Column(Enum(SettlementFailureStatus), default=SettlementFailureStatus.FAILED, nullable=False, index=True)
    retry_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    last_retry_at = Column(DateTime(timezone=True), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<SettlementFailure(id={self.id}, booking_id={self.booking_id}, step='{self.step.value}', status='{self.status.value}')>"
