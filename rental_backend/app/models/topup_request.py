"""
Top-up request database model.

A driver or agent asks for saldo to be credited after paying in; back
office verifies or rejects it.
"""

from sqlalchemy import Column, Integer, Float, String, DateTime, Enum, ForeignKey
from sqlalchemy.sql import func
from rental_backend.app.db.session import Base
from rental_backend.app.models.booking_enums import AccountType, TopUpStatus


class TopUpRequest(Base):
    """
    Top-up request model.

    Decided exactly once: PENDING -> VERIFIED (saldo credited, linked to
    the ledger row) or PENDING -> REJECTED (with a reason).
    """
    __tablename__ = "topup_requests"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Account to credit (drivers.id or users.id depending on account_type)
    account_type = Column(Enum(AccountType), nullable=False)
    account_id = Column(Integer, nullable=False, index=True)

    amount = Column(Float, nullable=False)
    payment_method = Column(String(50), nullable=False)
    reference_no = Column(String(100), nullable=True)
    note = Column(String(255), nullable=True)

    # Submission
    requested_by_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    request_by_role = Column(String(50), nullable=False)

    # Decision
    status = Column(Enum(TopUpStatus), default=TopUpStatus.PENDING, nullable=False, index=True)
    decided_by_id = Column(Integer, ForeignKey('users.id'), nullable=True)
    decision_note = Column(String(500), nullable=True)
    decided_at = Column(DateTime(timezone=True), nullable=True)
    ledger_adjustment_id = Column(Integer, ForeignKey('ledger_adjustments.id'), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<TopUpRequest(id={self.id}, account={self.account_type.value}:{self.account_id}, status='{self.status.value}')>"
