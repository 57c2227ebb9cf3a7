"""
Ledger Adjustment database model.

Immutable record of every saldo change of a driver or agent account.
"""

from sqlalchemy import Column, Integer, Float, ForeignKey, DateTime, Enum, String
from sqlalchemy.sql import func
from rental_backend.app.db.session import Base
from rental_backend.app.models.booking_enums import AccountType, LedgerReason


class LedgerAdjustment(Base):
    """
    Ledger Adjustment model.

    Signed amount: negative debits the account, positive credits it.
    `balance_after` is the account saldo right after this adjustment.
    NO updates or deletions allowed.
    """
    __tablename__ = "ledger_adjustments"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Account (drivers.id or users.id depending on account_type)
    account_type = Column(Enum(AccountType), nullable=False)
    account_id = Column(Integer, nullable=False, index=True)

    # Linkage
    booking_id = Column(Integer, ForeignKey('bookings.id'), nullable=True, index=True)
    actor_id = Column(Integer, ForeignKey('users.id'), nullable=False)

    # Financials
    amount = Column(Float, nullable=False)
    balance_after = Column(Float, nullable=False)
    reason = Column(Enum(LedgerReason), nullable=False, index=True)
    description = Column(String(255), nullable=True)

    # Timestamps (Immutable - no updated_at)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<LedgerAdjustment(id={self.id}, reason='{self.reason.value}', amount={self.amount})>"
