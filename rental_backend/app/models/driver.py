"""
Driver database model.

Drivers rent vehicles; their saldo is debited for late fees and credited
on refunds.
"""

from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime
from sqlalchemy.sql import func
from rental_backend.app.db.session import Base


class Driver(Base):
    """Driver account with a saldo balance."""
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    full_name = Column(String(255), nullable=False, index=True)
    phone_number = Column(String(50), nullable=True)

    # Balance, may go negative when late fees exceed the deposit
    saldo = Column(Float, default=0, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Driver(id={self.id}, name='{self.full_name}', saldo={self.saldo})>"
