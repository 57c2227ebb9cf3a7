"""
Ledger schemas: saldo adjustments and transaction history.
"""

from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional, List
from rental_backend.app.models.booking_enums import AccountType, LedgerReason, TopUpStatus


class LedgerAdjustmentResponse(BaseModel):
    """One saldo movement."""
    id: int
    account_type: AccountType
    account_id: int
    booking_id: Optional[int]
    actor_id: int
    amount: float  # Negative = debit
    balance_after: float
    reason: LedgerReason
    description: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class ManualAdjustmentRequest(BaseModel):
    """Schema for a manual top-up or correction."""
    account_type: AccountType
    account_id: int = Field(..., gt=0)
    amount: float = Field(..., description="Positive credits, negative debits")
    note: str = Field(..., max_length=255, description="Why the saldo is adjusted")

    @field_validator("amount")
    @classmethod
    def amount_not_zero(cls, v: float) -> float:
        if v == 0:
            raise ValueError("amount must be non-zero")
        return v


class TransactionHistoryResponse(BaseModel):
    """Saldo and movements of one account."""
    account_type: AccountType
    account_id: int
    saldo: float
    entries: List[LedgerAdjustmentResponse]
    total: int


class TopUpRequestCreate(BaseModel):
    """Schema for submitting a top-up request."""
    account_type: AccountType
    account_id: int = Field(..., gt=0)
    amount: float = Field(..., gt=0)
    payment_method: str = Field(..., min_length=1, max_length=50)
    reference_no: Optional[str] = Field(None, max_length=100)
    note: Optional[str] = Field(None, max_length=255)


class TopUpVerifyRequest(BaseModel):
    note: Optional[str] = Field(None, max_length=500)


class TopUpRejectRequest(BaseModel):
    # Blank reasons are rejected by the service
    reason: Optional[str] = Field(None, max_length=500)


class TopUpRequestResponse(BaseModel):
    """Top-up request."""
    id: int
    account_type: AccountType
    account_id: int
    amount: float
    payment_method: str
    reference_no: Optional[str]
    note: Optional[str]
    requested_by_id: int
    request_by_role: str
    status: TopUpStatus
    decided_by_id: Optional[int]
    decision_note: Optional[str]
    decided_at: Optional[datetime]
    ledger_adjustment_id: Optional[int]
    created_at: datetime

    class Config:
        from_attributes = True


class TopUpVerifiedResponse(BaseModel):
    request: TopUpRequestResponse
    ledger_adjustment: LedgerAdjustmentResponse


class TopUpRequestListResponse(BaseModel):
    requests: List[TopUpRequestResponse]
    total: int
