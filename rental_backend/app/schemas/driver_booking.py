"""
Driver booking schemas.

Request bodies for the settlement actions and the responses they return.
"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Optional, List
from rental_backend.app.models.booking_enums import (
    BookingStatus,
    PaymentStatus,
    SettlementFailureStatus,
    SettlementStep,
    VehicleAvailability,
)
from rental_backend.app.schemas.ledger import LedgerAdjustmentResponse


class BookingConfirmRequest(BaseModel):
    admin_note: Optional[str] = Field(None, max_length=1000)


class BookingFinishRequest(BaseModel):
    """Only backdated bookings need the return date; it must equal end_date."""
    actual_return_date: Optional[date] = None


class BookingCancelRequest(BaseModel):
    # Blank reasons are rejected by the orchestrator
    reason: Optional[str] = Field(None, max_length=1000)


class BackdateEditRequest(BaseModel):
    actual_return_date: date
    note: Optional[str] = Field(None, max_length=1000)


class PaymentCreateRequest(BaseModel):
    amount: float = Field(..., gt=0)
    payment_method: str = Field(..., min_length=1, max_length=50)


class BookingResponse(BaseModel):
    """Driver booking."""
    id: int
    code_booking: str
    driver_id: int
    vehicle_id: int
    start_date: date
    end_date: date
    actual_return_date: Optional[date]
    status: BookingStatus
    is_backdated: bool
    finish_enabled: bool
    total_amount: float
    paid_amount: float
    refunded_amount: float
    payment_status: PaymentStatus
    late_days: int
    late_fee: float
    admin_note: Optional[str]
    cancellation_reason: Optional[str]
    return_date_note: Optional[str]
    return_date_edited_by: Optional[str]
    revision: int
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime]
    cancelled_at: Optional[datetime]

    class Config:
        from_attributes = True


class SettlementResponse(BaseModel):
    """Result of a booking action."""
    booking: BookingResponse
    action: str
    previous_status: BookingStatus
    amount_moved: float
    ledger_adjustments: List[LedgerAdjustmentResponse]
    vehicle_availability: Optional[VehicleAvailability]
    resolved_steps: List[str] = []
    audit_log_id: Optional[int]


class PaymentResponse(BaseModel):
    id: int
    booking_id: int
    amount: float
    payment_method: str
    recorded_by_id: int
    created_at: datetime

    class Config:
        from_attributes = True


class PaymentRecordedResponse(BaseModel):
    booking: BookingResponse
    payment: PaymentResponse


class SettlementFailureResponse(BaseModel):
    """Side effect waiting for a retry."""
    id: int
    step: SettlementStep
    status: SettlementFailureStatus
    error_message: str
    retry_count: int
    created_at: datetime
    last_retry_at: Optional[datetime]

    class Config:
        from_attributes = True


class BookingDetailResponse(BaseModel):
    booking: BookingResponse
    payments: List[PaymentResponse]
    ledger_adjustments: List[LedgerAdjustmentResponse]
    pending_failures: List[SettlementFailureResponse]


class OverdueBookingItem(BaseModel):
    booking_id: int
    code_booking: str
    driver_name: str
    license_plate: str
    status: BookingStatus
    end_date: date
    actual_return_date: Optional[date]
    returned: bool
    late_days: int
    late_fee: float  # Projected for bookings not yet returned


class OverdueReportResponse(BaseModel):
    items: List[OverdueBookingItem]
    total: int
