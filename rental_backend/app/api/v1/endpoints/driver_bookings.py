"""
Driver Booking API Endpoints.

Back-office settlement actions on driver rental bookings. All state changes
go through the SettlementOrchestrator; these handlers only translate HTTP
to orchestrator calls.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Body
from sqlalchemy.ext.asyncio import AsyncSession

from rental_backend.app.db.session import get_db
from rental_backend.app.core.clock import Clock, get_clock
from rental_backend.app.core.guards import require_back_office
from rental_backend.app.domain.booking.actor import ActorContext
from rental_backend.app.domain.booking.ledger import LedgerService
from rental_backend.app.domain.booking.settlement_service import SettlementOrchestrator
from rental_backend.app.domain.booking.side_effects import SettlementResult, load_booking, pending_failures
from rental_backend.app.schemas.driver_booking import (
    BookingConfirmRequest, BookingFinishRequest, BookingCancelRequest,
    BackdateEditRequest, PaymentCreateRequest,
    BookingResponse, SettlementResponse, PaymentResponse, PaymentRecordedResponse,
    SettlementFailureResponse, BookingDetailResponse,
    OverdueBookingItem, OverdueReportResponse
)
from rental_backend.app.schemas.ledger import LedgerAdjustmentResponse
from rental_backend.app.services.booking_payments import record_payment, list_payments
from rental_backend.app.services.overdue_report import OverdueFilter, list_overdue_bookings

router = APIRouter(prefix="/admin/driver-bookings", tags=["Admin - Driver Bookings"])


def _settlement_response(result: SettlementResult) -> SettlementResponse:
    return SettlementResponse(
        booking=BookingResponse.model_validate(result.booking),
        action=result.action,
        previous_status=result.previous_status,
        amount_moved=result.amount_moved,
        ledger_adjustments=[LedgerAdjustmentResponse.model_validate(e) for e in result.ledger_adjustments],
        vehicle_availability=result.vehicle_availability,
        resolved_steps=result.resolved_steps,
        audit_log_id=result.audit_log_id,
    )


# Declared before /{booking_id} so "overdue" is not parsed as an id
@router.get("/overdue", response_model=OverdueReportResponse)
async def get_overdue_bookings(
    status: Optional[OverdueFilter] = Query(None, description="returned or not_returned"),
    search: Optional[str] = Query(None, max_length=100, description="Driver name or booking code"),
    actor: ActorContext = Depends(require_back_office),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db)
):
    """
    List bookings returned late, or still out past their end date.

    Late fees of bookings not yet returned are projected to today.
    """
    items = await list_overdue_bookings(db, clock, status=status, search=search)
    return OverdueReportResponse(
        items=[
            OverdueBookingItem(
                booking_id=item.booking.id,
                code_booking=item.booking.code_booking,
                driver_name=item.driver_name,
                license_plate=item.license_plate,
                status=item.booking.status,
                end_date=item.booking.end_date,
                actual_return_date=item.booking.actual_return_date,
                returned=item.returned,
                late_days=item.late_days,
                late_fee=item.late_fee,
            )
            for item in items
        ],
        total=len(items)
    )


@router.get("/{booking_id}", response_model=BookingDetailResponse)
async def get_booking_detail(
    booking_id: int = Path(..., description="Booking ID"),
    actor: ActorContext = Depends(require_back_office),
    db: AsyncSession = Depends(get_db)
):
    """Booking with its payments, saldo movements and steps awaiting retry."""
    booking = await load_booking(db, booking_id)
    payments = await list_payments(db, booking_id)
    entries = await LedgerService.list_for_booking(db, booking_id)
    failures = await pending_failures(db, booking_id)

    return BookingDetailResponse(
        booking=BookingResponse.model_validate(booking),
        payments=[PaymentResponse.model_validate(p) for p in payments],
        ledger_adjustments=[LedgerAdjustmentResponse.model_validate(e) for e in entries],
        pending_failures=[SettlementFailureResponse.model_validate(f) for f in failures],
    )


@router.post("/{booking_id}/confirm", response_model=SettlementResponse)
async def confirm_booking(
    booking_id: int = Path(..., description="Booking ID"),
    body: Optional[BookingConfirmRequest] = Body(None),
    actor: ActorContext = Depends(require_back_office),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db)
):
    """
    Confirm a pending booking.

    The vehicle is marked rented unless the booking is backdated.
    """
    body = body or BookingConfirmRequest()
    result = await SettlementOrchestrator.confirm(db, booking_id, actor, clock, admin_note=body.admin_note)
    return _settlement_response(result)


@router.post("/{booking_id}/finish", response_model=SettlementResponse)
async def finish_booking(
    booking_id: int = Path(..., description="Booking ID"),
    body: Optional[BookingFinishRequest] = Body(None),
    actor: ActorContext = Depends(require_back_office),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db)
):
    """
    Complete a booking.

    Validates:
    - Booking is confirmed or ongoing (pending for Super Admin / Admin)
    - finish_enabled, unless the actor is Super Admin / Admin
    - Backdated bookings: actual_return_date equals end_date

    Actions:
    - Compute late fee and debit the driver
    - Release the vehicle
    """
    body = body or BookingFinishRequest()
    result = await SettlementOrchestrator.finish(
        db, booking_id, actor, clock, actual_return_date=body.actual_return_date
    )
    return _settlement_response(result)


@router.post("/{booking_id}/cancel", response_model=SettlementResponse)
async def cancel_booking(
    booking_id: int = Path(..., description="Booking ID"),
    body: BookingCancelRequest = Body(...),
    actor: ActorContext = Depends(require_back_office),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db)
):
    """Cancel a booking with a reason; paid amount is refunded to the driver's saldo."""
    result = await SettlementOrchestrator.cancel(db, booking_id, actor, clock, reason=body.reason)
    return _settlement_response(result)


@router.post("/{booking_id}/backdate-edit", response_model=SettlementResponse)
async def edit_backdated_return_date(
    booking_id: int = Path(..., description="Booking ID"),
    body: BackdateEditRequest = Body(...),
    actor: ActorContext = Depends(require_back_office),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db)
):
    """Correct the return date of a completed backdated booking."""
    result = await SettlementOrchestrator.edit_backdated_return(
        db, booking_id, actor, clock,
        actual_return_date=body.actual_return_date,
        note=body.note
    )
    return _settlement_response(result)


@router.post("/{booking_id}/retry", response_model=SettlementResponse)
async def retry_settlement(
    booking_id: int = Path(..., description="Booking ID"),
    actor: ActorContext = Depends(require_back_office),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db)
):
    """Re-run side effects that failed after the booking's status was written."""
    result = await SettlementOrchestrator.retry_failed_steps(db, booking_id, actor, clock)
    return _settlement_response(result)


@router.post("/{booking_id}/payments", response_model=PaymentRecordedResponse, status_code=201)
async def create_payment(
    booking_id: int = Path(..., description="Booking ID"),
    body: PaymentCreateRequest = Body(...),
    actor: ActorContext = Depends(require_back_office),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db)
):
    """Record a payment received for a booking."""
    booking, payment = await record_payment(
        db, booking_id, actor, clock,
        amount=body.amount,
        payment_method=body.payment_method
    )
    return PaymentRecordedResponse(
        booking=BookingResponse.model_validate(booking),
        payment=PaymentResponse.model_validate(payment)
    )
