"""
Ledger API Endpoints.

Transaction history of driver/agent saldo, manual adjustments and top-up
requests.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Body
from sqlalchemy.ext.asyncio import AsyncSession

from rental_backend.app.db.session import get_db
from rental_backend.app.core.clock import Clock, get_clock
from rental_backend.app.core.guards import require_back_office, require_privileged, require_role
from rental_backend.app.domain.booking.actor import ActorContext
from rental_backend.app.domain.booking.ledger import LedgerService, get_account
from rental_backend.app.models.booking_enums import AccountType, TopUpStatus
from rental_backend.app.models.enums import BACK_OFFICE_ROLES, UserRole
from rental_backend.app.schemas.ledger import (
    LedgerAdjustmentResponse, ManualAdjustmentRequest, TransactionHistoryResponse,
    TopUpRequestCreate, TopUpVerifyRequest, TopUpRejectRequest,
    TopUpRequestResponse, TopUpVerifiedResponse, TopUpRequestListResponse
)
from rental_backend.app.services.saldo_adjustments import adjust_saldo
from rental_backend.app.services.topup_requests import (
    create_topup_request, verify_topup_request, reject_topup_request, list_topup_requests
)

router = APIRouter(prefix="/admin/ledger", tags=["Admin - Ledger"])

# Agents submit top-ups for their own saldo
require_topup_submitter = require_role(BACK_OFFICE_ROLES | {UserRole.AGENT})


@router.get("/{account_type}/{account_id}", response_model=TransactionHistoryResponse)
async def get_transaction_history(
    account_type: AccountType = Path(..., description="driver or agent"),
    account_id: int = Path(..., description="Driver ID or agent user ID"),
    limit: int = Query(100, ge=1, le=500),
    actor: ActorContext = Depends(require_back_office),
    db: AsyncSession = Depends(get_db)
):
    """Current saldo and saldo movements of an account, newest first."""
    account = await get_account(db, account_type, account_id)
    entries = await LedgerService.list_for_account(db, account_type, account_id, limit=limit)

    return TransactionHistoryResponse(
        account_type=account_type,
        account_id=account_id,
        saldo=account.saldo,
        entries=[LedgerAdjustmentResponse.model_validate(e) for e in entries],
        total=len(entries)
    )


@router.post("/manual-adjustments", response_model=LedgerAdjustmentResponse, status_code=201)
async def create_manual_adjustment(
    body: ManualAdjustmentRequest = Body(...),
    actor: ActorContext = Depends(require_privileged),
    db: AsyncSession = Depends(get_db)
):
    """
    Top up or correct a saldo (Super Admin / Admin only).

    Positive amounts credit the account, negative amounts debit it.
    """
    entry = await adjust_saldo(
        db, actor,
        account_type=body.account_type,
        account_id=body.account_id,
        amount=body.amount,
        note=body.note
    )
    return LedgerAdjustmentResponse.model_validate(entry)


@router.post("/topup-requests", response_model=TopUpRequestResponse, status_code=201)
async def submit_topup_request(
    body: TopUpRequestCreate = Body(...),
    actor: ActorContext = Depends(require_topup_submitter),
    db: AsyncSession = Depends(get_db)
):
    """Submit a saldo top-up request; it waits in pending for verification."""
    request = await create_topup_request(
        db, actor,
        account_type=body.account_type,
        account_id=body.account_id,
        amount=body.amount,
        payment_method=body.payment_method,
        reference_no=body.reference_no,
        note=body.note
    )
    return TopUpRequestResponse.model_validate(request)


@router.get("/topup-requests", response_model=TopUpRequestListResponse)
async def get_topup_requests(
    status: Optional[TopUpStatus] = Query(None, description="pending, verified or rejected"),
    account_type: Optional[AccountType] = Query(None, description="driver or agent"),
    limit: int = Query(100, ge=1, le=500),
    actor: ActorContext = Depends(require_back_office),
    db: AsyncSession = Depends(get_db)
):
    requests = await list_topup_requests(db, status=status, account_type=account_type, limit=limit)
    return TopUpRequestListResponse(
        requests=[TopUpRequestResponse.model_validate(r) for r in requests],
        total=len(requests)
    )


@router.post("/topup-requests/{request_id}/verify", response_model=TopUpVerifiedResponse)
async def verify_topup(
    request_id: int = Path(..., description="Top-up request ID"),
    body: Optional[TopUpVerifyRequest] = Body(None),
    actor: ActorContext = Depends(require_back_office),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db)
):
    """
    Verify a top-up request (Super Admin / Admin / Staff Admin).

    Credits the requested amount to the account's saldo.
    """
    body = body or TopUpVerifyRequest()
    request, entry = await verify_topup_request(db, request_id, actor, clock, note=body.note)
    return TopUpVerifiedResponse(
        request=TopUpRequestResponse.model_validate(request),
        ledger_adjustment=LedgerAdjustmentResponse.model_validate(entry)
    )


@router.post("/topup-requests/{request_id}/reject", response_model=TopUpRequestResponse)
async def reject_topup(
    request_id: int = Path(..., description="Top-up request ID"),
    body: TopUpRejectRequest = Body(...),
    actor: ActorContext = Depends(require_back_office),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db)
):
    """Reject a top-up request with a reason (Super Admin / Admin / Staff Admin)."""
    request = await reject_topup_request(db, request_id, actor, clock, reason=body.reason)
    return TopUpRequestResponse.model_validate(request)
