"""
Saldo top-up requests.

Drivers (through back office) and agents submit a top-up after paying in.
Super Admin, Admin or Staff Admin then verifies it, which credits the saldo
through the ledger, or rejects it with a reason. A request is decided once.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import select, update, desc
from sqlalchemy.ext.asyncio import AsyncSession

from rental_backend.app.core.clock import Clock
from rental_backend.app.core.exceptions import (
    BookingValidationError,
    InsufficientPermissionsError,
    InvalidTransitionError,
    ResourceNotFoundError,
)
from rental_backend.app.domain.booking.actor import ActorContext
from rental_backend.app.domain.booking.ledger import LedgerService, get_account
from rental_backend.app.domain.booking.state_machine import require_note
from rental_backend.app.models.booking_enums import AccountType, LedgerReason, TopUpStatus
from rental_backend.app.models.enums import UserRole, TOPUP_VERIFIER_ROLES
from rental_backend.app.models.ledger_adjustment import LedgerAdjustment
from rental_backend.app.models.topup_request import TopUpRequest
from rental_backend.app.services.audit import AuditAction, append_audit_entry

logger = logging.getLogger("rental.topup")


def _ensure_can_request(actor: ActorContext, account_type: AccountType, account_id: int) -> None:
    if actor.is_back_office:
        return
    if actor.role == UserRole.AGENT and account_type == AccountType.AGENT and account_id == actor.user_id:
        return
    raise InsufficientPermissionsError(
        message="Agents may only request top-ups for their own saldo",
        details={"role": actor.role.value}
    )


def _ensure_verifier(actor: ActorContext) -> None:
    if actor.role not in TOPUP_VERIFIER_ROLES:
        raise InsufficientPermissionsError(
            message="Only Super Admin, Admin or Staff Admin can decide top-up requests",
            details={"role": actor.role.value}
        )


async def get_topup_request(db: AsyncSession, request_id: int) -> TopUpRequest:
    request = await db.get(TopUpRequest, request_id)
    if request is None:
        raise ResourceNotFoundError("Top-up request", request_id)
    return request


async def create_topup_request(
    db: AsyncSession,
    actor: ActorContext,
    account_type: AccountType,
    account_id: int,
    amount: float,
    payment_method: str,
    reference_no: Optional[str] = None,
    note: Optional[str] = None
) -> TopUpRequest:
    """
    Submit a top-up request in PENDING.

    Raises:
        InsufficientPermissionsError: not back office, nor an agent topping up itself
        BookingValidationError: non-positive amount, missing method, agent id not an agent
        ResourceNotFoundError: account does not exist
    """
    _ensure_can_request(actor, account_type, account_id)
    if amount is None or amount <= 0:
        raise BookingValidationError("Top-up amount must be positive", details={"amount": amount})
    method = require_note(payment_method, "payment_method")
    await get_account(db, account_type, account_id)

    request = TopUpRequest(
        account_type=account_type,
        account_id=account_id,
        amount=amount,
        payment_method=method,
        reference_no=(reference_no or "").strip() or None,
        note=(note or "").strip() or None,
        requested_by_id=actor.user_id,
        request_by_role=actor.role.value
    )
    db.add(request)
    await db.commit()
    await db.refresh(request)

    logger.info(
        "Top-up request %s: %s %s for %s", request.id, account_type.value, account_id, amount
    )

    await append_audit_entry(
        db, AuditAction.TOPUP_REQUESTED, actor=actor,
        metadata={
            "topup_request_id": request.id,
            "account_type": account_type.value,
            "account_id": account_id,
            "amount": amount,
            "payment_method": method,
        }
    )
    await db.refresh(request)
    return request


async def _claim_pending(
    db: AsyncSession,
    request: TopUpRequest,
    action: str,
    new_status: TopUpStatus,
    actor: ActorContext,
    clock: Clock,
    decision_note: Optional[str]
) -> None:
    """Move a request out of PENDING; a concurrent decision makes this a no-op and raises."""
    if request.status != TopUpStatus.PENDING:
        raise InvalidTransitionError(action, request.status.value)

    result = await db.execute(
        update(TopUpRequest)
        .where(TopUpRequest.id == request.id, TopUpRequest.status == TopUpStatus.PENDING)
        .values(
            status=new_status,
            decided_by_id=actor.user_id,
            decided_at=clock.now(),
            decision_note=decision_note
        )
    )
    if result.rowcount != 1:
        await db.rollback()
        await db.refresh(request)
        raise InvalidTransitionError(action, request.status.value)


async def verify_topup_request(
    db: AsyncSession,
    request_id: int,
    actor: ActorContext,
    clock: Clock,
    note: Optional[str] = None
) -> Tuple[TopUpRequest, LedgerAdjustment]:
    """
    Verify a pending request and credit the saldo.

    The status change and the ledger credit commit together.

    Returns:
        (verified request, ledger adjustment)

    Raises:
        InsufficientPermissionsError: actor cannot decide top-ups
        InvalidTransitionError: request already decided
    """
    _ensure_verifier(actor)
    request = await get_topup_request(db, request_id)
    note = (note or "").strip() or None

    await _claim_pending(db, request, "verify", TopUpStatus.VERIFIED, actor, clock, note)

    entry = await LedgerService.adjust(
        db,
        account_type=request.account_type,
        account_id=request.account_id,
        amount=request.amount,
        reason=LedgerReason.TOPUP,
        actor_id=actor.user_id,
        description=f"Top-up #{request.id} via {request.payment_method}"
    )
    request.ledger_adjustment_id = entry.id
    await db.commit()
    await db.refresh(request)
    await db.refresh(entry)

    logger.info("Top-up request %s verified by %s, balance %s", request_id, actor.username, entry.balance_after)

    await append_audit_entry(
        db, AuditAction.TOPUP_VERIFIED, actor=actor,
        metadata={
            "topup_request_id": request.id,
            "account_type": request.account_type.value,
            "account_id": request.account_id,
            "amount": request.amount,
            "balance_after": entry.balance_after,
            "ledger_adjustment_id": entry.id,
        }
    )
    await db.refresh(request)
    await db.refresh(entry)
    return request, entry


async def reject_topup_request(
    db: AsyncSession,
    request_id: int,
    actor: ActorContext,
    clock: Clock,
    reason: str
) -> TopUpRequest:
    """
    Reject a pending request. No saldo moves.

    Raises:
        InsufficientPermissionsError: actor cannot decide top-ups
        BookingValidationError: missing reason
        InvalidTransitionError: request already decided
    """
    _ensure_verifier(actor)
    reason = require_note(reason, "reason")
    request = await get_topup_request(db, request_id)

    await _claim_pending(db, request, "reject", TopUpStatus.REJECTED, actor, clock, reason)
    await db.commit()
    await db.refresh(request)

    logger.info("Top-up request %s rejected by %s", request_id, actor.username)

    await append_audit_entry(
        db, AuditAction.TOPUP_REJECTED, actor=actor,
        metadata={
            "topup_request_id": request.id,
            "account_type": request.account_type.value,
            "account_id": request.account_id,
            "amount": request.amount,
            "reason": reason,
        }
    )
    await db.refresh(request)
    return request


async def list_topup_requests(
    db: AsyncSession,
    status: Optional[TopUpStatus] = None,
    account_type: Optional[AccountType] = None,
    limit: int = 100
) -> List[TopUpRequest]:
    """Top-up requests, newest first."""
    query = select(TopUpRequest).order_by(desc(TopUpRequest.id)).limit(limit)
    if status:
        query = query.where(TopUpRequest.status == status)
    if account_type:
        query = query.where(TopUpRequest.account_type == account_type)

    result = await db.execute(query)
    return list(result.scalars().all())
