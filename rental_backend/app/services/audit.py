"""
Audit logging service for booking settlement actions.

Audit rows are appended after the financial effect has been committed. A
failed audit insert is logged as a warning and does not turn a successful
settlement into an error.
"""

import logging
from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import select, desc
from rental_backend.app.domain.booking.actor import ActorContext
from rental_backend.app.models.audit_log import AuditLog

logger = logging.getLogger("rental.audit")


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    BOOKING_CONFIRMED = "BOOKING_CONFIRMED"
    BOOKING_STARTED = "BOOKING_STARTED"
    BOOKING_COMPLETED = "BOOKING_COMPLETED"
    BOOKING_CANCELLED = "BOOKING_CANCELLED"
    BOOKING_RETURN_DATE_EDITED = "BOOKING_RETURN_DATE_EDITED"
    BOOKING_FINISH_ENABLED = "BOOKING_FINISH_ENABLED"
    SETTLEMENT_RETRIED = "SETTLEMENT_RETRIED"

    PAYMENT_RECORDED = "PAYMENT_RECORDED"
    SALDO_ADJUSTED = "SALDO_ADJUSTED"
    TOPUP_REQUESTED = "TOPUP_REQUESTED"
    TOPUP_VERIFIED = "TOPUP_VERIFIED"
    TOPUP_REJECTED = "TOPUP_REJECTED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor: Optional[ActorContext] = None,
    booking_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Append an audit row and commit it.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        actor: Acting admin, None for system actions
        booking_id: Booking acted upon
        metadata: Additional context as JSON

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor.user_id if actor else None,
        actor_username=actor.username if actor else "system",
        action=action,
        target_booking_id=booking_id,
        meta_data=metadata
    )

    db.add(audit_log)
    await db.commit()
    await db.refresh(audit_log)

    return audit_log


async def append_audit_entry(
    db: AsyncSession,
    action: str,
    actor: Optional[ActorContext] = None,
    booking_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> Optional[AuditLog]:
    """
    Append an audit row after the primary effect was committed.

    Returns None, and logs a warning, when the insert fails.
    """
    try:
        return await log_event(db, action, actor=actor, booking_id=booking_id, metadata=metadata)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.warning(
            "Audit entry %s for booking %s could not be written: %s",
            action, booking_id, e,
            extra={"audit_action": action, "booking_id": booking_id, "audit_metadata": metadata}
        )
        return None


async def get_audit_trail(
    db: AsyncSession,
    booking_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering.

    Args:
        db: Database session
        booking_id: Filter by booking ID
        action: Filter by action type
        limit: Maximum number of records to return

    Returns:
        List of AuditLog instances, most recent first
    """
    query = select(AuditLog).order_by(desc(AuditLog.id))

    if booking_id:
        query = query.where(AuditLog.target_booking_id == booking_id)

    if action:
        query = query.where(AuditLog.action == action)

    query = query.limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())
