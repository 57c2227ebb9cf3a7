"""
Audit Log API Endpoints.

Read access to the settlement audit trail.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from rental_backend.app.db.session import get_db
from rental_backend.app.core.guards import require_privileged
from rental_backend.app.domain.booking.actor import ActorContext
from rental_backend.app.schemas.audit import AuditTrailResponse, AuditLogResponse
from rental_backend.app.services.audit import get_audit_trail

router = APIRouter(prefix="/admin", tags=["Admin - Audit"])


@router.get("/audit-logs", response_model=AuditTrailResponse)
async def get_audit_logs(
    booking_id: Optional[int] = Query(None, description="Filter by booking ID"),
    action: Optional[str] = Query(None, description="Filter by action type"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum records to return"),
    actor: ActorContext = Depends(require_privileged),
    db: AsyncSession = Depends(get_db)
):
    """
    Get audit trail with optional filtering (Super Admin / Admin).

    Returns recent settlement and saldo events, most recent first.
    """
    logs = await get_audit_trail(db, booking_id=booking_id, action=action, limit=limit)

    return AuditTrailResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=len(logs)
    )
