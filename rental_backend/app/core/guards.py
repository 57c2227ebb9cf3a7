"""
Security guards for role-based access control.

Provides dependencies for protecting endpoints. Fine-grained settlement
privileges (finish override, reconciled backdate edits) are checked by the
orchestrator itself from the ActorContext.
"""

from typing import Iterable
from fastapi import Depends, HTTPException, status
from rental_backend.app.core.dependencies import get_actor_context
from rental_backend.app.domain.booking.actor import ActorContext
from rental_backend.app.models.enums import UserRole, BACK_OFFICE_ROLES, PRIVILEGED_ROLES


def require_role(allowed_roles: Iterable[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.post("/admin/ledger/manual-adjustments")
        async def adjust(actor: ActorContext = Depends(require_role(PRIVILEGED_ROLES))):
            ...

    Args:
        allowed_roles: UserRole members that are allowed to access the endpoint

    Returns:
        FastAPI dependency function that yields the ActorContext

    Raises:
        HTTPException 403 if user role is not in allowed_roles
    """
    allowed = frozenset(allowed_roles)

    async def role_checker(actor: ActorContext = Depends(get_actor_context)) -> ActorContext:
        if actor.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join(sorted(r.value for r in allowed))}"
            )
        return actor

    return role_checker


require_back_office = require_role(BACK_OFFICE_ROLES)
require_privileged = require_role(PRIVILEGED_ROLES)
