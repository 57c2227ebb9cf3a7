"""
Manual saldo adjustments (top-ups and corrections).

Privileged staff credit or debit a driver or agent outside of a booking.
Goes through the same ledger primitive as settlement.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from rental_backend.app.core.exceptions import InsufficientPermissionsError
from rental_backend.app.domain.booking.actor import ActorContext
from rental_backend.app.domain.booking.ledger import LedgerService
from rental_backend.app.domain.booking.state_machine import require_note
from rental_backend.app.models.booking_enums import AccountType, LedgerReason
from rental_backend.app.models.ledger_adjustment import LedgerAdjustment
from rental_backend.app.services.audit import AuditAction, append_audit_entry


async def adjust_saldo(
    db: AsyncSession,
    actor: ActorContext,
    account_type: AccountType,
    account_id: int,
    amount: float,
    note: str
) -> LedgerAdjustment:
    """
    Apply a manual saldo adjustment.

    Raises:
        InsufficientPermissionsError: actor is not Super Admin / Admin
        BookingValidationError: zero amount, missing note, agent id not an agent
        ResourceNotFoundError: account does not exist
    """
    if not actor.is_privileged:
        raise InsufficientPermissionsError(
            message="Only Super Admin or Admin can adjust saldo manually",
            details={"role": actor.role.value}
        )
    note = require_note(note, "note")

    entry = await LedgerService.adjust(
        db,
        account_type=account_type,
        account_id=account_id,
        amount=amount,
        reason=LedgerReason.MANUAL,
        actor_id=actor.user_id,
        description=note
    )
    await db.commit()
    await db.refresh(entry)

    await append_audit_entry(
        db, AuditAction.SALDO_ADJUSTED, actor=actor,
        metadata={
            "account_type": account_type.value,
            "account_id": account_id,
            "amount": amount,
            "balance_after": entry.balance_after,
            "ledger_adjustment_id": entry.id,
            "note": note,
        }
    )
    await db.refresh(entry)
    return entry
