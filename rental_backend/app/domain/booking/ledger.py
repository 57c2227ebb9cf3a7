"""
Ledger Service (saldo adjustments).

The single place where a driver or agent saldo changes. Each adjustment
updates the balance and appends an immutable LedgerAdjustment row in the
same flush; the caller owns the commit.
"""

import logging
from typing import Optional

from sqlalchemy import select, update, desc
from sqlalchemy.ext.asyncio import AsyncSession

from rental_backend.app.core.exceptions import BookingValidationError, ResourceNotFoundError
from rental_backend.app.models.booking_enums import AccountType, LedgerReason
from rental_backend.app.models.driver import Driver
from rental_backend.app.models.enums import UserRole
from rental_backend.app.models.ledger_adjustment import LedgerAdjustment
from rental_backend.app.models.user import User

logger = logging.getLogger("rental.ledger")


def _account_model(account_type: AccountType):
    return Driver if account_type == AccountType.DRIVER else User


async def get_account(db: AsyncSession, account_type: AccountType, account_id: int):
    """Load the driver or agent owning a saldo."""
    account = await db.get(_account_model(account_type), account_id)
    if account is None:
        raise ResourceNotFoundError(account_type.value.capitalize(), account_id)
    if account_type == AccountType.AGENT and account.role != UserRole.AGENT:
        raise BookingValidationError(
            f"User {account_id} is not an agent",
            details={"account_id": account_id, "role": account.role.value}
        )
    return account


class LedgerService:

    @staticmethod
    async def adjust(
        db: AsyncSession,
        account_type: AccountType,
        account_id: int,
        amount: float,
        reason: LedgerReason,
        actor_id: int,
        booking_id: Optional[int] = None,
        description: Optional[str] = None
    ) -> LedgerAdjustment:
        """
        Apply a signed delta to an account saldo and record it.

        Does not deduplicate: calling twice with the same booking_id moves
        money twice. Callers guard against that through the booking status.

        Args:
            db: Database session (commit is the caller's)
            account_type: DRIVER or AGENT
            account_id: drivers.id or users.id
            amount: Negative to debit, positive to credit
            reason: LATE_FEE, REFUND, MANUAL or TOPUP
            actor_id: Admin performing the action
            booking_id: Booking the movement belongs to, if any
            description: Free text shown in transaction history

        Returns:
            The flushed LedgerAdjustment
        """
        if not amount:
            raise BookingValidationError("Ledger adjustment amount must be non-zero")

        model = _account_model(account_type)
        await get_account(db, account_type, account_id)

        # Atomic increment so concurrent adjustments cannot lose an update
        await db.execute(
            update(model)
            .where(model.id == account_id)
            .values(saldo=model.saldo + amount)
        )
        balance_after = await db.scalar(select(model.saldo).where(model.id == account_id))

        entry = LedgerAdjustment(
            account_type=account_type,
            account_id=account_id,
            booking_id=booking_id,
            actor_id=actor_id,
            amount=amount,
            balance_after=balance_after,
            reason=reason,
            description=description
        )
        db.add(entry)
        await db.flush()

        logger.info(
            "Saldo adjusted: %s %s by %s (%s), balance %s",
            account_type.value, account_id, amount, reason.value, balance_after
        )
        return entry

    @staticmethod
    async def list_for_account(
        db: AsyncSession,
        account_type: AccountType,
        account_id: int,
        limit: int = 100
    ) -> list[LedgerAdjustment]:
        """Transaction history of one account, newest first."""
        result = await db.execute(
            select(LedgerAdjustment)
            .where(
                LedgerAdjustment.account_type == account_type,
                LedgerAdjustment.account_id == account_id
            )
            .order_by(desc(LedgerAdjustment.id))
            .limit(limit)
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_for_booking(db: AsyncSession, booking_id: int) -> list[LedgerAdjustment]:
        result = await db.execute(
            select(LedgerAdjustment)
            .where(LedgerAdjustment.booking_id == booking_id)
            .order_by(LedgerAdjustment.id)
        )
        return list(result.scalars().all())
