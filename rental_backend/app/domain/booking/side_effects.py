"""
Settlement plumbing shared by the orchestrator and the backdate handler.

Flow of every booking action:
1. Validate (state machine, permissions, inputs) - nothing written yet
2. Commit the status write (optimistic revision check)
3. Apply the side effects licensed by that status, one commit each
4. Record failed side effects for retry
5. Append one audit row
6. Raise DependencyFailureError if any side effect failed
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from rental_backend.app.core.exceptions import (
    ConcurrentUpdateError,
    DependencyFailureError,
    InsufficientPermissionsError,
    ResourceNotFoundError,
)
from rental_backend.app.domain.booking.actor import ActorContext
from rental_backend.app.domain.booking.ledger import LedgerService
from rental_backend.app.models.booking import Booking
from rental_backend.app.models.booking_enums import (
    AccountType,
    BookingStatus,
    LedgerReason,
    SettlementFailureStatus,
    SettlementStep,
    VehicleAvailability,
)
from rental_backend.app.models.ledger_adjustment import LedgerAdjustment
from rental_backend.app.models.settlement_failure import SettlementFailure
from rental_backend.app.services.audit import append_audit_entry
from rental_backend.app.services.vehicle_availability import set_vehicle_availability

logger = logging.getLogger("rental.settlement")


@dataclass(frozen=True)
class SideEffect:
    """A side effect licensed by a status write, replayable from its payload."""
    step: SettlementStep
    payload: dict

    @classmethod
    def vehicle(cls, booking: Booking, availability: VehicleAvailability) -> "SideEffect":
        step = SettlementStep.VEHICLE_RENT if availability == VehicleAvailability.RENTED else SettlementStep.VEHICLE_RELEASE
        return cls(step, {"vehicle_id": booking.vehicle_id, "availability": availability.value})

    @classmethod
    def driver_ledger(cls, booking: Booking, amount: float, reason: LedgerReason, description: str) -> "SideEffect":
        step = SettlementStep.LEDGER_LATE_FEE if reason == LedgerReason.LATE_FEE else SettlementStep.LEDGER_REFUND
        return cls(step, {
            "account_type": AccountType.DRIVER.value,
            "account_id": booking.driver_id,
            "amount": amount,
            "reason": reason.value,
            "description": description,
        })


# Status a booking must still be in for a step to be (re)applied
STEP_LICENSED_BY = {
    SettlementStep.VEHICLE_RENT: frozenset({BookingStatus.CONFIRMED, BookingStatus.ONGOING}),
    SettlementStep.VEHICLE_RELEASE: frozenset({BookingStatus.COMPLETED}),
    SettlementStep.LEDGER_LATE_FEE: frozenset({BookingStatus.COMPLETED}),
    SettlementStep.LEDGER_REFUND: frozenset({BookingStatus.CANCELLED}),
}


@dataclass
class SettlementResult:
    """Outcome of a booking action."""
    booking: Booking
    action: str
    previous_status: BookingStatus
    ledger_adjustments: List[LedgerAdjustment] = field(default_factory=list)
    vehicle_availability: Optional[VehicleAvailability] = None
    resolved_steps: List[str] = field(default_factory=list)
    audit_log_id: Optional[int] = None

    @property
    def amount_moved(self) -> float:
        return sum(entry.amount for entry in self.ledger_adjustments)


def ensure_back_office(actor: ActorContext) -> None:
    if not actor.is_back_office:
        raise InsufficientPermissionsError(
            message="Only back-office staff can act on bookings",
            details={"role": actor.role.value}
        )


async def load_booking(db: AsyncSession, booking_id: int) -> Booking:
    booking = await db.get(Booking, booking_id)
    if booking is None:
        raise ResourceNotFoundError("Booking", booking_id)
    return booking


async def commit_status_write(db: AsyncSession, booking: Booking, now: datetime) -> None:
    """
    Commit the booking's pending changes.

    The UPDATE carries `WHERE revision = :seen`; if another session got
    there first nothing is written and ConcurrentUpdateError is raised.
    """
    booking_id = booking.id
    booking.updated_at = now
    try:
        await db.commit()
    except StaleDataError:
        await db.rollback()
        logger.warning("Concurrent update rejected for booking %s", booking_id)
        raise ConcurrentUpdateError(booking_id)


async def apply_side_effect(db: AsyncSession, booking_id: int, effect: SideEffect, actor_id: int):
    """Perform one side effect. Returns the LedgerAdjustment or the new availability."""
    payload = effect.payload
    if effect.step in (SettlementStep.VEHICLE_RENT, SettlementStep.VEHICLE_RELEASE):
        availability = VehicleAvailability(payload["availability"])
        await set_vehicle_availability(db, payload["vehicle_id"], availability)
        return availability

    return await LedgerService.adjust(
        db,
        account_type=AccountType(payload["account_type"]),
        account_id=payload["account_id"],
        amount=payload["amount"],
        reason=LedgerReason(payload["reason"]),
        actor_id=actor_id,
        booking_id=booking_id,
        description=payload.get("description")
    )


async def record_failure(db: AsyncSession, booking_id: int, effect: SideEffect, error: Exception) -> None:
    failure = SettlementFailure(
        booking_id=booking_id,
        step=effect.step,
        payload=effect.payload,
        error_message=f"{type(error).__name__}: {error}"
    )
    db.add(failure)
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Could not record failed step %s for booking %s", effect.step.value, booking_id)


async def run_side_effects(
    db: AsyncSession,
    booking_id: int,
    effects: List[SideEffect],
    actor_id: int,
    result: SettlementResult
) -> List[str]:
    """
    Apply side effects in order, each in its own commit.

    A failure is rolled back, recorded as a SettlementFailure and does not
    stop the remaining steps.

    Returns:
        Names of the failed steps
    """
    failed_steps = []
    for effect in effects:
        try:
            outcome = await apply_side_effect(db, booking_id, effect, actor_id)
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error(
                "Settlement step %s failed for booking %s: %s",
                effect.step.value, booking_id, e,
                exc_info=True
            )
            await record_failure(db, booking_id, effect, e)
            failed_steps.append(effect.step.value)
            continue

        if isinstance(outcome, LedgerAdjustment):
            result.ledger_adjustments.append(outcome)
        else:
            result.vehicle_availability = outcome

    return failed_steps


async def refresh_result(db: AsyncSession, result: SettlementResult) -> None:
    """Reload what the result exposes; rollbacks expire instances and insert defaults load lazily."""
    await db.refresh(result.booking)
    for entry in result.ledger_adjustments:
        await db.refresh(entry)


async def complete_settlement(
    db: AsyncSession,
    booking: Booking,
    result: SettlementResult,
    effects: List[SideEffect],
    actor: Optional[ActorContext],
    audit_action: str,
    metadata: Optional[dict] = None
) -> SettlementResult:
    """
    Run the side effects of a committed status write, audit, and report.

    Raises:
        DependencyFailureError: one or more side effects failed; the status
            write stays committed
    """
    booking_id = booking.id
    actor_id = actor.user_id if actor else None

    failed_steps = await run_side_effects(db, booking_id, effects, actor_id, result)
    await refresh_result(db, result)

    audit_metadata = {
        "code_booking": booking.code_booking,
        "before_status": result.previous_status.value,
        "after_status": booking.status.value,
        "amount_moved": result.amount_moved,
        "ledger_adjustment_ids": [entry.id for entry in result.ledger_adjustments],
    }
    if result.vehicle_availability is not None:
        audit_metadata["vehicle_availability"] = result.vehicle_availability.value
    if failed_steps:
        audit_metadata["failed_steps"] = failed_steps
    audit_metadata.update(metadata or {})

    audit_log = await append_audit_entry(
        db, audit_action, actor=actor, booking_id=booking_id, metadata=audit_metadata
    )
    if audit_log is not None:
        result.audit_log_id = audit_log.id
    else:
        await refresh_result(db, result)

    logger.info(
        "Booking %s %s: %s -> %s, moved %s",
        booking_id, result.action, result.previous_status.value, booking.status.value, result.amount_moved
    )

    if failed_steps:
        raise DependencyFailureError(booking_id, booking.status.value, failed_steps)

    return result


async def pending_failures(db: AsyncSession, booking_id: int) -> List[SettlementFailure]:
    result = await db.execute(
        select(SettlementFailure)
        .where(
            SettlementFailure.booking_id == booking_id,
            SettlementFailure.status == SettlementFailureStatus.FAILED
        )
        .order_by(SettlementFailure.id)
    )
    return list(result.scalars().all())
