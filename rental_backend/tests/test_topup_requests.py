"""
Saldo top-up requests: submission, verification and rejection.
"""

import pytest
from sqlalchemy import select, func

from rental_backend.app.core.exceptions import (
    BookingValidationError,
    InsufficientPermissionsError,
    InvalidTransitionError,
)
from rental_backend.app.domain.booking.actor import ActorContext
from rental_backend.app.models.audit_log import AuditLog
from rental_backend.app.models.booking_enums import AccountType, LedgerReason, TopUpStatus
from rental_backend.app.models.enums import UserRole
from rental_backend.app.models.ledger_adjustment import LedgerAdjustment
from rental_backend.app.services.audit import AuditAction
from rental_backend.app.services.topup_requests import (
    create_topup_request,
    list_topup_requests,
    reject_topup_request,
    verify_topup_request,
)

TOPUPS = "/v1/admin/ledger/topup-requests"


async def count_ledger_rows(db_session):
    return await db_session.scalar(select(func.count(LedgerAdjustment.id)))


def actor_for(user):
    return ActorContext(user_id=user.id, username=user.username, role=user.role, full_name=user.full_name)


async def audit_actions(db_session):
    result = await db_session.execute(select(AuditLog.action).order_by(AuditLog.id))
    return list(result.scalars().all())


@pytest.fixture
async def agent_user(make_user):
    return await make_user("agent", UserRole.AGENT, saldo=50_000)


# Service

@pytest.mark.asyncio
async def test_verify_credits_driver_saldo(db_session, driver, staff, admin, clock):
    request = await create_topup_request(
        db_session, staff, AccountType.DRIVER, driver.id, 150_000, " transfer ", reference_no="TRX-88"
    )
    assert request.status == TopUpStatus.PENDING
    assert request.payment_method == "transfer"
    assert request.request_by_role == "Staff Traffic"
    assert await count_ledger_rows(db_session) == 0

    request, entry = await verify_topup_request(db_session, request.id, admin, clock, note="bank statement ok")

    assert request.status == TopUpStatus.VERIFIED
    assert request.decided_by_id == admin.user_id
    assert request.decided_at is not None
    assert request.decision_note == "bank statement ok"
    assert request.ledger_adjustment_id == entry.id
    assert entry.reason == LedgerReason.TOPUP
    assert entry.amount == 150_000
    assert entry.balance_after == 1_150_000

    await db_session.refresh(driver)
    assert driver.saldo == 1_150_000
    assert await audit_actions(db_session) == [AuditAction.TOPUP_REQUESTED, AuditAction.TOPUP_VERIFIED]


@pytest.mark.asyncio
async def test_agent_requests_own_topup_only(db_session, make_user, agent_user, clock):
    other = await make_user("agent2", UserRole.AGENT)
    agent = actor_for(agent_user)

    request = await create_topup_request(db_session, agent, AccountType.AGENT, agent_user.id, 100_000, "cash")
    assert request.requested_by_id == agent_user.id

    with pytest.raises(InsufficientPermissionsError):
        await create_topup_request(db_session, agent, AccountType.AGENT, other.id, 100_000, "cash")


@pytest.mark.asyncio
@pytest.mark.parametrize("amount,method", [(0, "cash"), (-5_000, "cash"), (10_000, "  ")])
async def test_request_input_validated(db_session, driver, staff, amount, method):
    with pytest.raises(BookingValidationError):
        await create_topup_request(db_session, staff, AccountType.DRIVER, driver.id, amount, method)

    assert await list_topup_requests(db_session) == []


@pytest.mark.asyncio
async def test_traffic_staff_cannot_verify(db_session, driver, staff, clock):
    request = await create_topup_request(db_session, staff, AccountType.DRIVER, driver.id, 150_000, "cash")

    with pytest.raises(InsufficientPermissionsError):
        await verify_topup_request(db_session, request.id, staff, clock)

    await db_session.refresh(request)
    await db_session.refresh(driver)
    assert request.status == TopUpStatus.PENDING
    assert driver.saldo == 1_000_000


@pytest.mark.asyncio
async def test_staff_admin_can_verify(db_session, make_user, driver, staff, clock):
    staff_admin = actor_for(await make_user("sadmin", UserRole.STAFF_ADMIN))
    request = await create_topup_request(db_session, staff, AccountType.DRIVER, driver.id, 20_000, "cash")

    request, _ = await verify_topup_request(db_session, request.id, staff_admin, clock)

    assert request.status == TopUpStatus.VERIFIED


@pytest.mark.asyncio
@pytest.mark.parametrize("reason", [None, "", "   "])
async def test_reject_requires_reason(db_session, driver, staff, admin, clock, reason):
    request = await create_topup_request(db_session, staff, AccountType.DRIVER, driver.id, 150_000, "cash")

    with pytest.raises(BookingValidationError):
        await reject_topup_request(db_session, request.id, admin, clock, reason=reason)

    await db_session.refresh(request)
    assert request.status == TopUpStatus.PENDING


@pytest.mark.asyncio
async def test_rejected_request_moves_no_money(db_session, driver, staff, admin, clock):
    request = await create_topup_request(db_session, staff, AccountType.DRIVER, driver.id, 150_000, "cash")

    request = await reject_topup_request(db_session, request.id, admin, clock, reason=" no transfer found ")

    assert request.status == TopUpStatus.REJECTED
    assert request.decision_note == "no transfer found"
    assert request.ledger_adjustment_id is None
    await db_session.refresh(driver)
    assert driver.saldo == 1_000_000
    assert await count_ledger_rows(db_session) == 0


@pytest.mark.asyncio
async def test_request_decided_once(db_session, driver, staff, admin, clock):
    request = await create_topup_request(db_session, staff, AccountType.DRIVER, driver.id, 150_000, "cash")
    await verify_topup_request(db_session, request.id, admin, clock)

    with pytest.raises(InvalidTransitionError):
        await verify_topup_request(db_session, request.id, admin, clock)
    with pytest.raises(InvalidTransitionError):
        await reject_topup_request(db_session, request.id, admin, clock, reason="duplicate")

    await db_session.refresh(driver)
    assert driver.saldo == 1_150_000
    assert await count_ledger_rows(db_session) == 1


@pytest.mark.asyncio
async def test_list_filters_by_status(db_session, driver, staff, admin, clock):
    first = await create_topup_request(db_session, staff, AccountType.DRIVER, driver.id, 10_000, "cash")
    second = await create_topup_request(db_session, staff, AccountType.DRIVER, driver.id, 20_000, "cash")
    await verify_topup_request(db_session, first.id, admin, clock)

    pending = await list_topup_requests(db_session, status=TopUpStatus.PENDING)
    everything = await list_topup_requests(db_session)

    assert [r.id for r in pending] == [second.id]
    assert [r.id for r in everything] == [second.id, first.id]


# HTTP

@pytest.mark.asyncio
async def test_topup_flow_over_http(client, driver, admin_user, staff_user, auth_headers):
    payload = {"account_type": "driver", "account_id": driver.id, "amount": 75_000, "payment_method": "transfer"}

    created = await client.post(TOPUPS, json=payload, headers=auth_headers(staff_user))
    assert created.status_code == 201
    request_id = created.json()["id"]
    assert created.json()["status"] == "pending"

    forbidden = await client.post(f"{TOPUPS}/{request_id}/verify", headers=auth_headers(staff_user))
    assert forbidden.status_code == 403
    assert forbidden.json()["error_code"] == "ERR_PERM_001"

    verified = await client.post(f"{TOPUPS}/{request_id}/verify", headers=auth_headers(admin_user))
    assert verified.status_code == 200
    data = verified.json()
    assert data["request"]["status"] == "verified"
    assert data["ledger_adjustment"]["reason"] == "topup"
    assert data["ledger_adjustment"]["balance_after"] == 1_075_000

    listed = await client.get(TOPUPS, params={"status": "verified"}, headers=auth_headers(staff_user))
    assert listed.status_code == 200
    assert listed.json()["total"] == 1


@pytest.mark.asyncio
async def test_reject_without_reason_over_http(client, driver, admin_user, staff_user, auth_headers):
    payload = {"account_type": "driver", "account_id": driver.id, "amount": 75_000, "payment_method": "cash"}
    created = await client.post(TOPUPS, json=payload, headers=auth_headers(staff_user))
    request_id = created.json()["id"]

    missing = await client.post(f"{TOPUPS}/{request_id}/reject", json={}, headers=auth_headers(admin_user))
    assert missing.status_code == 422
    assert missing.json()["error_code"] == "ERR_BOOKING_VALIDATION"

    rejected = await client.post(
        f"{TOPUPS}/{request_id}/reject", json={"reason": "wrong amount"}, headers=auth_headers(admin_user)
    )
    assert rejected.status_code == 200
    assert rejected.json()["status"] == "rejected"


@pytest.mark.asyncio
async def test_agent_submits_but_cannot_list(client, agent_user, auth_headers):
    payload = {"account_type": "agent", "account_id": agent_user.id, "amount": 30_000, "payment_method": "cash"}

    created = await client.post(TOPUPS, json=payload, headers=auth_headers(agent_user))
    assert created.status_code == 201
    assert created.json()["request_by_role"] == "Agent"

    listed = await client.get(TOPUPS, headers=auth_headers(agent_user))
    assert listed.status_code == 403
