"""
Centralized Test Configuration.
"""

from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from rental_backend.app.main import app
from rental_backend.app.db.session import get_db, Base
from rental_backend.app.core.clock import FixedClock, get_clock
from rental_backend.app.core.jwt import create_access_token
from rental_backend.app.core.redis_client import get_redis
from rental_backend.app.domain.booking.actor import ActorContext
from rental_backend.app.models.booking import Booking
from rental_backend.app.models.booking_enums import BookingStatus, VehicleAvailability
from rental_backend.app.models.driver import Driver
from rental_backend.app.models.enums import UserRole
from rental_backend.app.models.user import User
from rental_backend.app.models.vehicle import Vehicle

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(engine.sync_engine, "connect", set_sqlite_pragma)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


# Shared session for fixture data creation
@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    # Three days after the default booking end date
    return FixedClock(datetime(2024, 1, 13, 10, 0, tzinfo=ZoneInfo("Asia/Jakarta")))


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}

    async def ping(self):
        return True

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value
        return True

    async def delete(self, key):
        if key in self.store:
            del self.store[key]
            return 1
        return 0

    async def exists(self, key):
        return 1 if key in self.store else 0


@pytest.fixture
def mock_redis():
    return MockRedis()


@pytest.fixture
async def client(session_factory, mock_redis, clock):
    """Async client for testing, wired to the test database, redis and clock."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_redis():
        return mock_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    app.dependency_overrides[get_clock] = lambda: clock

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides = {}


# Data factories

@pytest.fixture
def make_user(db_session):
    async def _make(username: str, role: UserRole, full_name: str = None, is_active: bool = True, saldo: float = 0):
        user = User(
            email=f"{username}@test.com",
            username=username,
            full_name=full_name or username.title(),
            role=role,
            is_active=is_active,
            saldo=saldo
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user
    return _make


@pytest.fixture
async def admin_user(make_user):
    return await make_user("admin", UserRole.ADMIN, full_name="Ayu Admin")


@pytest.fixture
async def staff_user(make_user):
    return await make_user("staff", UserRole.STAFF_TRAFFIC, full_name="Sari Staff")


def actor_for(user: User) -> ActorContext:
    return ActorContext(user_id=user.id, username=user.username, role=user.role, full_name=user.full_name)


@pytest.fixture
def admin(admin_user):
    return actor_for(admin_user)


@pytest.fixture
def staff(staff_user):
    return actor_for(staff_user)


@pytest.fixture
async def driver(db_session):
    driver = Driver(full_name="Budi Santoso", phone_number="0812000001", saldo=1_000_000)
    db_session.add(driver)
    await db_session.commit()
    await db_session.refresh(driver)
    return driver


@pytest.fixture
async def vehicle(db_session):
    vehicle = Vehicle(
        make="Toyota",
        model="Avanza",
        license_plate="DK 1234 AB",
        daily_rate=100_000,
        availability=VehicleAvailability.RENTED
    )
    db_session.add(vehicle)
    await db_session.commit()
    await db_session.refresh(vehicle)
    return vehicle


@pytest.fixture
def make_booking(db_session, driver, vehicle):
    counter = {"n": 0}

    async def _make(**overrides):
        counter["n"] += 1
        values = dict(
            code_booking=f"BK-TEST-{counter['n']:03d}",
            driver_id=driver.id,
            vehicle_id=vehicle.id,
            start_date=date(2024, 1, 5),
            end_date=date(2024, 1, 10),
            status=BookingStatus.ONGOING,
            finish_enabled=True,
            total_amount=500_000,
        )
        values.update(overrides)
        booking = Booking(**values)
        db_session.add(booking)
        await db_session.commit()
        await db_session.refresh(booking)
        return booking
    return _make


def token_for(user: User) -> str:
    return create_access_token(data={"sub": user.username, "user_id": user.id, "role": user.role.value})


@pytest.fixture
def auth_headers():
    """Bearer headers for a user, as issued by the session provider."""
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {token_for(user)}"}
    return _headers
