"""
Database seeding script for development data.

Creates back-office users, an agent, drivers, vehicles and a few bookings
covering the settlement paths (pending, confirmed, overdue, backdated).
Run this script after the database is set up but before first use.
"""

import asyncio
from datetime import date, timedelta

from sqlalchemy import select

from rental_backend.app.core.clock import SystemClock
from rental_backend.app.core.observability import configure_logging
from rental_backend.app.db.session import AsyncSessionLocal, engine, Base
from rental_backend.app.models.booking import Booking
from rental_backend.app.models.booking_enums import BookingStatus, PaymentStatus, VehicleAvailability
from rental_backend.app.models.driver import Driver
from rental_backend.app.models.enums import UserRole
from rental_backend.app.models.user import User
from rental_backend.app.models.vehicle import Vehicle

USERS = [
    ("superadmin", "Super Admin", UserRole.SUPER_ADMIN),
    ("admin", "Admin Rental", UserRole.ADMIN),
    ("staff", "Staff Traffic", UserRole.STAFF_TRAFFIC),
    ("agent", "Agent Bali", UserRole.AGENT),
]


async def seed_data():
    """
    Seed development data.

    Skips everything if the admin user already exists.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting seeding...")

        result = await db.execute(select(User).where(User.username == "admin"))
        if result.scalar_one_or_none():
            print("ℹ️  Admin user already exists, skipping seeding")
            return

        users = {}
        for username, full_name, role in USERS:
            user = User(
                email=f"{username}@rental.local",
                username=username,
                full_name=full_name,
                role=role,
                is_active=True
            )
            db.add(user)
            users[username] = user
            print(f"✅ Created {role.value} user ({username})")

        drivers = [
            Driver(full_name="Budi Santoso", phone_number="081200000001", saldo=500000),
            Driver(full_name="Made Wirawan", phone_number="081200000002", saldo=250000),
        ]
        vehicles = [
            Vehicle(make="Toyota", model="Avanza", license_plate="DK 1234 AB", daily_rate=350000),
            Vehicle(make="Honda", model="Brio", license_plate="DK 5678 CD", daily_rate=250000),
            Vehicle(make="Suzuki", model="Ertiga", license_plate="DK 9012 EF", daily_rate=300000),
        ]
        db.add_all(drivers + vehicles)
        await db.flush()

        today = SystemClock().today()
        admin = users["admin"]
        db.add_all([
            Booking(
                code_booking="BK-SEED-001",
                driver_id=drivers[0].id,
                vehicle_id=vehicles[0].id,
                created_by_id=admin.id,
                start_date=today + timedelta(days=1),
                end_date=today + timedelta(days=4),
                total_amount=1050000,
            ),
            Booking(
                code_booking="BK-SEED-002",
                driver_id=drivers[1].id,
                vehicle_id=vehicles[1].id,
                created_by_id=admin.id,
                start_date=today - timedelta(days=5),
                end_date=today - timedelta(days=2),
                status=BookingStatus.ONGOING,
                finish_enabled=True,
                total_amount=750000,
                paid_amount=750000,
                payment_status=PaymentStatus.PAID,
            ),
            Booking(
                code_booking="BK-SEED-003",
                driver_id=drivers[0].id,
                vehicle_id=vehicles[2].id,
                created_by_id=admin.id,
                start_date=date(today.year, 1, 2),
                end_date=date(today.year, 1, 5),
                is_backdated=True,
                total_amount=900000,
            ),
        ])
        vehicles[1].availability = VehicleAvailability.RENTED

        await db.commit()

        print("\n🎉 Seeding completed successfully!")
        print("\nSeeded bookings:")
        print("  - BK-SEED-001: pending, starts tomorrow")
        print("  - BK-SEED-002: ongoing, 2 days overdue")
        print("  - BK-SEED-003: pending, backdated")
        print("\nNote: tokens are issued by the account/session provider")


if __name__ == "__main__":
    configure_logging()
    asyncio.run(seed_data())
