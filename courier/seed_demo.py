"""
Database seeding script for development.

Creates a manager, two drivers and a couple of jobs on the board so the
driver app and the dashboard have something to show. Run this after the
database is reachable; it is a no-op when the manager already exists.
"""

import asyncio
import sys
from datetime import datetime, timedelta
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from courier.app.db.session import AsyncSessionLocal, engine, Base
from courier.app.models.user import User
from courier.app.models.driver_profile import DriverProfile
from courier.app.models.enums import UserRole
from courier.app.models.job_enums import StopKind, VehicleType
from courier.app.core.security import get_password_hash
from courier.app.services.dispatch_board import DispatchBoard
from sqlalchemy import select

# Import remaining models so create_all sees every table
from courier.app.models.audit_log import AuditLog  # noqa: F401
from courier.app.models.driver_session import DriverSession  # noqa: F401
from courier.app.models.status_outbox import StatusOutbox  # noqa: F401

DEMO_JOBS = [
    {
        "label": "Downtown Multi-Drop",
        "stops": [
            {"kind": StopKind.PICKUP, "address": "Cairo Road, Warehouse A, Lusaka", "short_address": "Cairo Rd (Warehouse)",
             "latitude": -15.4167, "longitude": 28.2833, "items": [{"name": "Electronics Box", "quantity": 1}]},
            {"kind": StopKind.DROPOFF, "address": "Manda Hill Shopping Mall, Great East Road, Lusaka", "short_address": "Manda Hill",
             "latitude": -15.3982, "longitude": 28.3063, "items": [{"name": "Electronics Box", "quantity": 1}],
             "contact_name": "Mary Banda", "contact_phone": "+260971000001"},
            {"kind": StopKind.PICKUP, "address": "Kamwala Market, Stand 34, Lusaka", "short_address": "Kamwala Market",
             "latitude": -15.4301, "longitude": 28.2905, "items": [{"name": "Documents Package", "quantity": 1}]},
            {"kind": StopKind.DROPOFF, "address": "University of Zambia (UNZA), Great East Road, Lusaka", "short_address": "UNZA",
             "latitude": -15.3915, "longitude": 28.3290, "items": [{"name": "Documents Package", "quantity": 1}],
             "contact_name": "Joseph Phiri", "contact_phone": "+260971000002", "confirmation_code": "482913"},
        ],
    },
    {
        "label": "Pharmacy Run",
        "stops": [
            {"kind": StopKind.PICKUP, "address": "University Teaching Hospital Pharmacy, Lusaka", "short_address": "UTH Pharmacy",
             "latitude": -15.4320, "longitude": 28.3120, "items": [{"name": "Prescription Bag", "quantity": 2}]},
            {"kind": StopKind.DROPOFF, "address": "EastPark Mall, Entrance B, Lusaka", "short_address": "EastPark Mall",
             "latitude": -15.3930, "longitude": 28.3400, "items": [{"name": "Prescription Bag", "quantity": 2}]},
        ],
    },
]


async def seed_demo():
    """
    Seed development data.

    Creates:
    - 1 MANAGER user
    - 2 DRIVER users with profiles
    - 2 OPEN jobs expiring in two hours
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting seeding...")

        result = await db.execute(
            select(User).where(User.username == "manager")
        )
        if result.scalar_one_or_none():
            print("ℹ️  Manager user already exists, skipping seeding")
            return

        manager = User(
            email="manager@courier.local",
            username="manager",
            hashed_password=get_password_hash("manager123"),
            role=UserRole.MANAGER,
            is_active=True,
        )
        db.add(manager)
        print("✅ Created MANAGER user (username: manager, password: manager123)")

        for username, full_name, vehicle in (
            ("driver1", "Chanda Mwale", VehicleType.CAR),
            ("driver2", "Natasha Zulu", VehicleType.BIKE),
        ):
            driver = User(
                email=f"{username}@courier.local",
                username=username,
                hashed_password=get_password_hash("driver123"),
                role=UserRole.DRIVER,
                is_active=True,
            )
            db.add(driver)
            await db.flush()
            db.add(DriverProfile(driver_id=driver.id, full_name=full_name, vehicle_type=vehicle))
            print(f"✅ Created DRIVER user (username: {username}, password: driver123)")

        await db.commit()

        board = DispatchBoard(db)
        expires_at = datetime.utcnow() + timedelta(hours=2)
        for demo in DEMO_JOBS:
            job, stops = await board.create_job(
                label=demo["label"],
                stops=demo["stops"],
                created_by_id=manager.id,
                username=manager.username,
                expires_at=expires_at,
            )
            print(f"✅ Posted job '{job.label}' ({len(stops)} stops, {job.payout:.2f} {job.currency})")

        print("\n🎉 Seeding completed successfully!")
        print("\nSeeded users:")
        print("  - MANAGER: manager / manager123")
        print("  - DRIVERS: driver1, driver2 / driver123")


if __name__ == "__main__":
    asyncio.run(seed_demo())
