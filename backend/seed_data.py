"""
Database seeding script for catalog and demo data.

Creates membership plans, PT packages and two demo customers, and prints
development tokens for each staff role.
Run this script after database is set up but before first use.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from backend.app.db.session import AsyncSessionLocal, engine, Base
from backend.app.core.guards import Permission
from backend.app.core.jwt import staff_token
from backend.app.models.customer import Customer
from backend.app.models.enums import PlanInterval, UserRole
from backend.app.models.membership_plan import MembershipPlan
from backend.app.models.pt_package import PtPackage
from sqlalchemy import select

# Registers every ledger table on Base
import backend.app.main  # noqa: F401

FRONT_DESK_PERMISSIONS = [
    Permission.BILL_CREATE,
    Permission.BILL_UPDATE,
    Permission.PAYMENT_CREATE,
    Permission.MEMBERSHIP_ASSIGN,
    Permission.PT_PACKAGE_ASSIGN,
    Permission.MEMBERS_LIST_VIEW,
]


async def seed_data():
    """
    Seed the catalog and demo customers.

    Creates:
    - 3 membership plans (monthly, quarterly, annual)
    - 2 PT packages
    - 2 customers
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting catalog seeding...")

        result = await db.execute(select(MembershipPlan).limit(1))
        if result.scalar_one_or_none():
            print("ℹ️  Catalog already exists, skipping seeding")
            return

        db.add_all([
            MembershipPlan(plan_name="Monthly Basic", price=150000, plan_period=1,
                           plan_interval=PlanInterval.MONTHS, features=["Gym floor", "Locker"]),
            MembershipPlan(plan_name="Quarterly Plus", price=400000, plan_period=3,
                           plan_interval=PlanInterval.MONTHS, features=["Gym floor", "Locker", "Group classes"]),
            MembershipPlan(plan_name="Annual Premium", price=1500000, plan_period=1,
                           plan_interval=PlanInterval.YEARS, features=["Gym floor", "Locker", "Group classes", "Sauna"]),
        ])
        print("✅ Created 3 membership plans")

        db.add_all([
            PtPackage(package_name="Starter 5", number_of_sessions=5, duration_per_session=60, price=250000),
            PtPackage(package_name="Transformation 12", number_of_sessions=12, duration_per_session=60, price=540000),
        ])
        print("✅ Created 2 PT packages")

        db.add_all([
            Customer(first_name="Maria", last_name="Santos", email="maria@example.com", phone_number="09171234567"),
            Customer(first_name="Jose", last_name="Reyes", email="jose@example.com", phone_number="09181234567"),
        ])
        print("✅ Created 2 demo customers")

        await db.commit()

    print("\n🎉 Seeding completed successfully!")
    print("\nDevelopment tokens:")
    print(f"  - ADMIN: {staff_token(1, 'admin', UserRole.ADMIN.value)}")
    print(f"  - STAFF: {staff_token(2, 'frontdesk', UserRole.STAFF.value, FRONT_DESK_PERMISSIONS)}")
    print(f"  - COACH: {staff_token(3, 'coach', UserRole.COACH.value, [Permission.PT_SESSION_CONSUME])}")


if __name__ == "__main__":
    asyncio.run(seed_data())
