"""
Database seeding script for demo users and donations.

Creates one user per role, a handful of donations around San Francisco and
an active volunteer profile for local development. Run this script after the database is set up.
"""

import asyncio
import sys
from datetime import timedelta
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from backend.app.db.session import AsyncSessionLocal, engine, Base
from backend.app.models.user import User
from backend.app.models.donation import Donation
from backend.app.models.audit_log import AuditLog  # noqa: F401
from backend.app.models.volunteer import VolunteerProfile
from backend.app.models.contact import ContactMessage, ContactNote  # noqa: F401
from backend.app.models.enums import (
    UserRole, DonationStatus, FoodCategory, QuantityUnit, StorageTemperature,
    VolunteerRole, VolunteerStatus,
)
from backend.app.core.security import get_password_hash
from backend.app.utils.time import utcnow
from sqlalchemy import select

SEED_USERS = [
    # username, password, role, first, last, organization, lat, lng
    ("admin", "admin123", UserRole.ADMIN, "Ada", "Admin", None, None, None),
    ("donor", "donor123", UserRole.DONOR, "Dana", "Baker", "Mission Street Bakery", 37.7599, -122.4148),
    ("volunteer", "volunteer123", UserRole.VOLUNTEER, "Victor", "Reyes", None, 37.7749, -122.4194),
    ("charity", "charity123", UserRole.CHARITY, "Chloe", "Park", "Bay Area Food Pantry", 37.8044, -122.2712),
]

SEED_DONATIONS = [
    # title, category, amount, unit, storage, pickup offset (h), expiry offset (h), lat, lng, street
    ("Day-old sourdough loaves", FoodCategory.BAKED, 12, QuantityUnit.PIECES, StorageTemperature.ROOM,
     2, 20, 37.7599, -122.4148, "2500 Mission St"),
    ("Mixed seasonal vegetables", FoodCategory.VEGETABLES, 8, QuantityUnit.KG, StorageTemperature.REFRIGERATED,
     4, 72, 37.7650, -122.4230, "3000 16th St"),
    ("Canned chickpeas", FoodCategory.CANNED, 24, QuantityUnit.CANS, StorageTemperature.ROOM,
     24, 24 * 90, 37.7849, -122.4094, "800 Market St"),
]


async def seed_users():
    """
    Seed demo users (one per role) and donations owned by the donor.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting seeding...")

        result = await db.execute(select(User).where(User.username == "admin"))
        if result.scalar_one_or_none():
            print("ℹ️  Seed users already exist, skipping seeding")
            return

        users = {}
        for username, password, role, first, last, organization, lat, lng in SEED_USERS:
            user = User(
                email=f"{username}@foodshare.local",
                username=username,
                hashed_password=get_password_hash(password),
                first_name=first,
                last_name=last,
                organization=organization,
                role=role,
                latitude=lat,
                longitude=lng,
                city="San Francisco" if lat else None,
                is_active=True,
            )
            db.add(user)
            users[role] = user
            print(f"✅ Created {role.value.upper()} user (username: {username}, password: {password})")

        await db.flush()

        now = utcnow()
        for title, category, amount, unit, storage, pickup_h, expiry_h, lat, lng, street in SEED_DONATIONS:
            db.add(Donation(
                donor_id=users[UserRole.DONOR].id,
                title=title,
                category=category,
                quantity_amount=amount,
                quantity_unit=unit,
                storage_temperature=storage,
                pickup_date=now + timedelta(hours=pickup_h),
                expiry_date=now + timedelta(hours=expiry_h),
                pickup_start="09:00",
                pickup_end="17:00",
                latitude=lat,
                longitude=lng,
                address_street=street,
                address_city="San Francisco",
                address_state="CA",
                status=DonationStatus.AVAILABLE,
                tags=[],
                views=0,
            ))
        print(f"✅ Created {len(SEED_DONATIONS)} donations for donor")

        db.add(VolunteerProfile(
            user_id=users[UserRole.VOLUNTEER].id,
            volunteer_role=VolunteerRole.FOOD_COLLECTION,
            status=VolunteerStatus.ACTIVE,
            skills=["driving", "food-safety"],
            availability_days=["monday", "wednesday", "saturday"],
            time_slots=[{"start": "09:00", "end": "13:00"}],
            has_vehicle=True,
        ))
        print("✅ Created active volunteer profile for volunteer")

        await db.commit()

        print("\n🎉 Seeding completed successfully!")
        print("\nNote: admin accounts can only be created by this script, not via POST /v1/auth/register")


if __name__ == "__main__":
    asyncio.run(seed_users())
