"""
Database seeding script for demo data.

Creates one driver and several riders around Bellandur, Bangalore, so a
match search for the driver's trip has something to find: trip B is about
150 m from the driver's pickup with a similar route, the others are either
too far away or leave too late.
Run this script after database is set up but before first use.
"""

import asyncio
import sys
from datetime import datetime, timedelta
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from backend.app.db.session import AsyncSessionLocal, engine, Base
from backend.app.models.user import User
from backend.app.models.trip import Trip
from backend.app.models.match import Match
from backend.app.models.notification import Notification
from backend.app.models.dlq import DeadLetterQueue
from sqlalchemy import select


# name, pickup, drop-off, minutes after the driver's departure, is driver
DEMO_TRIPS = [
    ("A", (12.902819, 77.675104), (12.905852, 77.648825), 0, True),
    ("B", (12.903900, 77.674500), (12.908934, 77.648827), 0, False),
    ("C", (12.902840, 77.675083), (12.912047, 77.638847), 60, False),
    ("D", (12.903614, 77.527222), (12.978221, 77.595079), 15, False),
    ("E", (12.919970, 77.691845), (12.969325, 77.641523), 120, False),
    ("F", (12.979808, 77.590718), (12.994445, 77.728798), 15, False),
    ("G", (12.971830, 77.595872), (13.027392, 77.567546), 30, False),
]


async def seed_data():
    """
    Seed demo users and trips.

    Creates:
    - 1 driver offering 3 seats (User A)
    - 6 riders requiring 1 seat each (Users B-G)
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting demo seeding...")

        result = await db.execute(select(User).where(User.phone_number == "+91555550065"))
        if result.scalar_one_or_none():
            print("ℹ️  Demo users already exist, skipping seeding")
            return

        departure = (datetime.utcnow() + timedelta(days=1)).replace(hour=12, minute=0, second=0, microsecond=0)
        driver_trip = None

        for name, pickup, drop_off, offset, is_driver in DEMO_TRIPS:
            user = User(full_name=f"User {name}", phone_number=f"+9155555{ord(name):04d}")
            db.add(user)
            await db.flush()

            trip = Trip(
                driver_id=user.id,
                pickup_lat=pickup[0],
                pickup_lng=pickup[1],
                drop_off_lat=drop_off[0],
                drop_off_lng=drop_off[1],
                departure_time=departure + timedelta(minutes=offset),
                seats_offered=3 if is_driver else 0,
                seats_required=0 if is_driver else 1,
            )
            db.add(trip)
            await db.flush()
            if is_driver:
                driver_trip = trip
            print(f"✅ Created User {name} with trip {trip.id}")

        await db.commit()

        print("\n🎉 Demo seeding completed successfully!")
        print(f"\nSearch matches for the driver: GET /v1/matches/{driver_trip.id}")


if __name__ == "__main__":
    asyncio.run(seed_data())
