"""
Trip service.

CRUD for trips. Edits that touch pickup, drop-off or departure time drop
the cached route and hand the trip to the matching engine for
invalidation; deletes invalidate before the row goes away.
"""

import logging
from typing import List

from sqlalchemy import select, or_, delete
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import ResourceNotFoundError
from backend.app.models.match import Match
from backend.app.models.trip import Trip
from backend.app.models.trip_enums import TripStatus
from backend.app.models.user import User
from backend.app.schemas.trip import TripCreate, TripUpdate

logger = logging.getLogger(__name__)

# Fields whose change makes the stored route and every match stale
CORE_FIELDS = ("pickup_lat", "pickup_lng", "drop_off_lat", "drop_off_lng", "departure_time")


class TripService:

    @staticmethod
    async def create_trip(db: AsyncSession, data: TripCreate) -> Trip:
        driver = await db.get(User, data.driver_id)
        if driver is None:
            raise ResourceNotFoundError("User", data.driver_id)

        trip = Trip(
            driver_id=data.driver_id,
            pickup_lat=data.pickup.lat,
            pickup_lng=data.pickup.lng,
            drop_off_lat=data.drop_off.lat,
            drop_off_lng=data.drop_off.lng,
            departure_time=data.departure_time,
            seats_offered=data.seats_offered,
            seats_required=data.seats_required,
            status=TripStatus.PENDING,
        )
        db.add(trip)
        await db.commit()
        await db.refresh(trip)

        logger.info("Created trip %s for user %s", trip.id, trip.driver_id)
        return trip

    @staticmethod
    async def get_trip(db: AsyncSession, trip_id: str) -> Trip:
        trip = await db.get(Trip, trip_id)
        if trip is None:
            raise ResourceNotFoundError("Trip", trip_id)
        return trip

    @staticmethod
    async def list_driver_trips(db: AsyncSession, driver_id: str) -> List[Trip]:
        result = await db.execute(
            select(Trip).where(Trip.driver_id == driver_id).order_by(Trip.created_at.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def update_trip(db: AsyncSession, trip_id: str, data: TripUpdate, engine) -> Trip:
        """
        Apply a partial update.

        When a core field changes the route cache is cleared and the trip's
        matches are invalidated; a new match search then runs in the
        background.
        """
        trip = await TripService.get_trip(db, trip_id)
        # Compare against the stored row, not a stale identity-map copy
        await db.refresh(trip)

        changes = {}
        if data.pickup is not None:
            changes["pickup_lat"] = data.pickup.lat
            changes["pickup_lng"] = data.pickup.lng
        if data.drop_off is not None:
            changes["drop_off_lat"] = data.drop_off.lat
            changes["drop_off_lng"] = data.drop_off.lng
        if data.departure_time is not None:
            changes["departure_time"] = data.departure_time
        if data.seats_offered is not None:
            changes["seats_offered"] = data.seats_offered
        if data.seats_required is not None:
            changes["seats_required"] = data.seats_required

        core_change = any(
            field in changes and changes[field] != getattr(trip, field)
            for field in CORE_FIELDS
        )

        for field, value in changes.items():
            setattr(trip, field, value)
        if core_change:
            trip.clear_route()

        await db.commit()
        await db.refresh(trip)

        if core_change:
            logger.info("Trip %s route-relevant fields changed, invalidating matches", trip_id)
            await engine.invalidate(trip_id, is_deletion=False)
            await db.refresh(trip, attribute_names=["status"])

        return trip

    @staticmethod
    async def update_trip_status(db: AsyncSession, trip_id: str, status: TripStatus) -> Trip:
        trip = await TripService.get_trip(db, trip_id)
        trip.status = status
        await db.commit()
        await db.refresh(trip)
        return trip

    @staticmethod
    async def delete_trip(db: AsyncSession, trip_id: str, engine) -> int:
        """
        Delete a trip after invalidating its matches.

        Returns the number of matches that were invalidated.
        """
        await TripService.get_trip(db, trip_id)

        invalidated = await engine.invalidate(trip_id, is_deletion=True)

        # Fresh read: the invalidation ran in its own session
        db.expire_all()
        await db.execute(
            delete(Match).where(or_(Match.trip_a_id == trip_id, Match.trip_b_id == trip_id))
        )
        await db.execute(delete(Trip).where(Trip.id == trip_id))
        await db.commit()

        logger.info("Deleted trip %s (%d matches invalidated)", trip_id, invalidated)
        return invalidated
