"""
Candidate prefilter.

Cheap database query narrowing the trip table to plausible partners before
any routing work: compatible status, departure window, seats and a pickup
bounding box, followed by an exact great-circle distance check.
"""

import logging
import math
from datetime import timedelta
from typing import List

from sqlalchemy import select

from backend.app.domain.matching.geo import distance_meters
from backend.app.domain.matching.policy import MatchingPolicy
from backend.app.models.trip import Trip
from backend.app.models.trip_enums import TripStatus

logger = logging.getLogger(__name__)


def pickup_bounding_box(lat: float, lng: float, policy: MatchingPolicy):
    """
    (min_lat, max_lat, min_lng, max_lng) around a pickup point.

    Uses the same degree delta for latitude and longitude unless the
    policy asks for longitude correction.
    """
    delta = policy.proximity_threshold_meters / policy.meters_per_degree
    lng_delta = delta
    if policy.longitude_correction:
        cos_lat = math.cos(math.radians(lat))
        lng_delta = 180.0 if cos_lat < 1e-6 else min(delta / cos_lat, 180.0)
    return lat - delta, lat + delta, lng - lng_delta, lng + lng_delta


class CandidatePrefilter:

    def __init__(self, session_factory, policy: MatchingPolicy):
        self.session_factory = session_factory
        self.policy = policy

    async def find_candidates(self, trip: Trip) -> List[Trip]:
        """
        Trips that could share a ride with trip.

        Never includes trip itself; never calls the routing provider.
        """
        window = timedelta(minutes=self.policy.departure_window_minutes)
        min_lat, max_lat, min_lng, max_lng = pickup_bounding_box(trip.pickup_lat, trip.pickup_lng, self.policy)

        query = select(Trip).where(
            Trip.id != trip.id,
            Trip.status == TripStatus.PENDING,
            Trip.departure_time >= trip.departure_time - window,
            Trip.departure_time <= trip.departure_time + window,
            Trip.seats_offered >= trip.seats_required,
            Trip.seats_required <= trip.seats_offered,
            Trip.pickup_lat >= min_lat,
            Trip.pickup_lat <= max_lat,
            Trip.pickup_lng >= min_lng,
            Trip.pickup_lng <= max_lng,
        )

        async with self.session_factory() as db:
            result = await db.execute(query)
            boxed = result.scalars().all()

        candidates = [
            other for other in boxed
            if distance_meters(trip.pickup_lat, trip.pickup_lng, other.pickup_lat, other.pickup_lng)
            <= self.policy.proximity_threshold_meters
        ]
        logger.debug(
            "Prefilter for trip %s: %d in bounding box, %d within %.0f m",
            trip.id, len(boxed), len(candidates), self.policy.proximity_threshold_meters,
        )
        return candidates
