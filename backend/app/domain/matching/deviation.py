"""
Detour scoring.

How much longer trip A's route gets when it also serves trip B's pickup
and drop-off: A.pickup -> B.pickup -> B.drop_off -> A.drop_off.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from backend.app.core.exceptions import InvalidInputError, RouteResolutionFailedError
from backend.app.models.trip import Trip
from backend.app.services.routing_provider import RoutingProvider, RoutingProviderError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeviationResult:
    deviation_percentage: float
    combined_distance_meters: float
    combined_duration_seconds: float


class DeviationScorer:

    def __init__(self, routing_provider: RoutingProvider, profile: Optional[str] = None):
        self.routing_provider = routing_provider
        self.profile = profile

    async def deviation(self, trip_a: Trip, trip_b: Trip) -> DeviationResult:
        """
        Percentage by which A's route grows when it picks up and drops off B.

        Negative when the combined route is shorter than A's stored length.

        Raises:
            InvalidInputError: A has no positive route length
            RouteResolutionFailedError: provider failure
        """
        if not trip_a.route_length_m or trip_a.route_length_m <= 0:
            raise InvalidInputError(
                f"Trip {trip_a.id} has no resolved route length",
                details={"trip_id": trip_a.id},
            )

        waypoints = [trip_a.pickup, trip_b.pickup, trip_b.drop_off, trip_a.drop_off]
        try:
            combined = await self.routing_provider.get_route(waypoints, self.profile)
        except RoutingProviderError as exc:
            logger.warning("Combined route for trips %s and %s failed: %s", trip_a.id, trip_b.id, exc)
            raise RouteResolutionFailedError(trip_a.id, str(exc)) from exc

        deviation = (combined.distance_meters - trip_a.route_length_m) / trip_a.route_length_m * 100.0
        return DeviationResult(
            deviation_percentage=deviation,
            combined_distance_meters=combined.distance_meters,
            combined_duration_seconds=combined.duration_seconds,
        )
