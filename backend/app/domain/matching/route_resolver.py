"""
Route resolver.

Produces the road route for a trip exactly once and caches it on the trip
row. Concurrent callers for the same trip share one in-flight resolution;
across processes an optional Redis lock serializes provider calls.
"""

import asyncio
import logging
from typing import Dict, Optional

from backend.app.core.exceptions import ResourceNotFoundError, RouteResolutionFailedError
from backend.app.domain.matching.geo import decode_polyline
from backend.app.models.trip import Trip
from backend.app.services.routing_provider import RoutingProvider, RoutingProviderError

logger = logging.getLogger(__name__)


class RouteResolver:
    """
    Lazily resolves and persists trip routes.

    The stored route is the map-matched geometry of the directions result,
    with the map-matched distance as route length.
    """

    def __init__(
        self,
        session_factory,
        routing_provider: RoutingProvider,
        route_lock=None,
        profile: Optional[str] = None,
        polyline_precision: int = 6,
    ):
        self.session_factory = session_factory
        self.routing_provider = routing_provider
        self.route_lock = route_lock
        self.profile = profile
        self.polyline_precision = polyline_precision
        self._in_flight: Dict[str, asyncio.Task] = {}

    async def ensure_route(self, trip: Trip) -> Trip:
        """
        Make sure trip carries a resolved route and return it.

        A trip that already has one is returned untouched without any
        provider call. Otherwise the route is resolved, persisted and copied
        onto the given instance.
        """
        if trip.has_route:
            return trip

        resolved = await self.resolve(trip.id)
        trip.polyline = resolved.polyline
        trip.route_length_m = resolved.route_length_m
        trip.route_duration_s = resolved.route_duration_s
        return trip

    async def resolve(self, trip_id: str) -> Trip:
        """
        Resolve the route for trip_id, joining an in-flight resolution if any.

        Raises:
            ResourceNotFoundError: trip does not exist
            RouteResolutionFailedError: provider failed or returned nothing usable
        """
        task = self._in_flight.get(trip_id)
        if task is None:
            task = asyncio.create_task(self._resolve(trip_id))
            self._in_flight[trip_id] = task
            task.add_done_callback(lambda t, key=trip_id: self._forget(key, t))
        else:
            logger.debug("Joining in-flight route resolution for trip %s", trip_id)

        # One caller being cancelled must not cancel the shared resolution
        return await asyncio.shield(task)

    def _forget(self, trip_id: str, task: asyncio.Task) -> None:
        if self._in_flight.get(trip_id) is task:
            del self._in_flight[trip_id]
        if not task.cancelled():
            # Mark the exception retrieved when every waiter was cancelled
            task.exception()

    async def _resolve(self, trip_id: str) -> Trip:
        if self.route_lock is None:
            return await self._resolve_and_store(trip_id)
        async with self.route_lock.hold(trip_id):
            return await self._resolve_and_store(trip_id)

    async def _resolve_and_store(self, trip_id: str) -> Trip:
        async with self.session_factory() as db:
            trip = await db.get(Trip, trip_id)
            if trip is None:
                raise ResourceNotFoundError("Trip", trip_id)

            # Another worker may have stored it while we waited for the lock
            if trip.has_route:
                return trip

            try:
                directions = await self.routing_provider.get_route([trip.pickup, trip.drop_off], self.profile)
                path = decode_polyline(directions.encoded_polyline, self.polyline_precision)
                if len(path) < 2:
                    raise RouteResolutionFailedError(trip_id, "Routing provider returned an empty route")
                matched = await self.routing_provider.get_map_matched_route(path, self.profile)
            except RoutingProviderError as exc:
                logger.warning("Route resolution failed for trip %s: %s", trip_id, exc)
                raise RouteResolutionFailedError(trip_id, str(exc)) from exc
            except (ValueError, IndexError, TypeError) as exc:
                logger.warning("Routing provider returned an undecodable route for trip %s: %s", trip_id, exc)
                raise RouteResolutionFailedError(trip_id, "Routing provider returned an undecodable route") from exc

            if not matched.encoded_polyline or matched.distance_meters <= 0:
                raise RouteResolutionFailedError(trip_id, "Map matching returned an empty route")

            trip.polyline = matched.encoded_polyline
            trip.route_length_m = matched.distance_meters
            trip.route_duration_s = directions.duration_seconds
            await db.commit()

            logger.info(
                "Resolved route for trip %s: %.0f m, %.0f s (confidence %.2f)",
                trip_id, trip.route_length_m, trip.route_duration_s, matched.confidence,
            )
            return trip
