"""
Matching engine.

Wires the matching components together and exposes the operations the API
and the trip service call: find matches, list existing matches, change a
match's status and invalidate a trip's matches.
"""

import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select

from backend.app.core.exceptions import InvalidInputError, ResourceNotFoundError
from backend.app.domain.matching.candidate_prefilter import CandidatePrefilter
from backend.app.domain.matching.deviation import DeviationScorer
from backend.app.domain.matching.geo import is_valid_coordinate
from backend.app.domain.matching.overlap import OverlapScorer
from backend.app.domain.matching.policy import MatchingPolicy
from backend.app.domain.matching.ranker import MatchRanker
from backend.app.domain.matching.rematch import RematchCoordinator
from backend.app.domain.matching.route_resolver import RouteResolver
from backend.app.models.match import Match
from backend.app.models.trip import Trip
from backend.app.models.trip_enums import MatchStatus
from backend.app.models.user import User
from backend.app.schemas.match import ExistingMatch, MatchResult, TripSummary
from backend.app.services.routing_provider import RoutingProvider

logger = logging.getLogger(__name__)


class MatchingEngine:
    """
    Entry point of the ride matching engine.

    One instance per application; every operation opens its own short-lived
    database sessions from session_factory.
    """

    def __init__(
        self,
        session_factory,
        routing_provider: RoutingProvider,
        notifier=None,
        scheduler=None,
        route_lock=None,
        policy: Optional[MatchingPolicy] = None,
    ):
        self.session_factory = session_factory
        self.policy = policy or MatchingPolicy()
        self.route_resolver = RouteResolver(
            session_factory,
            routing_provider,
            route_lock=route_lock,
            profile=self.policy.routing_profile,
            polyline_precision=self.policy.polyline_precision,
        )
        self.prefilter = CandidatePrefilter(session_factory, self.policy)
        self.ranker = MatchRanker(
            session_factory,
            self.route_resolver,
            OverlapScorer(self.policy.overlap_point_threshold_meters, self.policy.polyline_precision),
            DeviationScorer(routing_provider, profile=self.policy.routing_profile),
            self.policy,
        )
        self.rematch = RematchCoordinator(
            session_factory,
            notifier=notifier,
            scheduler=scheduler,
            search=self.find_matches,
        )

    async def find_matches(self, trip_id: str, timeout: Optional[float] = None) -> List[MatchResult]:
        """
        Find, persist and rank matches for a trip.

        Raises:
            ResourceNotFoundError: trip does not exist
            InvalidInputError: trip has unusable coordinates
            RouteResolutionFailedError: the trip's own route cannot be resolved
        """
        async with self.session_factory() as db:
            trip = await db.get(Trip, trip_id)
        if trip is None:
            raise ResourceNotFoundError("Trip", trip_id)

        if not (is_valid_coordinate(trip.pickup_lat, trip.pickup_lng)
                and is_valid_coordinate(trip.drop_off_lat, trip.drop_off_lng)):
            raise InvalidInputError(f"Trip {trip_id} has invalid coordinates", details={"trip_id": trip_id})

        trip = await self.route_resolver.ensure_route(trip)
        candidates = await self.prefilter.find_candidates(trip)
        logger.info("Match search for trip %s: %d candidates after prefilter", trip_id, len(candidates))

        ranked = await self.ranker.rank_matches(
            trip,
            candidates,
            timeout=timeout if timeout is not None else self.policy.search_timeout_seconds,
        )

        names = await self._driver_names(r.trip.driver_id for r in ranked)
        return [
            MatchResult(
                matching_trip_id=r.trip.id,
                match_percentage=r.score,
                overlap_percentage=r.overlap_percentage,
                additional_distance_meters=r.additional_distance_meters,
                additional_time_seconds=r.additional_time_seconds,
                trip=TripSummary.from_trip(r.trip, names.get(r.trip.driver_id)),
            )
            for r in ranked
        ]

    async def list_existing_matches(self, trip_id: str) -> List[ExistingMatch]:
        async with self.session_factory() as db:
            if await db.get(Trip, trip_id) is None:
                raise ResourceNotFoundError("Trip", trip_id)

        entries = await self.ranker.list_existing_matches(trip_id)
        names = await self._driver_names(e.other_trip.driver_id for e in entries)
        return [
            ExistingMatch(
                match_id=e.match.id,
                matching_trip_id=e.other_trip.id,
                match_percentage=round(e.match.match_score, 2),
                status=e.match.status,
                trip=TripSummary.from_trip(e.other_trip, names.get(e.other_trip.driver_id)),
            )
            for e in entries
        ]

    async def set_match_status(self, match_id: str, status: MatchStatus) -> Match:
        if status not in (MatchStatus.ACCEPTED, MatchStatus.REJECTED):
            raise InvalidInputError(
                "Match status can only be set to accepted or rejected",
                details={"status": status.value},
            )
        return await self.ranker.set_match_status(match_id, status)

    async def invalidate(self, trip_id: str, is_deletion: bool = False) -> int:
        return await self.rematch.invalidate_and_rematch(trip_id, is_deletion=is_deletion)

    async def _driver_names(self, driver_ids: Iterable[str]) -> Dict[str, str]:
        ids = set(driver_ids)
        if not ids:
            return {}
        async with self.session_factory() as db:
            result = await db.execute(select(User.id, User.full_name).where(User.id.in_(ids)))
            return {row.id: row.full_name for row in result}
