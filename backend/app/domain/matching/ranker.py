"""
Match ranker.

Evaluates candidates against a trip (route, overlap, detour), persists every
accepted pair as a proposed match and returns the ranked list. Also owns the
read side of matches and their external status transitions.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import select, or_
from sqlalchemy.exc import IntegrityError

from backend.app.core.exceptions import AppException, ResourceNotFoundError
from backend.app.domain.matching.deviation import DeviationScorer
from backend.app.domain.matching.overlap import OverlapScorer
from backend.app.domain.matching.policy import MatchingPolicy
from backend.app.domain.matching.route_resolver import RouteResolver
from backend.app.models.match import Match
from backend.app.models.trip import Trip
from backend.app.models.trip_enums import MatchStatus, TripStatus

logger = logging.getLogger(__name__)


def canonical_trip_ids(trip_id_1: str, trip_id_2: str) -> Tuple[str, str]:
    """Order a trip pair so (A, B) and (B, A) map to the same match row."""
    if trip_id_1 == trip_id_2:
        raise ValueError("A trip cannot be matched with itself")
    return (trip_id_1, trip_id_2) if trip_id_1 < trip_id_2 else (trip_id_2, trip_id_1)


@dataclass
class RankedMatch:
    match_id: str
    trip: Trip
    score: float
    overlap_percentage: float
    additional_distance_meters: int
    additional_time_seconds: int


@dataclass
class ExistingMatchEntry:
    match: Match
    other_trip: Trip


class MatchRanker:

    def __init__(
        self,
        session_factory,
        route_resolver: RouteResolver,
        overlap_scorer: OverlapScorer,
        deviation_scorer: DeviationScorer,
        policy: MatchingPolicy,
    ):
        self.session_factory = session_factory
        self.route_resolver = route_resolver
        self.overlap_scorer = overlap_scorer
        self.deviation_scorer = deviation_scorer
        self.policy = policy

    def combined_score(self, overlap: float, deviation: float) -> float:
        score = self.policy.overlap_weight * overlap + self.policy.deviation_weight * (100.0 - deviation)
        return min(100.0, max(0.0, score))

    async def rank_matches(
        self,
        trip: Trip,
        candidates: Sequence[Trip],
        timeout: Optional[float] = None,
    ) -> List[RankedMatch]:
        """
        Score, persist and rank candidates for trip.

        trip must already carry its resolved route. Candidates are evaluated
        concurrently up to max_concurrent_candidates; a failing candidate is
        logged and left out. On timeout, unfinished candidates are cancelled
        and only the finished ones are returned.
        """
        if not candidates:
            return []

        semaphore = asyncio.Semaphore(self.policy.max_concurrent_candidates)

        async def _bounded(candidate: Trip) -> Optional[RankedMatch]:
            async with semaphore:
                return await self._evaluate(trip, candidate)

        tasks = [asyncio.create_task(_bounded(candidate)) for candidate in candidates]
        done, pending = await asyncio.wait(tasks, timeout=timeout)

        if pending:
            logger.warning(
                "Match search for trip %s timed out after %ss; %d of %d candidates unevaluated",
                trip.id, timeout, len(pending), len(tasks),
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        results = []
        # Input order, so the sort below keeps ties stable
        for task in tasks:
            if task not in done or task.cancelled():
                continue
            exc = task.exception()
            if exc is not None:
                logger.error("Unexpected error evaluating candidate for trip %s", trip.id, exc_info=exc)
                continue
            ranked = task.result()
            if ranked is not None:
                results.append(ranked)

        results.sort(key=lambda r: r.score, reverse=True)
        return results

    async def _evaluate(self, trip: Trip, candidate: Trip) -> Optional[RankedMatch]:
        try:
            candidate = await self.route_resolver.ensure_route(candidate)

            overlap = self.overlap_scorer.overlap_percentage(trip.polyline, candidate.polyline)
            if overlap < self.policy.min_overlap_percentage:
                logger.debug("Candidate %s rejected for trip %s: overlap %.1f%%", candidate.id, trip.id, overlap)
                return None

            detour = await self.deviation_scorer.deviation(trip, candidate)
            if detour.deviation_percentage > self.policy.max_deviation_percentage:
                logger.debug(
                    "Candidate %s rejected for trip %s: deviation %.1f%%",
                    candidate.id, trip.id, detour.deviation_percentage,
                )
                return None
        except AppException as exc:
            logger.warning("Skipping candidate %s for trip %s: %s", candidate.id, trip.id, exc.message)
            return None

        score = self.combined_score(overlap, detour.deviation_percentage)
        match = await self.upsert_match(trip.id, candidate.id, score)

        return RankedMatch(
            match_id=match.id,
            trip=candidate,
            score=round(score, 2),
            overlap_percentage=round(overlap, 2),
            additional_distance_meters=round(detour.combined_distance_meters - trip.route_length_m),
            additional_time_seconds=round(detour.combined_duration_seconds - (trip.route_duration_s or 0.0)),
        )

    async def upsert_match(self, trip_id_1: str, trip_id_2: str, score: float) -> Match:
        """
        Create or refresh the match row for a trip pair.

        An existing row keeps its status and only gets the new score. When a
        concurrent insert wins the race the unique constraint rejects ours and
        the winner's row is updated instead.
        """
        trip_a_id, trip_b_id = canonical_trip_ids(trip_id_1, trip_id_2)

        for attempt in range(2):
            async with self.session_factory() as db:
                result = await db.execute(
                    select(Match).where(Match.trip_a_id == trip_a_id, Match.trip_b_id == trip_b_id)
                )
                match = result.scalar_one_or_none()

                if match is not None:
                    match.match_score = score
                    match.updated_at = datetime.utcnow()
                    await db.commit()
                    return match

                match = Match(
                    trip_a_id=trip_a_id,
                    trip_b_id=trip_b_id,
                    match_score=score,
                    status=MatchStatus.PROPOSED,
                    updated_at=datetime.utcnow(),
                )
                db.add(match)
                try:
                    await db.commit()
                except IntegrityError:
                    await db.rollback()
                    if attempt:
                        raise
                    logger.info("Concurrent insert for match (%s, %s), updating existing row", trip_a_id, trip_b_id)
                    continue
                return match

    async def list_existing_matches(self, trip_id: str) -> List[ExistingMatchEntry]:
        """Proposed and accepted matches involving trip_id, best score first."""
        async with self.session_factory() as db:
            result = await db.execute(
                select(Match)
                .where(
                    or_(Match.trip_a_id == trip_id, Match.trip_b_id == trip_id),
                    Match.status.in_([MatchStatus.PROPOSED, MatchStatus.ACCEPTED]),
                )
                .order_by(Match.match_score.desc())
            )
            matches = result.scalars().all()

            entries = []
            for match in matches:
                other = await db.get(Trip, match.other_trip_id(trip_id))
                if other is not None:
                    entries.append(ExistingMatchEntry(match=match, other_trip=other))
            return entries

    async def set_match_status(self, match_id: str, status: MatchStatus) -> Match:
        """
        Move a match to accepted or rejected.

        Accepting marks both trips as matched.
        """
        async with self.session_factory() as db:
            match = await db.get(Match, match_id)
            if match is None:
                raise ResourceNotFoundError("Match", match_id)

            match.status = status
            match.updated_at = datetime.utcnow()

            if status == MatchStatus.ACCEPTED:
                for trip_id in (match.trip_a_id, match.trip_b_id):
                    trip = await db.get(Trip, trip_id)
                    if trip is not None:
                        trip.status = TripStatus.MATCHED

            await db.commit()
            logger.info("Match %s set to %s", match_id, status.value)
            return match
