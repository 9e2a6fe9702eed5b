"""
Rematch coordinator.

When a trip is edited or deleted its matches are no longer valid. The
coordinator removes them, reopens partners of accepted matches, notifies
the partners and, for edits, schedules a fresh search in the background.
"""

import logging
from typing import Awaitable, Callable, List, Optional

from sqlalchemy import select, or_

from backend.app.models.match import Match
from backend.app.models.trip import Trip
from backend.app.models.trip_enums import InvalidationReason, MatchStatus, TripStatus

logger = logging.getLogger(__name__)


class RematchCoordinator:

    def __init__(
        self,
        session_factory,
        notifier=None,
        scheduler=None,
        search: Optional[Callable[[str], Awaitable[list]]] = None,
    ):
        self.session_factory = session_factory
        self.notifier = notifier
        self.scheduler = scheduler
        self.search = search

    async def invalidate_and_rematch(self, trip_id: str, is_deletion: bool = False) -> int:
        """
        Drop every match involving trip_id and return how many were removed.

        Partners of accepted matches go back to pending and get a cancelled
        (deletion) or changed (edit) notification; proposed and rejected rows
        are just deleted. For edits a new search for trip_id is scheduled and
        this call returns without waiting for it.
        """
        async with self.session_factory() as db:
            result = await db.execute(
                select(Match).where(or_(Match.trip_a_id == trip_id, Match.trip_b_id == trip_id))
            )
            matches = result.scalars().all()

            affected: List[str] = []
            for match in matches:
                if match.status == MatchStatus.ACCEPTED:
                    other_id = match.other_trip_id(trip_id)
                    affected.append(other_id)
                    other = await db.get(Trip, other_id)
                    if other is not None:
                        other.status = TripStatus.PENDING
                await db.delete(match)

            await db.commit()

        if matches:
            logger.info("Invalidated %d matches for trip %s (deletion=%s)", len(matches), trip_id, is_deletion)

        reason = InvalidationReason.CANCELLED if is_deletion else InvalidationReason.CHANGED
        if self.notifier is not None:
            for other_id in affected:
                try:
                    await self.notifier.notify(other_id, reason)
                except Exception:
                    # The invalidation is already committed
                    logger.exception("Failed to notify trip %s about %s match", other_id, reason.value)

        if not is_deletion and self.scheduler is not None and self.search is not None:
            self.scheduler.schedule(trip_id, self.search)

        return len(matches)
