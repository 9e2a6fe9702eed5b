"""
Background rematch worker.

Runs match searches that were triggered by a trip edit without making the
editing caller wait. Every run reports a RematchOutcome on the outcomes
queue; failures are logged and captured in the dead letter queue.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Set

from sqlalchemy.exc import SQLAlchemyError

from backend.app.models.dlq import DeadLetterQueue, DLQStatus

logger = logging.getLogger(__name__)

REMATCH_TASK_NAME = "rematch"

SearchFn = Callable[[str], Awaitable[list]]


@dataclass(frozen=True)
class RematchOutcome:
    trip_id: str
    match_count: Optional[int] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class RematchScheduler:
    """
    Tracks fire-and-forget rematch tasks.

    drain() lets shutdown and tests wait for completion deterministically.
    """

    def __init__(self, session_factory=None):
        self.session_factory = session_factory
        self.outcomes: "asyncio.Queue[RematchOutcome]" = asyncio.Queue()
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, trip_id: str, search: SearchFn) -> asyncio.Task:
        """Start a match search for trip_id in the background and return at once."""
        task = asyncio.create_task(self._run(trip_id, search), name=f"{REMATCH_TASK_NAME}:{trip_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info("Scheduled background rematch for trip %s", trip_id)
        return task

    async def _run(self, trip_id: str, search: SearchFn) -> RematchOutcome:
        try:
            matches = await search(trip_id)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Background rematch for trip %s failed", trip_id)
            await self._record_failure(trip_id, exc)
            outcome = RematchOutcome(trip_id=trip_id, error=str(exc) or type(exc).__name__)
        else:
            logger.info("Background rematch for trip %s found %d matches", trip_id, len(matches))
            outcome = RematchOutcome(trip_id=trip_id, match_count=len(matches))

        self.outcomes.put_nowait(outcome)
        return outcome

    async def _record_failure(self, trip_id: str, exc: Exception) -> None:
        if self.session_factory is None:
            return
        try:
            async with self.session_factory() as db:
                db.add(DeadLetterQueue(
                    task_name=REMATCH_TASK_NAME,
                    error_message=f"{type(exc).__name__}: {exc}",
                    payload={"trip_id": trip_id},
                    status=DLQStatus.FAILED,
                ))
                await db.commit()
        except SQLAlchemyError:
            logger.exception("Could not record failed rematch for trip %s in dead letter queue", trip_id)

    async def drain(self) -> None:
        """Wait until every scheduled rematch has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel outstanding rematches."""
        for task in list(self._tasks):
            task.cancel()
        await self.drain()
