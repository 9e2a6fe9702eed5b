"""
Notification Service.

Handles creation and state management of notifications, and the match
notifier the rematch cascade uses to tell a user their match went away.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from datetime import datetime
from typing import Optional, Dict, Any, List

from backend.app.models.notification import Notification, NotificationType
from backend.app.models.trip import Trip
from backend.app.models.trip_enums import InvalidationReason

logger = logging.getLogger(__name__)


class NotificationService:

    @staticmethod
    async def create_notification(
        db: AsyncSession,
        user_id: str,
        title: str,
        message: str,
        type: NotificationType = NotificationType.INFO,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Notification:
        """Create a single notification."""
        notif = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            metadata_payload=metadata
        )
        db.add(notif)
        await db.flush() # Caller commits
        return notif

    @staticmethod
    async def list_for_user(db: AsyncSession, user_id: str, unread_only: bool = False, limit: int = 50) -> List[Notification]:
        """List a user's notifications, newest first."""
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read == False)
        query = query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def mark_read(db: AsyncSession, notification_id: int, user_id: str) -> bool:
        """Mark a notification as read."""
        stmt = update(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id
        ).values(
            is_read=True,
            read_at=datetime.utcnow()
        )
        result = await db.execute(stmt)
        return result.rowcount > 0


_MESSAGES = {
    InvalidationReason.CANCELLED: (
        NotificationType.MATCH_CANCELLED,
        "Your match was cancelled",
        "The trip you were matched with has been cancelled. Your trip is open for matching again.",
    ),
    InvalidationReason.CHANGED: (
        NotificationType.MATCH_CHANGED,
        "Your match changed",
        "The trip you were matched with changed its route or departure time. Your trip is open for matching again.",
    ),
}


class MatchNotifier:
    """
    Notification sink for invalidated matches.

    Records an in-app notification for the owner of the affected trip.
    """

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def notify(self, other_trip_id: str, reason: InvalidationReason) -> Optional[Notification]:
        notification_type, title, message = _MESSAGES[reason]
        async with self.session_factory() as db:
            trip = await db.get(Trip, other_trip_id)
            if trip is None:
                logger.warning("Not notifying about trip %s: trip no longer exists", other_trip_id)
                return None
            notif = await NotificationService.create_notification(
                db,
                user_id=trip.driver_id,
                title=title,
                message=message,
                type=notification_type,
                metadata={"trip_id": other_trip_id, "reason": reason.value},
            )
            await db.commit()
            return notif
