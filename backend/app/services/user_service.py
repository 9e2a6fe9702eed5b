"""
User service.
"""

import logging
from typing import List

from sqlalchemy import select, func, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import InvalidInputError, ResourceNotFoundError
from backend.app.models.notification import Notification
from backend.app.models.trip import Trip
from backend.app.models.user import User
from backend.app.schemas.user import UserCreate, UserUpdate

logger = logging.getLogger(__name__)


class UserService:

    @staticmethod
    async def create_user(db: AsyncSession, data: UserCreate) -> User:
        user = User(full_name=data.full_name, phone_number=data.phone_number)
        db.add(user)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise InvalidInputError(
                "Phone number already registered",
                details={"phone_number": data.phone_number},
            )
        await db.refresh(user)
        logger.info("Created user %s", user.id)
        return user

    @staticmethod
    async def list_users(db: AsyncSession, skip: int = 0, limit: int = 100) -> List[User]:
        result = await db.execute(select(User).order_by(User.created_at).offset(skip).limit(limit))
        return list(result.scalars().all())

    @staticmethod
    async def get_user(db: AsyncSession, user_id: str) -> User:
        user = await db.get(User, user_id)
        if user is None:
            raise ResourceNotFoundError("User", user_id)
        return user

    @staticmethod
    async def update_user(db: AsyncSession, user_id: str, data: UserUpdate) -> User:
        user = await UserService.get_user(db, user_id)
        for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(user, field, value)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise InvalidInputError(
                "Phone number already registered",
                details={"phone_number": data.phone_number},
            )
        await db.refresh(user)
        return user

    @staticmethod
    async def delete_user(db: AsyncSession, user_id: str) -> None:
        user = await UserService.get_user(db, user_id)

        trip_count = await db.scalar(select(func.count(Trip.id)).where(Trip.driver_id == user_id))
        if trip_count:
            raise InvalidInputError(
                "User still owns trips; delete them first",
                details={"user_id": user_id, "trips": trip_count},
            )

        await db.execute(delete(Notification).where(Notification.user_id == user_id))
        await db.delete(user)
        await db.commit()
        logger.info("Deleted user %s", user_id)
