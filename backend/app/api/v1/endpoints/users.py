"""
User API Endpoints.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from backend.app.core.exceptions import ResourceNotFoundError
from backend.app.db.session import get_db
from backend.app.schemas.notification import NotificationResponse
from backend.app.schemas.user import UserCreate, UserUpdate, UserResponse
from backend.app.services.notification_service import NotificationService
from backend.app.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(data: UserCreate, db: AsyncSession = Depends(get_db)):
    return await UserService.create_user(db, data)


@router.get("", response_model=List[UserResponse])
async def list_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db)
):
    return await UserService.list_users(db, skip, limit)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: str, db: AsyncSession = Depends(get_db)):
    return await UserService.get_user(db, user_id)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(user_id: str, data: UserUpdate, db: AsyncSession = Depends(get_db)):
    return await UserService.update_user(db, user_id, data)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(user_id: str, db: AsyncSession = Depends(get_db)):
    await UserService.delete_user(db, user_id)


@router.get("/{user_id}/notifications", response_model=List[NotificationResponse])
async def list_notifications(
    user_id: str,
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db)
):
    """List a user's notifications, newest first."""
    await UserService.get_user(db, user_id)
    return await NotificationService.list_for_user(db, user_id, unread_only=unread_only, limit=limit)


@router.patch("/{user_id}/notifications/{notification_id}/read")
async def mark_notification_read(user_id: str, notification_id: int, db: AsyncSession = Depends(get_db)):
    """Mark a specific notification as read."""
    success = await NotificationService.mark_read(db, notification_id, user_id)
    if not success:
        raise ResourceNotFoundError("Notification", notification_id)

    await db.commit()
    return {"status": "success"}
