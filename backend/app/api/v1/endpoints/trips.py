"""
Trip API Endpoints.

Create, read, edit and delete trips. Edits and deletes go through the
matching engine so stale matches are invalidated.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from backend.app.core.dependencies import get_matching_engine
from backend.app.db.session import get_db
from backend.app.domain.matching.engine import MatchingEngine
from backend.app.schemas.trip import (
    TripCreate,
    TripUpdate,
    TripStatusUpdate,
    TripResponse,
    TripDeleteResponse,
)
from backend.app.services.trip_service import TripService
from backend.app.services.user_service import UserService

router = APIRouter(prefix="/trips", tags=["Trips"])


@router.post("", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def create_trip(data: TripCreate, db: AsyncSession = Depends(get_db)):
    trip = await TripService.create_trip(db, data)
    return TripResponse.from_trip(trip)


@router.get("/driver/{driver_id}", response_model=List[TripResponse])
async def list_driver_trips(driver_id: str, db: AsyncSession = Depends(get_db)):
    """All trips owned by a user, newest first."""
    await UserService.get_user(db, driver_id)
    trips = await TripService.list_driver_trips(db, driver_id)
    return [TripResponse.from_trip(trip) for trip in trips]


@router.get("/{trip_id}", response_model=TripResponse)
async def get_trip(trip_id: str, db: AsyncSession = Depends(get_db)):
    trip = await TripService.get_trip(db, trip_id)
    return TripResponse.from_trip(trip)


@router.put("/{trip_id}", response_model=TripResponse)
async def update_trip(
    trip_id: str,
    data: TripUpdate,
    db: AsyncSession = Depends(get_db),
    engine: MatchingEngine = Depends(get_matching_engine)
):
    """
    Edit a trip.

    Changing pickup, drop-off or departure time cancels the trip's current
    matches, notifies the partners and starts a new search in the background.
    """
    trip = await TripService.update_trip(db, trip_id, data, engine)
    return TripResponse.from_trip(trip)


@router.put("/{trip_id}/status", response_model=TripResponse)
async def update_trip_status(trip_id: str, data: TripStatusUpdate, db: AsyncSession = Depends(get_db)):
    trip = await TripService.update_trip_status(db, trip_id, data.status)
    return TripResponse.from_trip(trip)


@router.delete("/{trip_id}", response_model=TripDeleteResponse)
async def delete_trip(
    trip_id: str,
    db: AsyncSession = Depends(get_db),
    engine: MatchingEngine = Depends(get_matching_engine)
):
    invalidated = await TripService.delete_trip(db, trip_id, engine)
    return TripDeleteResponse(trip_id=trip_id, invalidated_matches=invalidated)
