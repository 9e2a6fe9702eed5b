"""
Match schemas.

Result shapes of a match search and of the existing-match listing.
"""

from pydantic import BaseModel
from typing import Optional
from datetime import datetime

from backend.app.models.trip_enums import MatchStatus
from backend.app.schemas.trip import GeoPoint


class TripSummary(BaseModel):
    """The other trip of a match, as shown to the searching user."""
    id: str
    driver_id: str
    driver_name: Optional[str] = None
    departure_time: datetime
    seats_offered: int
    pickup: GeoPoint
    drop_off: GeoPoint

    @classmethod
    def from_trip(cls, trip, driver_name: Optional[str] = None) -> "TripSummary":
        return cls(
            id=trip.id,
            driver_id=trip.driver_id,
            driver_name=driver_name,
            departure_time=trip.departure_time,
            seats_offered=trip.seats_offered,
            pickup=GeoPoint(lat=trip.pickup_lat, lng=trip.pickup_lng),
            drop_off=GeoPoint(lat=trip.drop_off_lat, lng=trip.drop_off_lng),
        )


class MatchResult(BaseModel):
    matching_trip_id: str
    match_percentage: float
    overlap_percentage: float
    additional_distance_meters: int
    additional_time_seconds: int
    trip: TripSummary


class ExistingMatch(BaseModel):
    match_id: str
    matching_trip_id: str
    match_percentage: float
    status: MatchStatus
    trip: TripSummary


class MatchStatusUpdate(BaseModel):
    """Only accepted and rejected may be set from outside."""
    status: MatchStatus


class MatchStatusResponse(BaseModel):
    id: str
    trip_a_id: str
    trip_b_id: str
    match_score: float
    status: MatchStatus
    updated_at: datetime

    class Config:
        from_attributes = True
