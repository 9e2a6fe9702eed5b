"""
Trip schemas.

Coordinates travel as {lat, lng} objects; departure times are stored as
naive UTC, so aware datetimes are converted on the way in.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime, timezone

from backend.app.models.trip_enums import TripStatus


class GeoPoint(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class TripCreate(BaseModel):
    """Schema for trip creation."""
    driver_id: str
    pickup: GeoPoint
    drop_off: GeoPoint
    departure_time: datetime
    seats_offered: int = Field(0, ge=0)
    seats_required: int = Field(0, ge=0)

    @field_validator("departure_time")
    @classmethod
    def normalize_departure(cls, value):
        return to_naive_utc(value)


class TripUpdate(BaseModel):
    """Partial update. Changing pickup, drop-off or departure invalidates the trip's matches."""
    pickup: Optional[GeoPoint] = None
    drop_off: Optional[GeoPoint] = None
    departure_time: Optional[datetime] = None
    seats_offered: Optional[int] = Field(None, ge=0)
    seats_required: Optional[int] = Field(None, ge=0)

    @field_validator("departure_time")
    @classmethod
    def normalize_departure(cls, value):
        return to_naive_utc(value)


class TripStatusUpdate(BaseModel):
    status: TripStatus


class TripResponse(BaseModel):
    """Schema for trip response."""
    id: str
    driver_id: str
    pickup: GeoPoint
    drop_off: GeoPoint
    departure_time: datetime
    seats_offered: int
    seats_required: int
    status: TripStatus
    route_length_m: Optional[float] = None
    route_duration_s: Optional[float] = None
    has_route: bool = False

    @classmethod
    def from_trip(cls, trip) -> "TripResponse":
        return cls(
            id=trip.id,
            driver_id=trip.driver_id,
            pickup=GeoPoint(lat=trip.pickup_lat, lng=trip.pickup_lng),
            drop_off=GeoPoint(lat=trip.drop_off_lat, lng=trip.drop_off_lng),
            departure_time=trip.departure_time,
            seats_offered=trip.seats_offered,
            seats_required=trip.seats_required,
            status=trip.status,
            route_length_m=trip.route_length_m,
            route_duration_s=trip.route_duration_s,
            has_route=trip.has_route,
        )


class TripDeleteResponse(BaseModel):
    trip_id: str
    invalidated_matches: int
