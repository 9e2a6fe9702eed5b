"""
Trip database model.

A trip is either a driver offer (seats_offered > 0) or a rider request
(seats_required > 0). Route fields are filled lazily by the route resolver
and act as a cache until pickup, drop-off or departure time change.
"""

from sqlalchemy import Column, String, Integer, Float, Text, ForeignKey, DateTime, Enum
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.ids import generate_id
from backend.app.models.trip_enums import TripStatus
from backend.app.domain.matching.geo import Coordinates


class Trip(Base):
    """
    Trip model.
    """
    __tablename__ = "trips"

    id = Column(String(36), primary_key=True, default=generate_id)

    # Ownership
    driver_id = Column(String(36), ForeignKey('users.id'), nullable=False, index=True)

    # Endpoints
    pickup_lat = Column(Float, nullable=False)
    pickup_lng = Column(Float, nullable=False)
    drop_off_lat = Column(Float, nullable=False)
    drop_off_lng = Column(Float, nullable=False)

    # Naive UTC
    departure_time = Column(DateTime, nullable=False, index=True)

    # Capacity
    seats_offered = Column(Integer, default=0, nullable=False)
    seats_required = Column(Integer, default=0, nullable=False)

    # Status
    status = Column(Enum(TripStatus), default=TripStatus.PENDING, nullable=False, index=True)

    # Route cache (null until resolved)
    polyline = Column(Text, nullable=True)
    route_length_m = Column(Float, nullable=True)
    route_duration_s = Column(Float, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def pickup(self) -> Coordinates:
        return Coordinates(self.pickup_lat, self.pickup_lng)

    @property
    def drop_off(self) -> Coordinates:
        return Coordinates(self.drop_off_lat, self.drop_off_lng)

    @property
    def has_route(self) -> bool:
        return bool(self.polyline) and self.route_length_m is not None

    def clear_route(self) -> None:
        self.polyline = None
        self.route_length_m = None
        self.route_duration_s = None

    def __repr__(self):
        return f"<Trip(id={self.id}, driver_id={self.driver_id}, status='{self.status.value}')>"
