"""
Match database model.

One row per unordered pair of trips. The pair is stored in canonical order
(trip_a_id < trip_b_id), enforced by a check constraint, and the unique
constraint on the pair lets concurrent discoveries converge on one row.
"""

from sqlalchemy import Column, String, Float, ForeignKey, DateTime, Enum, UniqueConstraint, CheckConstraint
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.ids import generate_id
from backend.app.models.trip_enums import MatchStatus


class Match(Base):
    """
    Match model.
    """
    __tablename__ = "matches"

    id = Column(String(36), primary_key=True, default=generate_id)

    trip_a_id = Column(String(36), ForeignKey('trips.id'), nullable=False, index=True)
    trip_b_id = Column(String(36), ForeignKey('trips.id'), nullable=False, index=True)

    match_score = Column(Float, nullable=False)
    status = Column(Enum(MatchStatus), default=MatchStatus.PROPOSED, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint('trip_a_id', 'trip_b_id', name='uq_matches_trip_pair'),
        CheckConstraint('trip_a_id < trip_b_id', name='ck_matches_canonical_order'),
    )

    def other_trip_id(self, trip_id: str) -> str:
        """Return the id of the trip on the other side of this match."""
        return self.trip_b_id if self.trip_a_id == trip_id else self.trip_a_id

    def __repr__(self):
        return f"<Match(id={self.id}, pair=({self.trip_a_id}, {self.trip_b_id}), status='{self.status.value}')>"
