"""
Matching policy.

Thresholds and weights used by the matching engine. They are policy, not
physics, so every value can be overridden through settings.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MatchingPolicy(BaseModel):
    """Immutable bundle of matching thresholds handed to each component."""

    model_config = ConfigDict(frozen=True)

    # Candidate prefilter
    proximity_threshold_meters: float = 175.0
    meters_per_degree: float = 111000.0
    departure_window_minutes: int = 30
    longitude_correction: bool = False

    # Scoring
    overlap_point_threshold_meters: float = 200.0
    min_overlap_percentage: float = 20.0
    max_deviation_percentage: float = 30.0
    overlap_weight: float = 0.7
    deviation_weight: float = 0.3

    # Execution
    max_concurrent_candidates: int = Field(default=4, ge=1)
    search_timeout_seconds: Optional[float] = None

    # Routing
    routing_profile: str = "driving-traffic"
    polyline_precision: int = 6

    @classmethod
    def from_settings(cls, settings) -> "MatchingPolicy":
        return cls(
            proximity_threshold_meters=settings.proximity_threshold_meters,
            meters_per_degree=settings.meters_per_degree,
            departure_window_minutes=settings.departure_window_minutes,
            longitude_correction=settings.prefilter_longitude_correction,
            overlap_point_threshold_meters=settings.overlap_point_threshold_meters,
            min_overlap_percentage=settings.min_overlap_percentage,
            max_deviation_percentage=settings.max_deviation_percentage,
            overlap_weight=settings.overlap_weight,
            deviation_weight=settings.deviation_weight,
            max_concurrent_candidates=settings.max_concurrent_candidates,
            search_timeout_seconds=settings.match_search_timeout_seconds,
            routing_profile=settings.routing_profile,
            polyline_precision=settings.polyline_precision,
        )
