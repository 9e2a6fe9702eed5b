"""
Route overlap scoring.

Measures how much of one route runs along another by walking both decoded
polylines with a forward-only cursor.
"""

import logging
from typing import Sequence

from backend.app.domain.matching.geo import Coordinates, decode_polyline, distance_meters

logger = logging.getLogger(__name__)


def directed_overlap(source: Sequence[Coordinates], target: Sequence[Coordinates], threshold_meters: float) -> float:
    """
    Percentage of source points that lie near target, in travel order.

    For each source point the target is scanned from the cursor onward; on a
    hit the cursor moves just past the matching target point, so each target
    point is credited at most once and never revisited.
    """
    if not source or not target:
        return 0.0

    cursor = 0
    hits = 0
    for point in source:
        for j in range(cursor, len(target)):
            candidate = target[j]
            if distance_meters(point.lat, point.lng, candidate.lat, candidate.lng) <= threshold_meters:
                hits += 1
                cursor = j + 1
                break

    return hits / len(source) * 100.0


class OverlapScorer:

    def __init__(self, threshold_meters: float = 200.0, polyline_precision: int = 6):
        self.threshold_meters = threshold_meters
        self.polyline_precision = polyline_precision

    def overlap_percentage(self, encoded_a: str, encoded_b: str) -> float:
        """
        Symmetric overlap of two encoded routes, 0 to 100.

        The mean of both directed overlaps. Empty or undecodable input gives 0.
        """
        if not encoded_a or not encoded_b:
            return 0.0

        try:
            route_a = decode_polyline(encoded_a, self.polyline_precision)
            route_b = decode_polyline(encoded_b, self.polyline_precision)
        except Exception as exc:
            logger.warning("Could not decode polyline for overlap: %s", exc)
            return 0.0

        if not route_a or not route_b:
            return 0.0

        forward = directed_overlap(route_a, route_b, self.threshold_meters)
        backward = directed_overlap(route_b, route_a, self.threshold_meters)
        return (forward + backward) / 2.0
