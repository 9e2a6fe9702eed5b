"""
Geographic helpers for trip matching.

Pure functions: great-circle distance, coordinate validation and
encoded-polyline decoding.
"""

import math
from typing import List, NamedTuple

import polyline


# Mean Earth radius in meters
EARTH_RADIUS_METERS = 6371000.0


class Coordinates(NamedTuple):
    """A geographic point with latitude and longitude in degrees."""
    lat: float
    lng: float


def distance_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Calculate the great-circle distance between two points on Earth.

    Args:
        lat1, lng1: First point coordinates (degrees)
        lat2, lng2: Second point coordinates (degrees)

    Returns:
        Distance in meters
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)

    # Haversine formula
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = math.sin(dlat / 2)**2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlng / 2)**2
    # Rounding can push a just past 1 for antipodal points
    a = min(1.0, a)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_METERS * c


def is_valid_coordinate(lat, lng) -> bool:
    """True when lat/lng are finite numbers inside the WGS84 ranges."""
    if lat is None or lng is None:
        return False
    try:
        lat = float(lat)
        lng = float(lng)
    except (TypeError, ValueError):
        return False
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0


def decode_polyline(encoded: str, precision: int = 6) -> List[Coordinates]:
    """
    Decode an encoded polyline into an ordered list of coordinates.

    Raises whatever the decoder raises on malformed input; callers that
    must not fail handle that themselves.
    """
    return [Coordinates(lat, lng) for lat, lng in polyline.decode(encoded, precision)]
