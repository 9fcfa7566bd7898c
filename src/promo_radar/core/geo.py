"""Great-circle distance between coordinates."""

from math import atan2, cos, radians, sin, sqrt

from promo_radar.core.entities import Coordinate

EARTH_RADIUS_KM = 6371.0


def distance_km(a: Coordinate, b: Coordinate) -> float:
    """Calculate the haversine distance between two points in kilometers.

    Args:
        a: First point
        b: Second point

    Returns:
        Distance in kilometers. Symmetric, and 0.0 for identical points.
    """
    lat1, lon1, lat2, lon2 = map(radians, [a.latitude, a.longitude, b.latitude, b.longitude])
    dlat = lat2 - lat1
    dlon = lon2 - lon1

    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    c = 2 * atan2(sqrt(h), sqrt(1 - h))

    return EARTH_RADIUS_KM * c
