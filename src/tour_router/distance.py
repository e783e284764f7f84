"""Fast distance calculations over route geometry.

Haversine is used for everything that runs over full-resolution geometry
(thousands of points per cycle). One-off proximity checks use geopy.
"""

import math

from geopy.distance import great_circle

from tour_router.models import Waypoint

# Earth's mean radius in kilometers
EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Calculate distance between two points using Haversine formula.

    Args:
        lat1, lng1: First point coordinates in degrees
        lat2, lng2: Second point coordinates in degrees

    Returns:
        Distance in kilometers
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = math.sin(dlat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlng / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def cumulative_distances_km(points: list[Waypoint]) -> list[float]:
    """Return the running distance at each point, starting at 0.0."""
    if not points:
        return []
    cum_dist = [0.0]
    for i in range(1, len(points)):
        d = haversine_km(points[i - 1].lat, points[i - 1].lng, points[i].lat, points[i].lng)
        cum_dist.append(cum_dist[-1] + d)
    return cum_dist


def path_length_km(points: list[Waypoint]) -> float:
    """Total length of a polyline in kilometers."""
    if len(points) < 2:
        return 0.0
    return cumulative_distances_km(points)[-1]


def midpoint(a: Waypoint, b: Waypoint) -> Waypoint:
    """Coordinate midpoint of two waypoints (fine for short spans)."""
    return Waypoint(lat=(a.lat + b.lat) / 2, lng=(a.lng + b.lng) / 2)


def is_within(a: Waypoint, b: Waypoint, radius_m: float) -> bool:
    """True when the great-circle distance between a and b is below radius_m."""
    return great_circle((a.lat, a.lng), (b.lat, b.lng)).meters < radius_m
