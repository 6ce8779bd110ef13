"""
Great-circle helpers shared by scoring, sampling and snapping.
"""

import math
from typing import Sequence

EARTH_RADIUS_M = 6371000


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two coordinates (Haversine formula).

    Returns:
        Distance in meters
    """
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def distance_between(a, b) -> float:
    """Distance in meters between two objects exposing ``lat``/``lon``."""
    return haversine_m(a.lat, a.lon, b.lat, b.lon)


def path_length_m(points: Sequence) -> float:
    """Sum of consecutive point-to-point distances along ``points``."""
    if len(points) < 2:
        return 0.0
    return sum(distance_between(points[i - 1], points[i]) for i in range(1, len(points)))
