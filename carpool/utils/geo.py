"""
Geographic helpers.
"""
from math import radians, sin, cos, sqrt, atan2

EARTH_RADIUS_M = 6371000


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in meters."""
    phi1, phi2 = radians(lat1), radians(lat2)
    dphi = radians(lat2 - lat1)
    dlambda = radians(lng2 - lng1)
    a = sin(dphi / 2) ** 2 + cos(phi1) * cos(phi2) * sin(dlambda / 2) ** 2
    return 2 * EARTH_RADIUS_M * atan2(sqrt(a), sqrt(1 - a))


def within_tolerance(lat1: float, lng1: float, lat2: float, lng2: float, tolerance_deg: float) -> bool:
    return abs(lat1 - lat2) <= tolerance_deg and abs(lng1 - lng2) <= tolerance_deg
