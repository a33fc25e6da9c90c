"""
Great-circle distance helpers.
"""

import math

from ..location.location_models import GeoPoint

EARTH_RADIUS_KM = 6371.0

# Radius used by document stores to turn meters into radians for $centerSphere
STORE_EARTH_RADIUS_METERS = 6378100.0


def _central_angle(a: GeoPoint, b: GeoPoint) -> float:
    phi1, phi2 = math.radians(a.latitude), math.radians(b.latitude)
    delta_phi = math.radians(b.latitude - a.latitude)
    delta_lambda = math.radians(b.longitude - a.longitude)
    h = (math.sin(delta_phi / 2) ** 2
         + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2)
    return 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def haversine_km(a: GeoPoint, b: GeoPoint) -> float:
    """Calculate the distance between two points in kilometers."""
    return EARTH_RADIUS_KM * _central_angle(a, b)


def spherical_distance_meters(a: GeoPoint, b: GeoPoint) -> float:
    """Distance as a 2dsphere store computes it (meters)."""
    return STORE_EARTH_RADIUS_METERS * _central_angle(a, b)


def distance_km_rounded(a: GeoPoint, b: GeoPoint) -> float:
    """Distance shown to users: kilometers rounded to one decimal."""
    return round(haversine_km(a, b), 1)


def meters_to_radians(meters: float) -> float:
    return meters / STORE_EARTH_RADIUS_METERS
