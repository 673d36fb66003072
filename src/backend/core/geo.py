"""Geographic helpers for radius queries on issue locations."""

import math

EARTH_RADIUS_METERS = 6_371_008.8


def point(longitude: float, latitude: float) -> dict:
    """Build a GeoJSON point (coordinates are [longitude, latitude])."""
    return {"type": "Point", "coordinates": [longitude, latitude]}


def haversine_distance(lon1: float, lat1: float, lon2: float, lat2: float) -> float:
    """Great-circle distance between two points in meters."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(min(1.0, math.sqrt(a)))
