# app/services/geo.py
from math import radians, degrees, cos, sin, asin, sqrt

EARTH_RADIUS_M = 6371000

def haversine(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters."""
    lat1, lon1, lat2, lon2 = map(radians, [lat1, lon1, lat2, lon2])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_M * asin(sqrt(min(1.0, a)))

def bounding_box(lat: float, lng: float, meters: float):
    """(min_lat, max_lat, min_lng, max_lng) enclosing a circle of ``meters``.

    Longitude bounds are None when the box would wrap the antimeridian or
    reach a pole; callers then skip the longitude prefilter.
    """
    dlat = degrees(meters / EARTH_RADIUS_M)
    min_lat, max_lat = max(-90.0, lat - dlat), min(90.0, lat + dlat)
    coslat = cos(radians(lat))
    if coslat < 1e-6 or max_lat >= 90.0 or min_lat <= -90.0:
        return min_lat, max_lat, None, None
    ratio = sin(meters / EARTH_RADIUS_M) / coslat
    if ratio >= 1.0:
        return min_lat, max_lat, None, None
    dlng = degrees(asin(ratio))
    min_lng, max_lng = lng - dlng, lng + dlng
    if min_lng < -180.0 or max_lng > 180.0:
        return min_lat, max_lat, None, None
    return min_lat, max_lat, min_lng, max_lng
