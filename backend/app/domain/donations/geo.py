"""
Great-circle helpers for proximity search.

Distances are in miles, the unit the donation search radius is expressed in.
"""

import math
from typing import NamedTuple, Optional

EARTH_RADIUS_MILES = 3958.8
MILES_PER_DEGREE_LAT = 69.0


class BoundingBox(NamedTuple):
    min_lat: float
    max_lat: float
    # None when the box wraps the antimeridian or a pole
    min_lng: Optional[float]
    max_lng: Optional[float]


def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great-circle distance between two points on Earth.

    Args:
        lat1, lon1: First point coordinates (degrees)
        lat2, lon2: Second point coordinates (degrees)

    Returns:
        Distance in miles
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = lat2_rad - lat1_rad
    dlon = math.radians(lon2 - lon1)

    a = math.sin(dlat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_MILES * c


def bounding_box(lat: float, lng: float, radius_miles: float) -> BoundingBox:
    """
    Return a lat/lng box that contains every point within radius_miles.

    The box is a cheap index-friendly prefilter; callers still apply
    haversine_miles to the candidates.
    """
    lat_delta = radius_miles / MILES_PER_DEGREE_LAT
    min_lat = max(-90.0, lat - lat_delta)
    max_lat = min(90.0, lat + lat_delta)

    if min_lat <= -90.0 or max_lat >= 90.0:
        return BoundingBox(min_lat, max_lat, None, None)

    # Longitude degrees shrink towards the poles; use the widest latitude in the box
    widest = max(abs(min_lat), abs(max_lat))
    lng_delta = radius_miles / (MILES_PER_DEGREE_LAT * math.cos(math.radians(widest)))
    min_lng = lng - lng_delta
    max_lng = lng + lng_delta

    if min_lng < -180.0 or max_lng > 180.0:
        return BoundingBox(min_lat, max_lat, None, None)

    return BoundingBox(min_lat, max_lat, min_lng, max_lng)
