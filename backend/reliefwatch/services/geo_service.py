"""Great-circle distance and bounding-box helpers."""

from __future__ import annotations

import math
from typing import NamedTuple

from reliefwatch.core.escalation_policies import DEGREES_PER_KM

EARTH_RADIUS_KM = 6371.0


class GeoPoint(NamedTuple):
    lat: float
    lng: float


class BoundingBox(NamedTuple):
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float


def distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Haversine distance between two lat/lng points in kilometers."""
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(dlng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def point_distance_km(a: GeoPoint, b: GeoPoint) -> float:
    return distance_km(a.lat, a.lng, b.lat, b.lng)


def bounding_box(center: GeoPoint, radius_km: float) -> BoundingBox:
    """
    Square lat/lng box around center using a flat degrees-per-km factor.

    Coarse pre-filter only: callers confirm candidates with distance_km.
    """
    delta = radius_km * DEGREES_PER_KM
    return BoundingBox(
        min_lat=center.lat - delta,
        max_lat=center.lat + delta,
        min_lng=center.lng - delta,
        max_lng=center.lng + delta,
    )
