"""
Geographic helpers.

Coordinates live in the database as text points, ``POINT(<lng> <lat>)``,
the same layout PostGIS emits for ``ST_AsText``. Everywhere else in the
code a coordinate is a ``(lat, lng)`` tuple.
"""

import math
import re
from typing import Iterable, List, Tuple

from courier.app.core.exceptions import InvalidPointError

LatLng = Tuple[float, float]

POINT_PATTERN = re.compile(
    r"^\s*POINT\s*\(\s*(-?\d+(?:\.\d+)?)\s+(-?\d+(?:\.\d+)?)\s*\)\s*$",
    re.IGNORECASE,
)

EARTH_RADIUS_KM = 6371.0


def parse_point(value: str) -> LatLng:
    """Parse ``POINT(lng lat)`` into ``(lat, lng)``."""
    if not isinstance(value, str):
        raise InvalidPointError(value)
    match = POINT_PATTERN.match(value)
    if not match:
        raise InvalidPointError(value)
    lng, lat = float(match.group(1)), float(match.group(2))
    validate_coordinate(lat, lng, raw=value)
    return lat, lng


def format_point(lat: float, lng: float) -> str:
    validate_coordinate(lat, lng)
    return f"POINT({lng:.6f} {lat:.6f})"


def validate_coordinate(lat: float, lng: float, raw=None) -> None:
    if not (-90.0 <= lat <= 90.0) or not (-180.0 <= lng <= 180.0):
        raise InvalidPointError(raw if raw is not None else (lat, lng))


def haversine_km(a: LatLng, b: LatLng) -> float:
    lat1, lon1 = a
    lat2, lon2 = b
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dl = math.radians(lon2 - lon1)

    x = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dl / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(x))


def path_length_km(points: Iterable[LatLng]) -> float:
    """Sum of great-circle legs along an ordered path."""
    points: List[LatLng] = list(points)
    return sum(haversine_km(a, b) for a, b in zip(points, points[1:]))
