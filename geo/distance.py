"""
Purpose: Great-circle distance math for rider matching.
What it does:
Computes haversine distances in kilometers on a spherical Earth.
Malformed coordinates never raise here; they come back as +inf so a broken
rider record can never be picked as the nearest one.
"""

from __future__ import annotations

import logging
import math
from typing import Any

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


def _as_finite_number(value: Any) -> float | None:
    # bool is an int subclass, but a True/False latitude is always a bad record
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    if not math.isfinite(value):
        return None
    return value


def is_valid_coordinate(lat: Any, lon: Any) -> bool:
    """
    True when lat/lon are finite numbers inside [-90, 90] / [-180, 180].
    """
    lat = _as_finite_number(lat)
    lon = _as_finite_number(lon)
    if lat is None or lon is None:
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


def haversine_km(lat1: Any, lon1: Any, lat2: Any, lon2: Any) -> float:
    """
    Distance between two points in kilometers.

    Returns math.inf if any coordinate is not a finite number or is out of range.
    """
    if not (is_valid_coordinate(lat1, lon1) and is_valid_coordinate(lat2, lon2)):
        logger.debug("Invalid coordinates in distance calculation: %s, %s, %s, %s", lat1, lon1, lat2, lon2)
        return math.inf

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    # clamp for float noise on antipodal points
    a = min(1.0, max(0.0, a))
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))
