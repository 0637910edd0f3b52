"""Distance helpers.

Two deliberately different measures live here. ``spherical_distance_km`` is
the haversine distance used for what a user sees and for ordering results.
``planar_proximity`` is a straight Euclidean distance in raw degrees, used
only as a coarse filter by the matcher.
"""

from __future__ import annotations

import math

from forecourt.common.constants import EARTH_RADIUS_KM, KM_TO_MILES


def spherical_distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def km_to_miles(km: float) -> float:
    return round(km * KM_TO_MILES, 1)


def planar_proximity(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    # Not latitude-corrected.
    return math.hypot(lat1 - lat2, lon1 - lon2)
