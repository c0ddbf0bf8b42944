"""
Location Utilities

Freshness checks and distance helpers shared by the location services.
"""

import math
import time

EARTH_RADIUS_M = 6_371_008.8


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds"""
    return int(time.time() * 1000)


def is_location_fresh(
    timestamp_ms: int,
    max_age_ms: int = 5 * 60 * 1000,
    now: int | None = None,
) -> bool:
    """
    Check whether a fix taken at `timestamp_ms` is younger than `max_age_ms`.

    Fixes stamped in the future (clock skew) count as fresh.
    """
    current = now if now is not None else now_ms()
    return current - timestamp_ms < max_age_ms


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in metres (haversine)"""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)

    a = (
        math.sin(dphi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    )
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(a))


def offset_position(lat: float, lon: float, north_m: float, east_m: float) -> tuple[float, float]:
    """Move a position by metres north/east (small-distance approximation)"""
    dlat = north_m / EARTH_RADIUS_M
    dlon = east_m / (EARTH_RADIUS_M * math.cos(math.radians(lat)))
    return lat + math.degrees(dlat), lon + math.degrees(dlon)
