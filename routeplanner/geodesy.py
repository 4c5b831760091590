from __future__ import annotations

import math
from collections.abc import Sequence

EARTH_RADIUS_M = 6_371_000.0

Coordinate = tuple[float, float]  # (lon, lat)


def haversine_m(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance in meters between two (lon, lat) pairs."""
    lon1, lat1 = a
    lon2, lat2 = b
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = phi2 - phi1
    dlambda = math.radians(lon2 - lon1)
    h = (
        math.sin(dphi / 2.0) ** 2
        + (math.cos(phi1) * math.cos(phi2) * (math.sin(dlambda / 2.0) ** 2))
    )
    return 2.0 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(max(0.0, h))))


def bearing_deg(a: Coordinate, b: Coordinate) -> float:
    """Initial compass bearing from `a` to `b`, normalized into [0, 360)."""
    lon1, lat1 = math.radians(a[0]), math.radians(a[1])
    lon2, lat2 = math.radians(b[0]), math.radians(b[1])
    y = math.sin(lon2 - lon1) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(lon2 - lon1)
    bearing = (math.degrees(math.atan2(y, x)) + 360.0) % 360.0
    # (-tiny + 360) % 360 can round up to exactly 360.0
    return 0.0 if bearing >= 360.0 else bearing


def angle_difference_deg(a: float, b: float) -> float:
    """Signed minimal rotation from heading `a` to heading `b`, in (-180, 180]."""
    diff = (float(b) - float(a)) % 360.0
    if diff > 180.0:
        diff -= 360.0
    return diff


def path_distance_m(path: Sequence[Coordinate]) -> float:
    total = 0.0
    for idx in range(1, len(path)):
        total += haversine_m(path[idx - 1], path[idx])
    return total


def compass_octant(heading_deg: float) -> int:
    """Bin a heading into 8 compass sectors, 0 = north, clockwise."""
    normalized = (float(heading_deg) + 360.0) % 360.0
    return int(((normalized + 22.5) % 360.0) // 45.0)
