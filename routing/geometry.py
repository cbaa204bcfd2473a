"""
Purpose: Geometry primitives used by every other component.
What it does:
- great-circle distance (haversine), initial bearing, point offset
- path overlap between two polylines (used to reject look-alike alternates)
- straight-line walking time

Rule: pure functions only, deterministic for identical inputs.
"""

from __future__ import annotations

import math
from typing import Sequence

from .models import GeoPoint

EARTH_RADIUS_M = 6371000.0

# Base polylines are subsampled to at most this many vertices for overlap checks.
_OVERLAP_BASE_SAMPLES = 200


def distance(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance in meters."""
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    dlat = lat2 - lat1
    dlng = math.radians(b.lng - a.lng)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    # rounding can push h a hair outside [0, 1] for antipodal points
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(h))


def bearing(a: GeoPoint, b: GeoPoint) -> float:
    """Initial compass bearing from a to b, in [0, 360)."""
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    dlng = math.radians(b.lng - a.lng)

    y = math.sin(dlng) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(dlng)
    return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0


def offset(p: GeoPoint, bearing_deg: float, meters: float) -> GeoPoint:
    """Destination point reached from p travelling `meters` along `bearing_deg`."""
    angular = meters / EARTH_RADIUS_M
    br = math.radians(bearing_deg)
    lat1 = math.radians(p.lat)
    lng1 = math.radians(p.lng)

    lat2 = math.asin(
        math.sin(lat1) * math.cos(angular) + math.cos(lat1) * math.sin(angular) * math.cos(br)
    )
    lng2 = lng1 + math.atan2(
        math.sin(br) * math.sin(angular) * math.cos(lat1),
        math.cos(angular) - math.sin(lat1) * math.sin(lat2),
    )
    # normalize to [-180, 180)
    lng_deg = (math.degrees(lng2) + 540.0) % 360.0 - 180.0
    return GeoPoint(lat=math.degrees(lat2), lng=lng_deg)


def path_overlap_pct(
    base: Sequence[GeoPoint],
    alt: Sequence[GeoPoint],
    tolerance_m: float,
) -> float:
    """
    Share of `alt` vertices lying within `tolerance_m` of the `base` polyline
    (base vertices subsampled). Empty input counts as a full overlap so that
    degenerate routes are never treated as distinct alternates.
    """
    if not base or not alt:
        return 1.0

    step = max(1, len(base) // _OVERLAP_BASE_SAMPLES)
    base_pts = base[::step]

    within = 0
    for p in alt:
        best = math.inf
        for b in base_pts:
            d = distance(p, b)
            if d < best:
                best = d
            if best <= tolerance_m:
                break
        if best <= tolerance_m:
            within += 1
    return within / len(alt)


def walk_minutes_for(meters: float, speed_mps: float) -> float:
    """Straight-line walking time in minutes at a fixed average speed."""
    if speed_mps <= 0:
        raise ValueError("speed_mps must be > 0")
    return meters / speed_mps / 60.0
