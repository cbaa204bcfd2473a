"""
Purpose: Value types shared by the routing layer and the drop-off engine.
What it does:
- GeoPoint (lat, lng) with rounded-coordinate keys for approximate equality
- TravelStats: normalized provider output (distance, duration, geometry)
- Route: a labelled baseline/alternate route between pickup and destination
- RouteSet: the routes of one pickup/destination pair + the surge proxy

Rule: No HTTP calls, no pricing. Models only.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Sequence, Tuple


@dataclass(frozen=True)
class GeoPoint:
    """
    WGS-84 point in degrees. Two points are "the same place" when their
    rounded coordinates match (see key()).
    """
    lat: float
    lng: float

    def key(self, precision: int = 6) -> Tuple[float, float]:
        return (round(self.lat, precision), round(self.lng, precision))

    def is_valid(self) -> bool:
        if not (math.isfinite(self.lat) and math.isfinite(self.lng)):
            return False
        return -90.0 <= self.lat <= 90.0 and -180.0 <= self.lng <= 180.0

    @classmethod
    def from_lnglat(cls, pair: Sequence[float]) -> GeoPoint:
        # providers speak GeoJSON order: [lng, lat]
        return cls(lat=float(pair[1]), lng=float(pair[0]))


class Profile(str, Enum):
    DRIVING = "driving"
    DRIVING_TRAFFIC = "driving-traffic"
    WALKING = "walking"


class RouteClass(str, Enum):
    REGULAR = "regular"      # baseline, used for fare comparison
    ALTERNATE = "alternate"  # map-only, still a source of drop-off samples


@dataclass(frozen=True)
class TravelStats:
    """
    One route as returned by a directions provider.
    """
    distance_m: float
    duration_s: float
    geometry: Tuple[GeoPoint, ...] = ()


@dataclass(frozen=True)
class Route:
    distance_m: float
    duration_s: float
    geometry: Tuple[GeoPoint, ...]
    label: str
    route_class: RouteClass

    @property
    def is_regular(self) -> bool:
        return self.route_class == RouteClass.REGULAR


@dataclass(frozen=True)
class RouteSet:
    """
    Baseline + alternate routes for a pickup/destination pair.
    Superseded (never mutated) when the inputs change.
    """
    regular: Tuple[Route, ...] = ()
    alternates: Tuple[Route, ...] = ()
    surge: float = 1.0
    destination_label: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.regular and not self.alternates

    def visible(self, classes: Sequence[RouteClass]) -> Tuple[Route, ...]:
        routes: Tuple[Route, ...] = ()
        if RouteClass.REGULAR in classes:
            routes += self.regular
        if RouteClass.ALTERNATE in classes:
            routes += self.alternates
        return routes

    def all_routes(self) -> Tuple[Route, ...]:
        return self.regular + self.alternates


@dataclass(frozen=True)
class PlaceSuggestion:
    label: str
    point: GeoPoint
    subtitle: str = ""
