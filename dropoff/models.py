"""
Purpose: Domain models for the drop-off discovery engine.
What it does:
- Defines core data structures:
- DiscoveryRequest (pickup, destination, walk radius, visible route classes)
- Candidate (drop point, walk minutes, drive stats, source route, tier, fare, savings)
- PointMeasurement (per-point provider results, reused across tiers)
- DiscoveryResult (ranked candidates + the route set they came from)

Defines enums/constants:
- Tier = STRICT | RELAXED | CLOSEST_FALLBACK

Rule: No provider calls, no ranking logic. Models only.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from pricing.fare_model import FareQuote
from routing.models import GeoPoint, RouteClass, RouteSet


class Tier(str, Enum):
    STRICT = "strict"
    RELAXED = "relaxed"
    CLOSEST_FALLBACK = "closest_fallback"

    @property
    def is_fallback(self) -> bool:
        return self == Tier.CLOSEST_FALLBACK


@dataclass(frozen=True)
class DriveStats:
    distance_m: float
    duration_s: float


@dataclass(frozen=True)
class DiscoveryRequest:
    """
    The single unit of work. Each request is independent of every other.
    """
    pickup: GeoPoint
    destination: GeoPoint
    walk_radius_m: float
    visible_classes: Tuple[RouteClass, ...] = (RouteClass.REGULAR, RouteClass.ALTERNATE)

    # Optional departure time; feeds the time-of-day factor when given.
    depart_at: Optional[datetime] = None


@dataclass(frozen=True)
class PointMeasurement:
    """
    Everything the providers told us about one sampled point.
    Tier-independent, so it is measured once per request.
    """
    point: GeoPoint
    radial_m: float
    walk_minutes: float
    walk_estimated: bool  # True when the straight-line fallback was used
    drive: DriveStats


@dataclass(frozen=True)
class Candidate:
    drop_point: GeoPoint
    walk_minutes: float
    drive: DriveStats
    source_route_label: str
    tier: Tier
    fare: FareQuote
    savings_usd: float
    radial_m: float
    walk_estimated: bool = False
    address: str = ""


@dataclass(frozen=True)
class DiscoveryResult:
    candidates: Tuple[Candidate, ...] = ()
    routes: RouteSet = field(default_factory=RouteSet)
    baseline_fare: Optional[FareQuote] = None
    surge: float = 1.0
    tiers_run: Tuple[Tier, ...] = ()
    generation: int = 0

    @property
    def has_suggestions(self) -> bool:
        return bool(self.candidates)
