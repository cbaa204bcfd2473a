"""
Purpose: Central configuration for drop-off discovery (single source of truth).
What it does:

Stores all tunable thresholds/caps:

TAIL_FRACTION = 0.22, SAMPLE_COUNT = 16

STRICT distance/time factor = 0.88, price improvement >= 8% and >= $0.50

RELAXED distance/time factor = 0.97, no price gate

REG_MAX = 2, ALT_MAX = 3, PER_ROUTE_CAP = 2

MIN_SUGGESTIONS = 2, MAX_SUGGESTIONS = 4

plus the geofence table, ratecard, band policy and surge clamp.

The whole structure is passed by value into the pipeline; `version`
identifies a tuning so results can be traced back to it.

Rule: No logic here, just parameters (and their validation) so you can tune without rewriting code.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Optional, Tuple

from pricing.fare_model import BandPolicy, Ratecard
from pricing.geofence import GeoFence
from pricing.time_of_day import TimeOfDayPolicy

from .models import Tier


class ConfigurationInvalid(ValueError):
    """Raised for bad policy values or bad request inputs, before any provider call."""
    pass


@dataclass(frozen=True)
class TierPolicy:
    """
    Acceptance constraints for one relaxation tier.
    Candidate drive must be <= factor * source route (distance and duration).
    """
    distance_factor: float
    time_factor: float

    # Price gate: both an absolute and a relative improvement over the cheapest regular fare.
    require_price_gate: bool = False
    price_improve_pct: float = 0.0
    min_savings_usd: float = 0.0

    def validate(self, name: str) -> None:
        if not (0.0 < self.distance_factor and 0.0 < self.time_factor):
            raise ConfigurationInvalid(f"{name}: distance/time factors must be > 0")
        if self.price_improve_pct < 0.0 or self.min_savings_usd < 0.0:
            raise ConfigurationInvalid(f"{name}: price thresholds must be >= 0")


# Rough Austin zones (the city the default ratecard was tuned for).
AUSTIN_GEOFENCES: Tuple[GeoFence, ...] = (
    GeoFence("downtown", south=30.2580, west=-97.7530, north=30.2800, east=-97.7350, penalty_usd=1.50),
    GeoFence("airport", south=30.1830, west=-97.6850, north=30.2100, east=-97.6500, penalty_usd=3.00),
)


@dataclass(frozen=True)
class DiscoveryPolicy:
    """
    Central configuration for alternate drop-off discovery.

    Notes:
    - Lower tier factors = stricter (fewer candidates).
    - The closest-fallback tier has no factor or price gate; it only needs the
      radius/walk/drive checks and is ranked by proximity to the destination.
    """

    version: str = "1"

    # --- Walking constraints ---
    default_walk_radius_m: float = 400.0
    min_separation_m: float = 12.0   # closer than this is "the destination itself"
    walk_speed_mps: float = 1.33     # straight-line fallback speed
    walk_slack_min: float = 1.0      # tolerance over the radius-derived walk ceiling

    # --- Tail sampling ---
    tail_fraction: float = 0.22
    sample_count: int = 16
    dedup_precision: int = 6         # decimal degrees used for duplicate keys

    # --- Route set ---
    regular_max: int = 2
    alternate_max: int = 3
    surge_min: float = 1.0
    surge_max: float = 1.3

    # Synthetic alternates (via-point routes) when the provider returns too few.
    synthesize_alternates: bool = False
    via_fractions: Tuple[float, ...] = (0.60, 0.75)
    via_offsets_m: Tuple[float, ...] = (350.0, -350.0, 600.0)  # >0 right of travel, <0 left
    overlap_tolerance_m: float = 60.0
    max_detour_ratio: float = 1.6
    max_base_overlap: float = 0.75
    max_alternate_overlap: float = 0.85

    # --- Tiers ---
    strict: TierPolicy = field(
        default_factory=lambda: TierPolicy(
            distance_factor=0.88,
            time_factor=0.88,
            require_price_gate=True,
            price_improve_pct=0.08,
            min_savings_usd=0.50,
        )
    )
    relaxed: TierPolicy = field(
        default_factory=lambda: TierPolicy(distance_factor=0.97, time_factor=0.97)
    )

    # --- Output caps ---
    per_route_cap: int = 2
    min_suggestions: int = 2
    max_suggestions: int = 4

    # Tie-break score = distance_weight * meters + duration_weight * seconds (lower wins).
    distance_weight: float = 1.0
    duration_weight: float = 10.0

    # --- Pricing ---
    ratecard: Ratecard = field(default_factory=Ratecard)
    band: BandPolicy = field(default_factory=BandPolicy)
    time_of_day: TimeOfDayPolicy = field(default_factory=TimeOfDayPolicy)
    geofences: Tuple[GeoFence, ...] = ()

    # --- Provider fan-out ---
    max_concurrency: int = 8
    lookup_addresses: bool = True

    def tier_policy(self, tier: Tier) -> Optional[TierPolicy]:
        if tier == Tier.STRICT:
            return self.strict
        if tier == Tier.RELAXED:
            return self.relaxed
        return None

    def validate(self) -> None:
        """
        Basic sanity checks. The engine calls this before any provider call.
        """
        if not 0.0 < self.tail_fraction <= 1.0:
            raise ConfigurationInvalid("tail_fraction must be in (0, 1]")

        if self.sample_count < 1:
            raise ConfigurationInvalid("sample_count must be >= 1")

        if not (math.isfinite(self.default_walk_radius_m) and self.default_walk_radius_m > 0):
            raise ConfigurationInvalid("default_walk_radius_m must be > 0")

        if self.min_separation_m < 0:
            raise ConfigurationInvalid("min_separation_m must be >= 0")

        if self.walk_speed_mps <= 0 or self.walk_slack_min < 0:
            raise ConfigurationInvalid("walk_speed_mps must be > 0 and walk_slack_min >= 0")

        if self.dedup_precision < 0:
            raise ConfigurationInvalid("dedup_precision must be >= 0")

        if self.regular_max < 1 or self.alternate_max < 0:
            raise ConfigurationInvalid("regular_max must be >= 1 and alternate_max >= 0")

        if not 0 < self.surge_min <= self.surge_max:
            raise ConfigurationInvalid("surge clamp must satisfy 0 < surge_min <= surge_max")

        if self.per_route_cap < 1:
            raise ConfigurationInvalid("per_route_cap must be >= 1")

        if not 1 <= self.min_suggestions <= self.max_suggestions:
            raise ConfigurationInvalid("suggestion bounds must satisfy 1 <= min <= max")

        if self.max_concurrency < 1:
            raise ConfigurationInvalid("max_concurrency must be >= 1")

        self.strict.validate("strict")
        self.relaxed.validate("relaxed")

        try:
            self.ratecard.validate()
            self.band.validate()
            self.time_of_day.validate()
            for fence in self.geofences:
                fence.validate()
        except ConfigurationInvalid:
            raise
        except ValueError as exc:
            raise ConfigurationInvalid(str(exc)) from exc


def default_policy() -> DiscoveryPolicy:
    """
    Convenience factory for the default policy (Austin zones, tuned thresholds).
    """
    p = DiscoveryPolicy(geofences=AUSTIN_GEOFENCES)
    p.validate()
    return p


def lenient_policy() -> DiscoveryPolicy:
    """
    Example: looser strict tier for sparse road networks where few tail
    points ever beat the baseline by 8%.
    """
    p = DiscoveryPolicy(
        version="1-lenient",
        strict=TierPolicy(
            distance_factor=0.90,
            time_factor=0.90,
            require_price_gate=True,
            price_improve_pct=0.05,
            min_savings_usd=0.25,
        ),
        relaxed=TierPolicy(distance_factor=0.98, time_factor=0.98),
        geofences=AUSTIN_GEOFENCES,
        synthesize_alternates=True,
    )
    p.validate()
    return p


# -------------------------
# Loading from plain mappings (e.g. a JSON file)
# -------------------------

_NESTED = {
    "strict": TierPolicy,
    "relaxed": TierPolicy,
    "ratecard": Ratecard,
    "band": BandPolicy,
    "time_of_day": TimeOfDayPolicy,
}


def policy_from_dict(data: Mapping[str, Any], base: Optional[DiscoveryPolicy] = None) -> DiscoveryPolicy:
    """
    Build a policy from a mapping, overriding `base` (default: DiscoveryPolicy()).
    Unknown keys are rejected so a typo never silently falls back to a default.
    """
    base = base or DiscoveryPolicy()
    known = {f.name for f in fields(DiscoveryPolicy)}
    unknown = set(data) - known
    if unknown:
        raise ConfigurationInvalid(f"unknown policy keys: {sorted(unknown)}")

    overrides: Dict[str, Any] = {}
    for key, value in data.items():
        if key in _NESTED:
            current = getattr(base, key)
            overrides[key] = _merge_nested(key, current, value)
        elif key == "geofences":
            overrides[key] = tuple(_geofence_from_dict(item) for item in value)
        elif isinstance(value, list):
            overrides[key] = tuple(value)
        else:
            overrides[key] = value

    merged = {f.name: getattr(base, f.name) for f in fields(DiscoveryPolicy)}
    merged.update(overrides)
    p = DiscoveryPolicy(**merged)
    p.validate()
    return p


def _merge_nested(key: str, current: Any, value: Mapping[str, Any]) -> Any:
    cls = _NESTED[key]
    allowed = {f.name for f in fields(cls)}
    unknown = set(value) - allowed
    if unknown:
        raise ConfigurationInvalid(f"unknown {key} keys: {sorted(unknown)}")
    merged = {f.name: getattr(current, f.name) for f in fields(cls)}
    for name, item in value.items():
        # JSON has no tuples; nested peak windows come back as lists of lists
        if isinstance(item, list):
            item = tuple(tuple(x) if isinstance(x, list) else x for x in item)
        merged[name] = item
    return cls(**merged)


def _geofence_from_dict(item: Mapping[str, Any]) -> GeoFence:
    try:
        return GeoFence(
            name=str(item["name"]),
            south=float(item["south"]),
            west=float(item["west"]),
            north=float(item["north"]),
            east=float(item["east"]),
            penalty_usd=float(item["penalty_usd"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigurationInvalid(f"bad geofence entry {item!r}: {exc}") from exc
