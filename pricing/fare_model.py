"""
Purpose: Deterministic fare estimate (an approximation, not authoritative pricing).
What it does:

raw    = (base + per_mile * miles + per_minute * minutes + service_fee) * surge + penalty
center = max(raw, minimum_fare)
low    = max(minimum_fare, center * (1 - low_band))
high   = center * (1 + high_band)

Band policy: the band only depends on the surge passed in. Normal band is
-10% / +12%; when surge >= elevated_surge_threshold the band widens to
-15% / +20%.

Rule: pure function of its arguments. No clock reads, no randomness; any
time-of-day effect is folded into `surge` upstream (see time_of_day.py).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple

from routing.geometry import distance
from routing.models import GeoPoint

METERS_PER_MILE = 1609.34


@dataclass(frozen=True)
class Ratecard:
    """
    Per-city ratecard (USD).
    """
    base_fee: float = 2.25
    per_mile: float = 1.50
    per_minute: float = 0.33
    service_fee: float = 1.20
    minimum_fare: float = 5.00

    def validate(self) -> None:
        for name in ("base_fee", "per_mile", "per_minute", "service_fee", "minimum_fare"):
            value = getattr(self, name)
            if not math.isfinite(value) or value < 0:
                raise ValueError(f"ratecard.{name} must be a finite number >= 0")


@dataclass(frozen=True)
class BandPolicy:
    """
    Width of the low/high range around the center estimate.
    """
    low_band: float = 0.10
    high_band: float = 0.12

    # Wider range when demand is elevated.
    elevated_surge_threshold: float = 1.2
    elevated_low_band: float = 0.15
    elevated_high_band: float = 0.20

    def bands_for(self, surge: float) -> Tuple[float, float]:
        if surge >= self.elevated_surge_threshold:
            return self.elevated_low_band, self.elevated_high_band
        return self.low_band, self.high_band

    def validate(self) -> None:
        for name in ("low_band", "elevated_low_band"):
            if not 0.0 <= getattr(self, name) < 1.0:
                raise ValueError(f"band.{name} must be in [0, 1)")
        for name in ("high_band", "elevated_high_band"):
            if getattr(self, name) < 0.0:
                raise ValueError(f"band.{name} must be >= 0")


@dataclass(frozen=True)
class FareQuote:
    low: float
    high: float
    center: float


def estimate(
    distance_m: float,
    duration_s: float,
    surge: float = 1.0,
    penalty_usd: float = 0.0,
    ratecard: Optional[Ratecard] = None,
    band: Optional[BandPolicy] = None,
) -> FareQuote:
    """
    Fare estimate for a drive of `distance_m` / `duration_s`.
    Money is rounded to cents; rounding is monotone so low <= center <= high holds.
    """
    ratecard = ratecard or Ratecard()
    band = band or BandPolicy()
    if distance_m < 0 or duration_s < 0:
        raise ValueError("distance and duration must be >= 0")
    if surge <= 0:
        raise ValueError("surge must be > 0")

    miles = distance_m / METERS_PER_MILE
    minutes = duration_s / 60.0

    raw = (
        ratecard.base_fee
        + ratecard.per_mile * miles
        + ratecard.per_minute * minutes
        + ratecard.service_fee
    ) * surge + penalty_usd

    center = max(raw, ratecard.minimum_fare)
    low_band, high_band = band.bands_for(surge)

    low = max(_cents(ratecard.minimum_fare), _cents(center * (1 - low_band)))
    high = _cents(center * (1 + high_band))
    return FareQuote(low=low, high=high, center=_cents(center))


def savings(baseline: FareQuote, candidate: FareQuote) -> float:
    """Baseline minus candidate center fare, floored at zero."""
    return max(0.0, _cents(baseline.center - candidate.center))


def quick_estimate(
    a: GeoPoint,
    b: GeoPoint,
    surge: float = 1.0,
    ratecard: Optional[Ratecard] = None,
    band: Optional[BandPolicy] = None,
) -> FareQuote:
    """
    Straight-line estimate for when no directions are available; drive time
    is approximated as 2.2 minutes per mile with a 5 minute floor.
    """
    meters = distance(a, b)
    minutes = max(5.0, meters / METERS_PER_MILE * 2.2)
    return estimate(meters, minutes * 60.0, surge=surge, ratecard=ratecard, band=band)


def _cents(value: float) -> float:
    return round(value, 2)
