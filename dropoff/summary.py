#Purpose: Presentation helpers for discovery results (plain dicts, JSON friendly).
#Regular routes are shown with their upper estimate (conservative), drop-off
#candidates with their lower estimate plus the saving against the baseline.
#No provider calls, no ranking.

from typing import Any, Dict, Optional
from urllib.parse import urlencode

from pricing.fare_model import METERS_PER_MILE, FareQuote
from routing.models import GeoPoint, Route

from .models import Candidate

RIDESHARE_URL = "https://m.uber.com/ul/"
FEET_PER_METER = 3.28084
WALK_SPEED_MPS = 1.33


def rideshare_link(pickup: GeoPoint, drop: GeoPoint, nickname: Optional[str] = None) -> str:
    """Deep link that opens the rideshare app with pickup and drop-off filled in."""
    params = {
        "action": "setPickup",
        "pickup[latitude]": str(pickup.lat),
        "pickup[longitude]": str(pickup.lng),
        "dropoff[latitude]": str(drop.lat),
        "dropoff[longitude]": str(drop.lng),
    }
    if nickname:
        params["dropoff[nickname]"] = nickname
    return f"{RIDESHARE_URL}?{urlencode(params)}"


def summarize_candidate(
    candidate: Candidate,
    baseline_fare: Optional[FareQuote],
    pickup: Optional[GeoPoint] = None,
    walk_speed_mps: float = WALK_SPEED_MPS,
) -> Dict[str, Any]:
    """walk_speed_mps should match the policy that produced the candidate."""
    saved = None
    if baseline_fare is not None:
        diff = round(baseline_fare.center - candidate.fare.center, 2)
        saved = diff if diff > 0 else None

    walk_feet = round(candidate.walk_minutes * 60 * walk_speed_mps * FEET_PER_METER)

    summary = {
        "lat": candidate.drop_point.lat,
        "lng": candidate.drop_point.lng,
        "address": candidate.address,
        "route": candidate.source_route_label,
        "tier": candidate.tier.value,
        "price_low": candidate.fare.low,
        "savings": saved,
        "walk_minutes": round(candidate.walk_minutes, 1),
        "walk_feet": walk_feet,
        "walk_estimated": candidate.walk_estimated,
    }
    if pickup is not None:
        summary["link"] = rideshare_link(pickup, candidate.drop_point, candidate.address or None)
    return summary


def summarize_route(route: Route, fare: FareQuote) -> Dict[str, Any]:
    return {
        "label": route.label,
        "class": route.route_class.value,
        "price_high": fare.high,
        "miles": round(route.distance_m / METERS_PER_MILE, 1),
        "minutes": round(route.duration_s / 60),
    }
