"""
Purpose: The drop-off discovery "orchestrator" (single entry point).
What it does:

Coordinates the pipeline end-to-end for one DiscoveryRequest:

- builds the route set (routing.route_service) and the request-wide surge

- prices the baseline: cheapest regular route to the true destination

- tail-samples every visible route (sampler.py)

- measures every sampled point once, concurrently (evaluator.measure via fanout.py)

- runs the relaxation tiers STRICT -> RELAXED -> CLOSEST_FALLBACK
  (state_machines/tier_state.py), merging each tier into the accumulated list

- dedupes / caps / orders (ranking.py), then looks up short addresses

Typical public function signature:

- discover(request, policy, directions, geocoder=None) -> DiscoveryResult

Rule: Engine is the only file other modules should call directly for discovery.
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Dict, List, MutableMapping, Optional, Tuple

from pricing.fare_model import FareQuote, estimate
from pricing.geofence import geofence_penalty
from pricing.time_of_day import time_of_day_factor
from routing.errors import ProviderError
from routing.models import GeoPoint, Route, RouteSet
from routing.route_service import build_route_set

from .evaluator import CandidateEvaluator
from .fanout import BoundedFanout, CancellationToken
from .models import Candidate, DiscoveryRequest, DiscoveryResult, PointMeasurement, Tier
from .policy import ConfigurationInvalid, DiscoveryPolicy
from .ranking import cap_per_route, dedupe, dedupe_and_cap, sort_candidates
from .sampler import sample_tail
from .state_machines.tier_state import TierState, first_state, next_state

logger = logging.getLogger(__name__)

Key = Tuple[float, float]


def validate_request(request: DiscoveryRequest) -> None:
    """
    Reject bad inputs before any provider call, with no partial work.
    """
    if not request.pickup.is_valid():
        raise ConfigurationInvalid(f"invalid pickup coordinates: {request.pickup}")
    if not request.destination.is_valid():
        raise ConfigurationInvalid(f"invalid destination coordinates: {request.destination}")
    radius = request.walk_radius_m
    if not isinstance(radius, (int, float)) or not math.isfinite(radius) or radius <= 0:
        raise ConfigurationInvalid(f"walk_radius_m must be a finite number > 0, got {radius!r}")


def discover(
    request: DiscoveryRequest,
    policy: DiscoveryPolicy,
    directions,
    geocoder=None,
    *,
    token: Optional[CancellationToken] = None,
    pool: Optional[BoundedFanout] = None,
    address_cache: Optional[MutableMapping[Key, str]] = None,
) -> DiscoveryResult:
    """
    Main discovery entry point.

    Parameters
    ----------
    request:
        pickup, destination, walk radius and which route classes are visible.
    policy:
        DiscoveryPolicy with every threshold; passed by value, never mutated.
    directions:
        Directions provider: .route(points, profile, alternatives) -> List[TravelStats].
    geocoder:
        Optional reverse geocoder: .describe(point) -> str. Best effort.
    token:
        Optional CancellationToken; a superseded request raises DiscoveryCancelled.
    pool:
        Optional shared BoundedFanout. When omitted a pool sized by
        policy.max_concurrency is created for this call.
    address_cache:
        Optional rounded-coordinate -> address cache kept by the caller
        across requests. Read before and written after the lookup fan-out.

    Returns
    -------
    DiscoveryResult with at most policy.max_suggestions candidates. An empty
    result (no routes, no samples, nothing acceptable) is a normal outcome.
    """
    policy.validate()
    validate_request(request)

    if pool is not None:
        return _discover(request, policy, directions, geocoder, token, pool, address_cache)

    with BoundedFanout(policy.max_concurrency) as own_pool:
        return _discover(request, policy, directions, geocoder, token, own_pool, address_cache)


def _discover(
    request: DiscoveryRequest,
    policy: DiscoveryPolicy,
    directions,
    geocoder,
    token: Optional[CancellationToken],
    pool: BoundedFanout,
    address_cache: Optional[MutableMapping[Key, str]],
) -> DiscoveryResult:
    generation = token.generation if token is not None else 0

    # 1) Route set; no regular route means nothing to compare against
    route_set = build_route_set(
        directions, request.pickup, request.destination, policy, pool=pool, token=token
    )
    if not route_set.regular:
        logger.info("no baseline routes, no suggestions")
        return DiscoveryResult(routes=route_set, generation=generation)

    surge = request_surge(route_set, request, policy)
    baseline_fare = baseline_quote(route_set, request.destination, surge, policy)

    # 2) Tail samples of every visible route, as (route, point) pairs
    visible = route_set.visible(request.visible_classes)
    samples: List[Tuple[Route, GeoPoint]] = []
    for route in visible:
        for point in sample_tail(route, policy.sample_count, policy.tail_fraction, policy.dedup_precision):
            samples.append((route, point))

    evaluator = CandidateEvaluator(directions, request, policy, token=token)
    measurements: Dict[Key, Optional[PointMeasurement]] = {}

    # 3) Relaxation tiers
    accumulated: List[Candidate] = []
    tiers_run: List[Tier] = []
    state = first_state()
    while state != TierState.DONE:
        tier = state.tier
        tiers_run.append(tier)

        _measure_missing(evaluator, samples, measurements, policy, pool, token)
        tier_output = _run_tier(
            evaluator, tier, samples, measurements, accumulated, baseline_fare, surge, policy
        )
        accumulated = dedupe_and_cap(accumulated + tier_output, policy)

        logger.info(
            "tier %s: %s accepted, %s accumulated", tier.value, len(tier_output), len(accumulated)
        )
        state = next_state(state, len(accumulated), policy.min_suggestions)

    if token is not None:
        token.check()

    # 4) Short addresses for the survivors + the true destination
    if geocoder is not None and policy.lookup_addresses:
        accumulated, route_set = _attach_addresses(
            geocoder, accumulated, route_set, request.destination, policy, pool, token, address_cache
        )

    return DiscoveryResult(
        candidates=tuple(accumulated),
        routes=route_set,
        baseline_fare=baseline_fare,
        surge=surge,
        tiers_run=tuple(tiers_run),
        generation=generation,
    )


def request_surge(route_set: RouteSet, request: DiscoveryRequest, policy: DiscoveryPolicy) -> float:
    """
    One surge for the whole request so every fare is compared like for like.
    """
    surge = route_set.surge
    if request.depart_at is not None:
        surge *= time_of_day_factor(request.depart_at, policy.time_of_day)
    return surge


def baseline_quote(
    route_set: RouteSet,
    destination: GeoPoint,
    surge: float,
    policy: DiscoveryPolicy,
) -> FareQuote:
    """Fare of the cheapest regular route all the way to the destination."""
    penalty = geofence_penalty(destination, policy.geofences)
    quotes = [
        estimate(
            r.distance_m,
            r.duration_s,
            surge=surge,
            penalty_usd=penalty,
            ratecard=policy.ratecard,
            band=policy.band,
        )
        for r in route_set.regular
    ]
    return min(quotes, key=lambda q: q.center)


def _measure_missing(
    evaluator: CandidateEvaluator,
    samples: List[Tuple[Route, GeoPoint]],
    measurements: Dict[Key, Optional[PointMeasurement]],
    policy: DiscoveryPolicy,
    pool: BoundedFanout,
    token: Optional[CancellationToken],
) -> None:
    """
    Measure points not measured yet. Results are merged into `measurements`
    only after the whole fan-out has completed.
    """
    pending: List[GeoPoint] = []
    queued = set()
    for _, point in samples:
        key = point.key(policy.dedup_precision)
        if key in measurements or key in queued:
            continue
        queued.add(key)
        pending.append(point)

    if not pending:
        return

    results = pool.map_slots(evaluator.measure, pending, token)
    for point, measurement in zip(pending, results):
        measurements[point.key(policy.dedup_precision)] = measurement


def _run_tier(
    evaluator: CandidateEvaluator,
    tier: Tier,
    samples: List[Tuple[Route, GeoPoint]],
    measurements: Dict[Key, Optional[PointMeasurement]],
    accumulated: List[Candidate],
    baseline_fare: FareQuote,
    surge: float,
    policy: DiscoveryPolicy,
) -> List[Candidate]:
    taken = {c.drop_point.key(policy.dedup_precision) for c in accumulated}

    found: List[Candidate] = []
    for route, point in samples:
        key = point.key(policy.dedup_precision)
        measurement = measurements.get(key)
        if measurement is None or key in taken:
            continue
        candidate = evaluator.classify(measurement, route, tier, baseline_fare, surge)
        if candidate is not None:
            found.append(candidate)

    output = cap_per_route(sort_candidates(found, policy), policy.per_route_cap)

    if tier.is_fallback:
        # filler only: just enough closest points to reach min_suggestions
        need = max(0, policy.min_suggestions - len(accumulated))
        output = dedupe(output, policy.dedup_precision)[:need]
    return output


def _attach_addresses(
    geocoder,
    candidates: List[Candidate],
    route_set: RouteSet,
    destination: GeoPoint,
    policy: DiscoveryPolicy,
    pool: BoundedFanout,
    token: Optional[CancellationToken],
    address_cache: Optional[MutableMapping[Key, str]],
) -> Tuple[List[Candidate], RouteSet]:
    cache = address_cache if address_cache is not None else {}
    points = [destination] + [c.drop_point for c in candidates]
    missing = [p for p in points if p.key(policy.dedup_precision) not in cache]

    def describe(point: GeoPoint) -> str:
        if token is not None:
            token.check()
        try:
            return geocoder.describe(point)
        except ProviderError as exc:
            logger.warning("reverse geocoding failed for %s: %s", point, exc)
            return ""

    labels = pool.map_slots(describe, missing, token)
    for point, label in zip(missing, labels):
        if label:
            cache[point.key(policy.dedup_precision)] = label

    def lookup(point: GeoPoint) -> str:
        return cache.get(point.key(policy.dedup_precision), "")

    with_addresses = [replace(c, address=lookup(c.drop_point)) for c in candidates]
    return with_addresses, replace(route_set, destination_label=lookup(destination))
