#Purpose: Route computation for downstream use.
#Builds the route set for one pickup/destination pair:
#regular routes (baseline fare comparison) + alternates (map only, still sampled for drop-offs)
#and the surge proxy (traffic-aware / free-flow duration, clamped).
#Optionally synthesizes via-point alternates when the provider returns too few.
#Failure of the alternatives query -> empty RouteSet; the caller short-circuits to "no suggestions".

import logging
from typing import List, Optional, Sequence

from .errors import NoRouteFound, ProviderError
from .geometry import bearing, offset, path_overlap_pct
from .models import GeoPoint, Profile, Route, RouteClass, RouteSet, TravelStats

logger = logging.getLogger(__name__)


def build_route_set(
    directions,
    pickup: GeoPoint,
    destination: GeoPoint,
    policy,
    pool=None,
    token=None,
) -> RouteSet:
    """
    Args:
        directions: provider with .route(points, profile, alternatives)
        pickup / destination: request endpoints
        policy: DiscoveryPolicy (caps, surge clamp, synthetic alternate knobs)
        pool: optional BoundedFanout used for the via-point queries
        token: optional CancellationToken checked before every provider call

    Returns:
        RouteSet sorted by duration; empty when the provider failed or found nothing.
    """
    if token is not None:
        token.check()
    try:
        found = directions.route([pickup, destination], Profile.DRIVING_TRAFFIC, alternatives=True)
    except NoRouteFound:
        logger.info("no driving route between %s and %s", pickup, destination)
        return RouteSet()
    except ProviderError as exc:
        logger.warning("route alternatives query failed: %s", exc)
        return RouteSet()

    found = [r for r in found if r.geometry]
    if not found:
        return RouteSet()

    found.sort(key=lambda r: r.duration_s)

    regular = [
        _labelled(r, f"Regular {chr(ord('A') + i)}", RouteClass.REGULAR)
        for i, r in enumerate(found[: policy.regular_max])
    ]
    alternates = [
        _labelled(r, f"Alternate {i + 1}", RouteClass.ALTERNATE)
        for i, r in enumerate(found[policy.regular_max:][: policy.alternate_max])
    ]

    if policy.synthesize_alternates and len(alternates) < policy.alternate_max:
        alternates = synthesize_alternates(
            directions, pickup, destination, regular[0], alternates, policy, pool=pool, token=token
        )

    surge = surge_proxy(directions, pickup, destination, found[0].duration_s, policy, token=token)

    logger.info(
        "route set: %s regular, %s alternate, surge %.2f", len(regular), len(alternates), surge
    )
    return RouteSet(regular=tuple(regular), alternates=tuple(alternates), surge=surge)


def surge_proxy(
    directions,
    pickup: GeoPoint,
    destination: GeoPoint,
    traffic_duration_s: float,
    policy,
    token=None,
) -> float:
    """
    Ratio of the fastest traffic-aware duration to the free-flow duration,
    clamped to [surge_min, surge_max]. Free-flow failure -> surge_min.
    """
    if token is not None:
        token.check()
    try:
        free_flow = first_route(directions.route([pickup, destination], Profile.DRIVING, alternatives=False))
    except ProviderError as exc:
        logger.warning("free-flow query failed (%s), surge defaults to %.2f", exc, policy.surge_min)
        return policy.surge_min

    if free_flow.duration_s <= 0:
        return policy.surge_min
    ratio = traffic_duration_s / free_flow.duration_s
    return min(policy.surge_max, max(policy.surge_min, ratio))


def synthesize_alternates(
    directions,
    pickup: GeoPoint,
    destination: GeoPoint,
    base: Route,
    alternates: Sequence[Route],
    policy,
    pool=None,
    token=None,
) -> List[Route]:
    """
    Push the fastest regular route sideways through via points placed
    perpendicular to it, and keep the resulting routes that are genuinely
    different (not too long, not overlapping the base or each other).
    Via queries may run concurrently; acceptance is decided afterwards in a
    fixed order so the result does not depend on response timing.
    """
    accepted = list(alternates)
    vias = via_points(base, policy)
    if not vias:
        return accepted

    def fetch(via: GeoPoint) -> Optional[TravelStats]:
        if token is not None:
            token.check()
        try:
            return first_route(directions.route([pickup, via, destination], Profile.DRIVING_TRAFFIC, alternatives=False))
        except ProviderError as exc:
            logger.debug("via route through %s failed: %s", via, exc)
            return None

    if pool is not None:
        results = pool.map_slots(fetch, vias, token)
    else:
        results = [fetch(via) for via in vias]

    for route in results:
        if len(accepted) >= policy.alternate_max:
            break
        if route is None or not route.geometry:
            continue
        if route.distance_m > base.distance_m * policy.max_detour_ratio:
            continue
        if path_overlap_pct(base.geometry, route.geometry, policy.overlap_tolerance_m) > policy.max_base_overlap:
            continue
        if any(
            path_overlap_pct(alt.geometry, route.geometry, policy.overlap_tolerance_m) > policy.max_alternate_overlap
            for alt in accepted
        ):
            continue
        accepted.append(_labelled(route, f"Alternate {len(accepted) + 1}", RouteClass.ALTERNATE))

    return accepted


def via_points(base: Route, policy) -> List[GeoPoint]:
    coords = base.geometry
    n = len(coords)
    if n < 3:
        return []

    vias: List[GeoPoint] = []
    for fraction in policy.via_fractions:
        idx = min(n - 2, max(1, int(n * fraction)))
        p1, p2 = coords[idx - 1], coords[idx]
        heading = bearing(p1, p2)
        for off in policy.via_offsets_m:
            side = (heading + 90.0) % 360.0 if off > 0 else (heading + 270.0) % 360.0
            vias.append(offset(p2, side, abs(off)))
    return vias


def first_route(found: Sequence[TravelStats]) -> TravelStats:
    """Preferred route of a provider answer; an empty answer counts as NoRouteFound."""
    if not found:
        raise NoRouteFound("provider returned zero routes")
    return found[0]


def _labelled(stats: TravelStats, label: str, route_class: RouteClass) -> Route:
    return Route(
        distance_m=stats.distance_m,
        duration_s=stats.duration_s,
        geometry=stats.geometry,
        label=label,
        route_class=route_class,
    )
