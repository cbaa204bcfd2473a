import math
from dataclasses import replace
from datetime import datetime

import pytest

from dropoff.engine import baseline_quote, discover, request_surge
from dropoff.fanout import CancellationToken, DiscoveryCancelled
from dropoff.models import DiscoveryRequest, Tier
from dropoff.policy import ConfigurationInvalid, DiscoveryPolicy
from routing.errors import NoRouteFound, ProviderUnavailable
from routing.models import GeoPoint, Profile, RouteClass

from mock_providers import DESTINATION, PICKUP, MockDirections, MockGeocoder, straight_route, vertex


@pytest.fixture
def policy():
    # no geofences, no address lookups: fares depend on distance/time only
    return DiscoveryPolicy(lookup_addresses=False)


@pytest.fixture
def request_400m():
    return DiscoveryRequest(pickup=PICKUP, destination=DESTINATION, walk_radius_m=400.0)


def keys(result):
    return [c.drop_point.key() for c in result.candidates]


def test_strict_tier_satisfies_request(policy, request_400m):
    """
    Drives to the tail points are 20% shorter than the road: strict accepts
    and the engine never relaxes.
    """
    directions = MockDirections([straight_route()], drive_scale=0.8)
    result = discover(request_400m, policy, directions)

    assert result.tiers_run == (Tier.STRICT,)
    assert len(result.candidates) == 2
    assert all(c.tier == Tier.STRICT for c in result.candidates)

    # the earliest in-radius tail point is the cheapest drive
    assert keys(result) == [vertex(93).key(), vertex(95).key()]
    assert result.candidates[0].savings_usd >= result.candidates[1].savings_usd
    for c in result.candidates:
        assert c.savings_usd >= 0.50
        assert c.fare.center < result.baseline_fare.center


def test_relaxed_tier_used_when_strict_finds_nothing(policy, request_400m):
    directions = MockDirections([straight_route()], drive_scale=1.0)
    result = discover(request_400m, policy, directions)

    assert result.tiers_run == (Tier.STRICT, Tier.RELAXED)
    assert [c.tier for c in result.candidates] == [Tier.RELAXED, Tier.RELAXED]
    assert keys(result) == [vertex(93).key(), vertex(95).key()]
    assert result.baseline_fare.center == pytest.approx(11.75)


def test_closest_fallback_when_every_drive_is_longer(policy, request_400m):
    directions = MockDirections([straight_route()], drive_scale=1.2)
    result = discover(request_400m, policy, directions)

    assert result.tiers_run == (Tier.STRICT, Tier.RELAXED, Tier.CLOSEST_FALLBACK)
    assert [c.tier for c in result.candidates] == [Tier.CLOSEST_FALLBACK] * 2
    # ordered by proximity to the destination
    assert keys(result) == [vertex(97).key(), vertex(96).key()]
    assert result.candidates[0].radial_m < result.candidates[1].radial_m
    assert all(c.savings_usd == 0.0 for c in result.candidates)


def test_fallback_only_fills_the_gap(policy, request_400m):
    """
    Only one relaxed candidate exists; the fallback adds exactly one more,
    ranked after the one with real savings.
    """
    directions = MockDirections([straight_route()], drive_scale=1.03)
    result = discover(request_400m, policy, directions)

    assert result.tiers_run == (Tier.STRICT, Tier.RELAXED, Tier.CLOSEST_FALLBACK)
    assert [c.tier for c in result.candidates] == [Tier.RELAXED, Tier.CLOSEST_FALLBACK]
    assert keys(result) == [vertex(93).key(), vertex(97).key()]
    assert result.candidates[0].savings_usd > 0


def test_points_are_measured_once_across_tiers(policy, request_400m):
    directions = MockDirections([straight_route()], drive_scale=1.2)
    discover(request_400m, policy, directions)

    # 4 tail samples lie inside the 400 m radius; 3 tiers ran
    assert directions.count(Profile.WALKING) == 4
    assert directions.count(Profile.DRIVING_TRAFFIC) == 4


def test_duplicate_points_from_two_routes_collapse(policy, request_400m):
    """Two regular routes over the same road sample the same points."""
    slow = straight_route(distance_m=5800.0, duration_s=600.0)
    directions = MockDirections([straight_route(), slow], drive_scale=1.0)
    result = discover(request_400m, policy, directions)

    assert len(result.routes.regular) == 2
    found = keys(result)
    assert len(found) == len(set(found)) == 2
    assert directions.count(Profile.WALKING) == 4


def test_total_cap_applies_across_routes(request_400m):
    policy = DiscoveryPolicy(lookup_addresses=False, per_route_cap=4, min_suggestions=4)
    parallel = straight_route(distance_m=5650.0, duration_s=570.0, lng_shift=0.0005)
    directions = MockDirections([straight_route(), parallel], drive_scale=0.8)
    result = discover(request_400m, policy, directions)

    assert len(result.candidates) == policy.max_suggestions
    savings = [c.savings_usd for c in result.candidates]
    assert savings == sorted(savings, reverse=True)


def test_per_route_cap(policy, request_400m):
    directions = MockDirections([straight_route()], drive_scale=0.8)
    result = discover(request_400m, replace(policy, min_suggestions=1), directions)

    by_route = {}
    for c in result.candidates:
        by_route[c.source_route_label] = by_route.get(c.source_route_label, 0) + 1
    assert max(by_route.values()) <= policy.per_route_cap


def test_hidden_alternates_are_not_sampled(request_400m):
    policy = DiscoveryPolicy(lookup_addresses=False, regular_max=1)
    parallel = straight_route(distance_m=5650.0, duration_s=570.0, lng_shift=0.0005)
    directions = MockDirections([straight_route(), parallel], drive_scale=0.8)

    regular_only = replace(request_400m, visible_classes=(RouteClass.REGULAR,))
    result = discover(regular_only, policy, directions)

    assert len(result.routes.alternates) == 1
    assert {c.source_route_label for c in result.candidates} == {"Regular A"}


def test_wider_radius_never_loses_candidates(policy):
    directions = MockDirections([straight_route()], drive_scale=1.2)
    narrow = discover(DiscoveryRequest(PICKUP, DESTINATION, 250.0), policy, directions)
    wide = discover(DiscoveryRequest(PICKUP, DESTINATION, 400.0), policy, directions)

    assert len(wide.candidates) >= len(narrow.candidates)


@pytest.mark.parametrize("failure", [ProviderUnavailable("down"), NoRouteFound("nothing")])
def test_route_failure_short_circuits(policy, request_400m, failure):
    directions = MockDirections([straight_route()], fail_alternatives=failure)
    result = discover(request_400m, policy, directions)

    assert not result.has_suggestions
    assert result.routes.is_empty
    assert result.tiers_run == ()
    # nothing after the failed alternatives query
    assert len(directions.calls) == 1


def test_nothing_inside_a_tiny_radius(policy):
    directions = MockDirections([straight_route()])
    result = discover(DiscoveryRequest(PICKUP, DESTINATION, 30.0), policy, directions)

    assert result.candidates == ()
    assert result.tiers_run == (Tier.STRICT, Tier.RELAXED, Tier.CLOSEST_FALLBACK)
    assert directions.count(Profile.WALKING) == 0


@pytest.mark.parametrize(
    "pickup,radius",
    [
        (GeoPoint(float("nan"), -97.70), 400.0),
        (GeoPoint(95.0, -97.70), 400.0),
        (PICKUP, 0.0),
        (PICKUP, -10.0),
        (PICKUP, math.inf),
    ],
)
def test_invalid_request_rejected_before_any_call(policy, pickup, radius):
    directions = MockDirections([straight_route()])
    with pytest.raises(ConfigurationInvalid):
        discover(DiscoveryRequest(pickup, DESTINATION, radius), policy, directions)
    assert directions.calls == []


def test_invalid_policy_rejected_before_any_call(request_400m):
    directions = MockDirections([straight_route()])
    with pytest.raises(ConfigurationInvalid):
        discover(request_400m, DiscoveryPolicy(sample_count=0), directions)
    assert directions.calls == []


def test_cancelled_token_stops_discovery(policy, request_400m):
    token = CancellationToken(generation=1)
    token.cancel()
    directions = MockDirections([straight_route()])

    with pytest.raises(DiscoveryCancelled):
        discover(request_400m, policy, directions, token=token)
    assert directions.calls == []


def test_cancel_mid_fanout(policy, request_400m):
    token = CancellationToken(generation=1)
    directions = MockDirections([straight_route()], drive_scale=0.8)
    directions.on_walk = token.cancel

    with pytest.raises(DiscoveryCancelled):
        discover(request_400m, policy, directions, token=token)


def test_addresses_attached_and_cached(request_400m):
    policy = DiscoveryPolicy()
    directions = MockDirections([straight_route()], drive_scale=0.8)
    geocoder = MockGeocoder()
    cache = {}

    result = discover(request_400m, policy, directions, geocoder, address_cache=cache)
    assert all(c.address.endswith("Congress Ave") for c in result.candidates)
    assert result.routes.destination_label == "30.3000 Congress Ave"
    first_lookups = len(geocoder.calls)
    assert first_lookups == 1 + len(result.candidates)

    discover(request_400m, policy, directions, geocoder, address_cache=cache)
    assert len(geocoder.calls) == first_lookups


def test_geocoder_failure_leaves_addresses_empty(request_400m):
    directions = MockDirections([straight_route()], drive_scale=0.8)
    result = discover(request_400m, DiscoveryPolicy(), directions, MockGeocoder(fail=True))

    assert result.has_suggestions
    assert all(c.address == "" for c in result.candidates)
    assert result.routes.destination_label == ""


def test_depart_time_raises_surge(policy, request_400m):
    directions = MockDirections([straight_route()])
    rush = replace(request_400m, depart_at=datetime(2024, 3, 4, 8, 0))  # Monday 08:00
    route_set = discover(request_400m, policy, directions).routes

    assert request_surge(route_set, request_400m, policy) == pytest.approx(1.0)
    assert request_surge(route_set, rush, policy) == pytest.approx(1.25)

    normal = baseline_quote(route_set, DESTINATION, 1.0, policy)
    busy = baseline_quote(route_set, DESTINATION, 1.25, policy)
    assert busy.center > normal.center


def test_empty_walking_answer_falls_back_to_straight_line(policy, request_400m):
    directions = MockDirections([straight_route()], drive_scale=0.8, empty_profiles=(Profile.WALKING,))
    result = discover(request_400m, policy, directions)

    assert result.tiers_run == (Tier.STRICT,)
    assert len(result.candidates) == 2
    assert all(c.walk_estimated for c in result.candidates)


def test_empty_free_flow_answer_keeps_minimum_surge(policy, request_400m):
    directions = MockDirections(
        [straight_route()], free_flow_s=300.0, drive_scale=0.8, empty_profiles=(Profile.DRIVING,)
    )
    result = discover(request_400m, policy, directions)

    assert result.surge == policy.surge_min
    assert len(result.candidates) == 2


def test_empty_driving_answer_drops_points(policy, request_400m):
    directions = MockDirections([straight_route()], empty_profiles=(Profile.DRIVING_TRAFFIC,))
    result = discover(request_400m, policy, directions)

    assert result.candidates == ()
    assert result.tiers_run == (Tier.STRICT, Tier.RELAXED, Tier.CLOSEST_FALLBACK)
    assert len(result.routes.regular) == 1


STRICT_TIGHTENING = {
    "distance_factor": [0.88, 0.77, 0.765, 0.76, 0.75, 0.70],
    "time_factor": [0.88, 0.77, 0.765, 0.76, 0.75, 0.70],
    "price_improve_pct": [0.08, 0.165, 0.17, 0.175, 0.18, 0.25],
    "min_savings_usd": [0.50, 1.95, 2.00, 2.10, 2.20, 3.00],
}


@pytest.mark.parametrize("knob", sorted(STRICT_TIGHTENING))
def test_tightening_strict_never_adds_strict_candidates(request_400m, knob):
    counts = []
    for value in STRICT_TIGHTENING[knob]:
        strict = replace(DiscoveryPolicy().strict, **{knob: value})
        policy = DiscoveryPolicy(
            lookup_addresses=False, strict=strict, per_route_cap=4, min_suggestions=4
        )
        directions = MockDirections([straight_route()], drive_scale=0.8)
        result = discover(request_400m, policy, directions)
        counts.append(sum(1 for c in result.candidates if c.tier == Tier.STRICT))

    assert counts[0] == 4
    assert counts[-1] == 0
    assert counts == sorted(counts, reverse=True)
