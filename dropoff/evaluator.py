#Purpose: Per-point candidate evaluation.
#Given a sampled point on a route, decide whether it is a usable drop-off under a tier.
#Two halves:
#measure()  -> provider-backed, tier independent (radius, walk, drive); run concurrently
#classify() -> pure, tier dependent (distance/time factors, price gate)
#A rejected point yields None and is simply left out; nothing here fails the batch.

import logging
from typing import Optional

from pricing.fare_model import FareQuote, estimate, savings
from pricing.geofence import geofence_penalty
from routing.errors import ProviderError
from routing.geometry import distance, walk_minutes_for
from routing.models import GeoPoint, Profile, Route
from routing.route_service import first_route

from .fanout import CancellationToken
from .models import Candidate, DiscoveryRequest, DriveStats, PointMeasurement, Tier
from .policy import DiscoveryPolicy

logger = logging.getLogger(__name__)


class CandidateEvaluator:
    """
    Bound to one request: pickup, destination and walk radius never change
    while it lives. Safe to call from several worker threads at once; it
    holds no mutable state.
    """

    def __init__(
        self,
        directions,
        request: DiscoveryRequest,
        policy: DiscoveryPolicy,
        token: Optional[CancellationToken] = None,
    ):
        self.directions = directions #anything with .route(points, profile, alternatives)
        self.request = request
        self.policy = policy
        self.token = token

    @property
    def walk_ceiling_min(self) -> float:
        """Radius-derived walking ceiling including the slack tolerance."""
        base = walk_minutes_for(self.request.walk_radius_m, self.policy.walk_speed_mps)
        return base + self.policy.walk_slack_min

    def radial_distance_ok(self, radial_m: float) -> bool:
        return self.policy.min_separation_m < radial_m <= self.request.walk_radius_m

    #----------------
    # step 1-3: provider-backed measurement
    #----------------
    def measure(self, point: GeoPoint) -> Optional[PointMeasurement]:
        destination = self.request.destination

        # 1) radius / separation gate (no network)
        radial_m = distance(point, destination)
        if not self.radial_distance_ok(radial_m):
            logger.debug("reject %s: radial %.0fm outside radius band", point, radial_m)
            return None

        # 2) walking, point -> destination (pickup independent)
        walk_estimated = False
        self._check_token()
        try:
            walk = first_route(self.directions.route([point, destination], Profile.WALKING, alternatives=False))
            walk_minutes = walk.duration_s / 60.0
        except ProviderError as exc:
            logger.warning("walking stats unavailable for %s (%s), using straight line", point, exc)
            walk_minutes = walk_minutes_for(radial_m, self.policy.walk_speed_mps)
            walk_estimated = True

        if walk_minutes > self.walk_ceiling_min:
            logger.debug(
                "reject %s: walk %.1f min over ceiling %.1f min", point, walk_minutes, self.walk_ceiling_min
            )
            return None

        # 3) driving, pickup -> point. No straight-line fallback: unreliable without routing.
        self._check_token()
        try:
            drive = first_route(
                self.directions.route([self.request.pickup, point], Profile.DRIVING_TRAFFIC, alternatives=False)
            )
        except ProviderError as exc:
            logger.warning("driving stats unavailable for %s (%s), dropping point", point, exc)
            return None

        return PointMeasurement(
            point=point,
            radial_m=radial_m,
            walk_minutes=walk_minutes,
            walk_estimated=walk_estimated,
            drive=DriveStats(distance_m=drive.distance_m, duration_s=drive.duration_s),
        )

    #----------------
    # step 4-5: tier rules (pure)
    #----------------
    def fare_for(self, point: GeoPoint, drive: DriveStats, surge: float) -> FareQuote:
        return estimate(
            drive.distance_m,
            drive.duration_s,
            surge=surge,
            penalty_usd=geofence_penalty(point, self.policy.geofences),
            ratecard=self.policy.ratecard,
            band=self.policy.band,
        )

    def classify(
        self,
        measurement: PointMeasurement,
        route: Route,
        tier: Tier,
        baseline_fare: FareQuote,
        surge: float,
    ) -> Optional[Candidate]:
        drive = measurement.drive
        tier_policy = self.policy.tier_policy(tier)

        # 4) distance / time factors against the source route
        if tier_policy is not None:
            if drive.distance_m > tier_policy.distance_factor * route.distance_m:
                return None
            if drive.duration_s > tier_policy.time_factor * route.duration_s:
                return None

        fare = self.fare_for(measurement.point, drive, surge)

        # 5) price improvement against the cheapest regular route
        if tier_policy is not None and tier_policy.require_price_gate:
            improvement = baseline_fare.center - fare.center
            if improvement < tier_policy.min_savings_usd:
                return None
            if baseline_fare.center <= 0 or improvement / baseline_fare.center < tier_policy.price_improve_pct:
                return None

        return Candidate(
            drop_point=measurement.point,
            walk_minutes=measurement.walk_minutes,
            drive=drive,
            source_route_label=route.label,
            tier=tier,
            fare=fare,
            savings_usd=savings(baseline_fare, fare),
            radial_m=measurement.radial_m,
            walk_estimated=measurement.walk_estimated,
        )

    def evaluate(
        self,
        point: GeoPoint,
        route: Route,
        tier: Tier,
        baseline_fare: FareQuote,
        surge: float,
    ) -> Optional[Candidate]:
        """Full evaluation of one point: measure + classify."""
        measurement = self.measure(point)
        if measurement is None:
            return None
        return self.classify(measurement, route, tier, baseline_fare, surge)

    def _check_token(self) -> None:
        if self.token is not None:
            self.token.check()
