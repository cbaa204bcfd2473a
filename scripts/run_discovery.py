import argparse
import csv
import json
import logging
import os
import sys
from datetime import datetime
from typing import Optional

from dropoff.engine import discover
from dropoff.models import DiscoveryRequest
from dropoff.policy import ConfigurationInvalid, default_policy, lenient_policy, policy_from_dict
from dropoff.summary import summarize_candidate, summarize_route
from pricing.fare_model import estimate
from pricing.geofence import geofence_penalty
from routing.errors import ProviderError
from routing.mapbox_client import MapboxClient
from routing.models import GeoPoint, RouteClass
from routing.places_client import PlacesClient

logger = logging.getLogger("run_discovery")


def parse_point(text: str) -> Optional[GeoPoint]:
    """'30.2672,-97.7431' -> GeoPoint, None when the text is not a coordinate pair."""
    parts = text.split(",")
    if len(parts) != 2:
        return None
    try:
        return GeoPoint(float(parts[0]), float(parts[1]))
    except ValueError:
        return None


def resolve_point(text: str, places: Optional[PlacesClient], proximity: Optional[GeoPoint] = None) -> GeoPoint:
    point = parse_point(text)
    if point is not None:
        return point
    if places is None:
        raise SystemExit(f"'{text}' is not 'lat,lng' and no Foursquare credentials are configured")

    suggestions = places.suggest(text, proximity=proximity, limit=1)
    if not suggestions:
        raise SystemExit(f"No place found for '{text}'")
    print(f"Resolved '{text}' -> {suggestions[0].label} ({suggestions[0].subtitle})")
    return suggestions[0].point


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Find cheaper drop-off points a short walk from the destination.")
    parser.add_argument("--pickup", required=True, help="'lat,lng' or a place name")
    parser.add_argument("--dest", required=True, help="'lat,lng' or a place name")
    parser.add_argument("--radius", type=float, default=None, help="max walk to the destination, meters")
    parser.add_argument("--policy", default=None, help="JSON file with policy overrides")
    parser.add_argument("--lenient", action="store_true", help="start from the lenient policy preset")
    parser.add_argument("--depart", default=None, help="departure time, ISO format (time-of-day pricing)")
    parser.add_argument("--regular-only", action="store_true", help="sample regular routes only")
    parser.add_argument("--csv", default=None, help="write the suggestions to this CSV file")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def run(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # 1. Configure
    policy = lenient_policy() if args.lenient else default_policy()
    if args.policy:
        with open(args.policy, "r") as file:
            overrides = json.load(file)
        try:
            policy = policy_from_dict(overrides, base=policy)
        except ConfigurationInvalid as exc:
            print(f"[INVALID] {exc}")
            return 2

    mapbox = MapboxClient()
    try:
        places = PlacesClient()
    except ValueError:
        places = None

    visible = (RouteClass.REGULAR,) if args.regular_only else (RouteClass.REGULAR, RouteClass.ALTERNATE)

    # 2. Resolve inputs and discover
    print("=== DROP-OFF DISCOVERY ===")
    try:
        pickup = resolve_point(args.pickup, places)
        destination = resolve_point(args.dest, places, proximity=pickup)
        request = DiscoveryRequest(
            pickup=pickup,
            destination=destination,
            walk_radius_m=args.radius if args.radius is not None else policy.default_walk_radius_m,
            visible_classes=visible,
            depart_at=datetime.fromisoformat(args.depart) if args.depart else None,
        )
        result = discover(request, policy, mapbox, geocoder=mapbox)
    except ValueError as exc:  # ConfigurationInvalid or a malformed --depart
        print(f"[INVALID] {exc}")
        return 2
    except ProviderError as exc:
        print(f"[PROVIDER] {exc}")
        return 1

    # 3. Report
    print(f"\n--- Routes to {result.routes.destination_label or destination} (surge {result.surge:.2f}) ---")
    penalty = geofence_penalty(destination, policy.geofences)
    for route in result.routes.all_routes():
        fare = estimate(route.distance_m, route.duration_s, surge=result.surge, penalty_usd=penalty,
                        ratecard=policy.ratecard, band=policy.band)
        row = summarize_route(route, fare)
        print(f"{row['label']:<12} up to ${row['price_high']:.2f}  {row['miles']} mi  {row['minutes']} min")

    if not result.has_suggestions:
        print("\nNo cheaper drop-off found within walking distance.")
        return 0

    print(f"\n--- Suggestions (tiers run: {', '.join(t.value for t in result.tiers_run)}) ---")
    rows = [
        summarize_candidate(c, result.baseline_fare, pickup=pickup, walk_speed_mps=policy.walk_speed_mps)
        for c in result.candidates
    ]
    for row in rows:
        saved = f"save ${row['savings']:.2f}" if row["savings"] is not None else "no saving"
        print(
            f"[{row['tier']}] {row['address'] or (row['lat'], row['lng'])}: from ${row['price_low']:.2f}, "
            f"{saved}, walk {row['walk_minutes']} min ({row['walk_feet']} ft) via {row['route']}"
        )

    if args.csv:
        output_path = os.path.abspath(args.csv)
        with open(output_path, "w", newline="") as file:
            writer = csv.DictWriter(file, fieldnames=list(rows[0].keys()))
            writer.writeheader()
            writer.writerows(rows)
        print(f"\nResults written to '{output_path}'.")
    return 0


if __name__ == "__main__":
    sys.exit(run())
