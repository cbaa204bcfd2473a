#Purpose: The Mapbox "adapter/client".
#Sole responsibility: talk to Mapbox Directions + Geocoding over HTTP and return normalized outputs.
#Encapsulates Mapbox-specific details:
#coordinate formatting (lng,lat)
#URL construction (/directions/v5, /geocoding/v5)
#timeouts/retries/error handling
#parsing response JSON into TravelStats / short address labels
#It should not contain drop-off rules, pricing or scoring.

import logging
import os
import time
from typing import Any, Dict, List, Optional, Sequence

import requests
from dotenv import load_dotenv

from .errors import NoRouteFound, ProviderUnavailable
from .models import GeoPoint, Profile, TravelStats

# Read Mapbox settings from environment
# Example in .env:
# MAPBOX_TOKEN=pk.xxxxx
# MAPBOX_BASE_URL=https://api.mapbox.com
load_dotenv()
BASE_URL = os.getenv("MAPBOX_BASE_URL", "https://api.mapbox.com")
MAPBOX_TOKEN = os.getenv("MAPBOX_TOKEN")

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = (429, 500, 502, 503, 504)
# Mapbox answers these codes when the request was fine but nothing connects the points
NO_ROUTE_CODES = ("NoRoute", "NoSegment")


class MapboxClient:
    """
    Mapbox Adapter / Client

    Sole responsibility:
    - Talk to Mapbox via HTTP
    - Convert internal GeoPoint -> Mapbox "lng,lat"
    - Return normalized outputs, raising ProviderUnavailable / NoRouteFound
    """
    def __init__(
        self,
        token: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 5,
        retries: int = 2,
        backoff_s: float = 0.3,
    ):
        self.token = token or MAPBOX_TOKEN
        self.base_url = (base_url or BASE_URL or "").rstrip("/")
        self.timeout = timeout #the time to wait for a response from Mapbox before giving up
        self.retries = retries #extra attempts on 429/5xx and connection errors
        self.backoff_s = backoff_s

        if not self.token:
            raise ValueError("Mapbox token not set. Please set MAPBOX_TOKEN in the .env file.")

    #----------------
    # Internal helpers: coordinate formatting, HTTP with retry/backoff
    #----------------
    @staticmethod
    def format_coordinates(points: Sequence[GeoPoint]) -> str:
        """Convert points to Mapbox format 'lng,lat;lng,lat;...'"""
        return ";".join(f"{p.lng},{p.lat}" for p in points)

    def _get_json(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        params = dict(params, access_token=self.token)
        backoff = self.backoff_s
        last_error = "no attempt made"

        for attempt in range(1, self.retries + 2):
            try:
                response = requests.get(url, params=params, timeout=self.timeout)
            except requests.RequestException as exc:
                last_error = f"request failed: {exc}"
                logger.warning("Mapbox %s (attempt %s)", last_error, attempt)
            else:
                if response.status_code not in RETRYABLE_STATUSES:
                    try:
                        data = response.json()
                    except ValueError:
                        raise ProviderUnavailable(
                            f"Mapbox returned non-JSON payload (HTTP {response.status_code})"
                        )
                    if not isinstance(data, dict):
                        raise ProviderUnavailable("Mapbox returned an unexpected payload")
                    if data.get("code") in NO_ROUTE_CODES:
                        raise NoRouteFound(data.get("message") or data["code"])
                    if response.status_code != 200:
                        raise ProviderUnavailable(
                            f"Mapbox HTTP {response.status_code}: {data.get('message', 'Unknown error')}"
                        )
                    return data
                last_error = f"upstream status {response.status_code}"
                logger.warning("Mapbox %s (attempt %s)", last_error, attempt)

            if attempt <= self.retries:
                time.sleep(backoff)
                backoff *= 2.0

        raise ProviderUnavailable(f"Mapbox unavailable: {last_error}")

    #----------------
    # Public methods: directions, reverse geocoding
    #----------------
    def route(
        self,
        points: Sequence[GeoPoint],
        profile: Profile = Profile.DRIVING_TRAFFIC,
        alternatives: bool = False,
    ) -> List[TravelStats]:
        """
        calls the Mapbox Directions endpoint for the ordered points and
        returns every route found (the first is Mapbox's preferred one).

        Raises:
            ProviderUnavailable: network/HTTP failure
            NoRouteFound: the provider answered but found no route
        """
        if len(points) < 2:
            raise ValueError("At least two points are required to compute a route.")

        coordinates = self.format_coordinates(points)
        url = f"{self.base_url}/directions/v5/mapbox/{Profile(profile).value}/{coordinates}"

        data = self._get_json(
            url,
            {
                "alternatives": "true" if alternatives else "false",
                "geometries": "geojson",
                "overview": "full",
                "annotations": "duration,distance",
            },
        )
        return parse_routes(data)

    def describe(self, point: GeoPoint) -> str:
        """
        Short human-readable label for a point (best effort, may be "").
        """
        url = f"{self.base_url}/geocoding/v5/mapbox.places/{point.lng},{point.lat}.json"
        data = self._get_json(url, {"limit": 1, "types": "address,poi"})
        features = data.get("features") or []
        if not features:
            return ""
        return short_label(features[0])


def parse_routes(data: Dict[str, Any]) -> List[TravelStats]:
    if data.get("code", "Ok") != "Ok":
        raise ProviderUnavailable(f"Mapbox error: {data.get('message', data.get('code'))}")

    routes = data.get("routes") or []
    if not routes:
        raise NoRouteFound("Mapbox returned zero routes")

    #Normalize output to internal format
    out: List[TravelStats] = []
    for route in routes:
        coords = (route.get("geometry") or {}).get("coordinates") or []
        out.append(
            TravelStats(
                distance_m=float(route.get("distance") or 0.0),
                duration_s=float(route.get("duration") or 0.0),
                geometry=tuple(GeoPoint.from_lnglat(c) for c in coords),
            )
        )
    return out


def short_label(feature: Dict[str, Any]) -> str:
    place = str(feature.get("place_name") or "")
    first = place.split(",")[0].strip()
    house_number = (feature.get("properties") or {}).get("address")
    if house_number and first and not any(ch.isdigit() for ch in first):
        return f"{first} · {house_number}"
    return first or str(feature.get("text") or "") or place
