#Purpose: Places search adapter (autocomplete for pickup / destination boxes).
#Talks to Foursquare v2: /venues/suggestcompletion + /venues/search, merges both.
#Output: PlaceSuggestion list, deduplicated on label + rounded coordinates.
#It does not rank or filter places beyond the provider's own order.

import logging
import os
from typing import Any, Dict, Iterable, List, Optional

import requests
from dotenv import load_dotenv

from .errors import ProviderUnavailable
from .models import GeoPoint, PlaceSuggestion

# Example in .env:
# FSQ_CLIENT_ID=...
# FSQ_CLIENT_SECRET=...
# FSQ_NEAR_DEFAULT=Austin, TX
load_dotenv()
FSQ_BASE_URL = os.getenv("FSQ_BASE_URL", "https://api.foursquare.com/v2")
FSQ_CLIENT_ID = os.getenv("FSQ_CLIENT_ID", "")
FSQ_CLIENT_SECRET = os.getenv("FSQ_CLIENT_SECRET", "")
FSQ_NEAR_DEFAULT = os.getenv("FSQ_NEAR_DEFAULT", "Austin, TX")
FSQ_API_VERSION = "20231001"

MIN_QUERY_LENGTH = 2
MAX_LIMIT = 15

logger = logging.getLogger(__name__)


class PlacesClient:
    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        base_url: Optional[str] = None,
        near_default: Optional[str] = None,
        timeout: float = 5,
    ):
        self.client_id = client_id or FSQ_CLIENT_ID
        self.client_secret = client_secret or FSQ_CLIENT_SECRET
        self.base_url = (base_url or FSQ_BASE_URL).rstrip("/")
        self.near_default = near_default or FSQ_NEAR_DEFAULT
        self.timeout = timeout

        if not self.client_id or not self.client_secret:
            raise ValueError("Foursquare credentials not set. Please set FSQ_CLIENT_ID / FSQ_CLIENT_SECRET.")

    def suggest(
        self,
        query: str,
        proximity: Optional[GeoPoint] = None,
        limit: int = 10,
    ) -> List[PlaceSuggestion]:
        """
        Merge suggestcompletion (first) and search (second) results.
        Either endpoint may fail on its own; only when both fail is the
        provider reported unavailable.
        """
        query = (query or "").strip()
        if len(query) < MIN_QUERY_LENGTH:
            return []
        limit = max(1, min(MAX_LIMIT, int(limit)))

        params: Dict[str, Any] = {
            "query": query,
            "limit": limit,
            "intent": "browse",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "v": FSQ_API_VERSION,
        }
        if proximity is not None:
            params["ll"] = f"{proximity.lat},{proximity.lng}"
        else:
            params["near"] = self.near_default

        suggested = self._fetch("venues/suggestcompletion", params)
        searched = self._fetch("venues/search", params)
        if suggested is None and searched is None:
            raise ProviderUnavailable("Foursquare suggest and search both failed")

        venues: List[Dict[str, Any]] = []
        if suggested is not None:
            venues.extend((suggested.get("response") or {}).get("minivenues") or [])
        if searched is not None:
            venues.extend((searched.get("response") or {}).get("venues") or [])

        return merge_venues(venues)[:limit]

    def _fetch(self, path: str, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        url = f"{self.base_url}/{path}"
        try:
            response = requests.get(
                url,
                params=params,
                headers={"accept": "application/json"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Foursquare %s failed: %s", path, exc)
            return None


def merge_venues(venues: Iterable[Dict[str, Any]]) -> List[PlaceSuggestion]:
    out: List[PlaceSuggestion] = []
    seen = set()
    for venue in venues:
        name = venue.get("name")
        location = venue.get("location") or {}
        lat = location.get("lat")
        lng = location.get("lng")
        if not name or not isinstance(lat, (int, float)) or not isinstance(lng, (int, float)):
            continue

        key = f"{name}|{lat:.6f},{lng:.6f}"
        if key in seen:
            continue
        seen.add(key)

        out.append(
            PlaceSuggestion(
                label=name,
                point=GeoPoint(lat=float(lat), lng=float(lng)),
                subtitle=_subtitle(location),
            )
        )
    return out


def _subtitle(location: Dict[str, Any]) -> str:
    formatted = location.get("formattedAddress")
    if isinstance(formatted, list):
        return ", ".join(str(part) for part in formatted)
    parts = [location.get("address"), location.get("city"), location.get("state")]
    return ", ".join(str(part) for part in parts if part)
