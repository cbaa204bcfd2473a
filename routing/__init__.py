#Marks routing as a package.
#Re-exports the value types, provider clients and the route set builder
#so other modules import from routing without knowing internal file names.
#No business logic.

from .errors import NoRouteFound, ProviderError, ProviderUnavailable
from .mapbox_client import MapboxClient
from .models import GeoPoint, PlaceSuggestion, Profile, Route, RouteClass, RouteSet, TravelStats
from .places_client import PlacesClient
from .route_service import build_route_set

__all__ = [
    "GeoPoint",
    "PlaceSuggestion",
    "Profile",
    "Route",
    "RouteClass",
    "RouteSet",
    "TravelStats",
    "MapboxClient",
    "PlacesClient",
    "build_route_set",
    "ProviderError",
    "ProviderUnavailable",
    "NoRouteFound",
]
