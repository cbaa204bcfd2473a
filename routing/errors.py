#Purpose: Error taxonomy for every external provider call.
#ProviderUnavailable -> network/HTTP failure (callers fall back or drop the point)
#NoRouteFound -> provider answered fine but had zero routes
#Both are recoverable; nothing here should ever take the process down.


class ProviderError(Exception):
    """Base class for directions / geocoding / places provider errors."""
    pass


class ProviderUnavailable(ProviderError):
    """Network failure, timeout, non-2xx status or unreadable payload."""
    pass


class NoRouteFound(ProviderError):
    """The provider responded but returned zero routes."""
    pass
