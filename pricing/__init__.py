#Marks pricing as a package.
#Re-exports the fare model, geofence penalty and time-of-day factor so callers
#can import from pricing without knowing internal file names.
#No business logic.

from .fare_model import BandPolicy, FareQuote, Ratecard, estimate, quick_estimate, savings
from .geofence import GeoFence, geofence_penalty
from .time_of_day import TimeOfDayPolicy, time_of_day_factor

__all__ = [
    "BandPolicy",
    "FareQuote",
    "Ratecard",
    "estimate",
    "quick_estimate",
    "savings",
    "GeoFence",
    "geofence_penalty",
    "TimeOfDayPolicy",
    "time_of_day_factor",
]
