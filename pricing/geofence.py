#Purpose: Zone-based fare surcharges.
#A GeoFence is a bounding box (e.g. downtown core, airport) with a flat USD penalty.
#A point may sit in zero or more fences; penalties add up.
#Static configuration lives in the DiscoveryPolicy geofence table.

from dataclasses import dataclass #for simple data structures
from typing import Iterable

from routing.models import GeoPoint


@dataclass(frozen=True) #immutable zone definition
class GeoFence:
    """
    Bounding box in degrees (south/west/north/east, edges inclusive) and the
    flat surcharge applied to a fare ending inside it.
    """
    name: str
    south: float
    west: float
    north: float
    east: float
    penalty_usd: float

    def contains(self, point: GeoPoint) -> bool:
        return self.south <= point.lat <= self.north and self.west <= point.lng <= self.east

    def validate(self) -> None:
        if self.south > self.north or self.west > self.east:
            raise ValueError(f"geofence {self.name!r} has an inverted bounding box")
        if self.penalty_usd < 0:
            raise ValueError(f"geofence {self.name!r} penalty must be >= 0")


def geofence_penalty(point: GeoPoint, fences: Iterable[GeoFence]) -> float:
    """
    Sum of the penalties of every fence containing `point` (0.0 when none match).
    """
    return sum((fence.penalty_usd for fence in fences if fence.contains(point)), 0.0)
