#Purpose: Tail sampling of a route's geometry.
#Takes the trailing `tail_fraction` of the polyline (minus the exact final vertex,
#which is the destination itself) and picks `count` evenly spaced vertices.
#Points whose rounded coordinates coincide are collapsed (first one wins).
#Each call only reflects the route snapshot passed in; a new route means re-sampling.

import math
from typing import List, Tuple

from routing.models import GeoPoint, Route


def sample_tail(
    route: Route,
    count: int = 16,
    tail_fraction: float = 0.22,
    precision: int = 6,
) -> Tuple[GeoPoint, ...]:
    coords = route.geometry
    n = len(coords)
    if n == 0 or count < 1:
        return ()

    start = max(0, math.floor(n * (1 - tail_fraction)) - 1)
    tail = coords[start:n - 1]  # exclude exact final point
    if not tail:
        return ()

    picked: List[GeoPoint] = []
    last = len(tail) - 1
    for i in range(1, count + 1):
        t = i / (count + 1)
        picked.append(tail[min(last, math.floor(t * last))])

    # de-dupe close neighbours
    seen = set()
    unique: List[GeoPoint] = []
    for point in picked:
        key = point.key(precision)
        if key in seen:
            continue
        seen.add(key)
        unique.append(point)
    return tuple(unique)
