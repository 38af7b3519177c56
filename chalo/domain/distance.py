"""
Distance calculation using the Haversine formula.

Assumption
----------
Bookings that arrive without a client-supplied distance are priced on the
great-circle distance between their stops.  Real road distances come from
the host application's routing collaborator when available.

Complexity: O(1) per call, O(k) for a k-stop route.
"""

import math
from typing import Iterable

EARTH_RADIUS_KM = 6_371.0


def haversine_km(
    lat1: float, lng1: float, lat2: float, lng2: float
) -> float:
    """Return the great-circle distance in **km** between two points."""
    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def route_km(points: Iterable[tuple[float, float]]) -> float:
    """Sum of the hops along an ordered list of ``(lat, lng)`` points."""
    total = 0.0
    previous = None
    for point in points:
        if previous is not None:
            total += haversine_km(previous[0], previous[1], point[0], point[1])
        previous = point
    return total
