#Purpose: Distance math and radius filtering for pharmacy lookups.
#Given a query point + pharmacy positions → compute great-circle distances
#Apply the radius threshold, drop inactive pharmacies
#Sort by nearest first
#Output: a list of NearbyPharmacy with distance in metres.

import math
from typing import Iterable, List, Tuple

from .models import LonLat, NearbyPharmacy, Pharmacy

EARTH_RADIUS_M = 6_371_000.0

# metres per degree of latitude, used for the bounding-box prefilter
METERS_PER_DEGREE = 111_320.0


def haversine_meters(origin: LonLat, target: LonLat) -> float:
    """
    Great-circle distance in metres between two (lng, lat) points.
    """
    lng1, lat1 = origin
    lng2, lat2 = target
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = math.sin(d_lat / 2) ** 2 + math.cos(math.radians(lat1)) * \
        math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def bounding_box(center: LonLat, radius_m: float) -> Tuple[float, float, float, float]:
    """
    Returns (min_lng, max_lng, min_lat, max_lat) enclosing the radius.
    Cheap prefilter only; callers must still check the exact distance.
    """
    lng, lat = center
    d_lat = radius_m / METERS_PER_DEGREE
    cos_lat = max(math.cos(math.radians(lat)), 1e-6)
    d_lng = radius_m / (METERS_PER_DEGREE * cos_lat)
    return lng - d_lng, lng + d_lng, lat - d_lat, lat + d_lat


def longitude_ranges(min_lng: float, max_lng: float) -> List[Tuple[float, float]]:
    """
    Splits a longitude window that runs past ±180 into ranges inside [-180, 180].
    A window spanning the whole circle comes back as one range.
    """
    if max_lng - min_lng >= 360:
        return [(-180.0, 180.0)]
    if min_lng < -180:
        return [(min_lng + 360, 180.0), (-180.0, max_lng)]
    if max_lng > 180:
        return [(min_lng, 180.0), (-180.0, max_lng - 360)]
    return [(min_lng, max_lng)]


def nearest_within_radius(
    center: LonLat,
    pharmacies: Iterable[Pharmacy],
    radius_m: float,
) -> List[NearbyPharmacy]:
    """
    Active pharmacies within radius_m of center, nearest first.
    """
    nearby: List[NearbyPharmacy] = []
    for pharmacy in pharmacies:
        if not pharmacy.is_active:
            continue
        distance = haversine_meters(center, pharmacy.location)
        if distance > radius_m:
            continue
        nearby.append(NearbyPharmacy(pharmacy=pharmacy, distance_m=distance))

    # id as tie-breaker keeps the order deterministic
    nearby.sort(key=lambda candidate: (candidate.distance_m, candidate.pharmacy.id))
    return nearby
