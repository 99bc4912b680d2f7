"""
search.py
=========
Doctor discovery helpers: listing filter parsing and great-circle distance
for the "nearby" listing.
"""

import math
from typing import Optional, Tuple

EARTH_RADIUS_KM = 6371.0

EXPERIENCE_BUCKETS = {
    "1-3 years": (1, 3),
    "3-5 years": (3, 5),
    "5-10 years": (5, 10),
    "10+ years": (10, None),
    "15+ years": (15, None),
}

GENDER_LABELS = {
    "Male": "male",
    "Female": "female",
    "Prefer not to say": "others",
    "Any": None,
}


def parse_experience_filter(label: Optional[str]) -> Optional[Tuple[int, Optional[int]]]:
    """'5-10 years' -> (5, 10); '10+ years' -> (10, None); unknown -> None."""
    if not label:
        return None
    return EXPERIENCE_BUCKETS.get(label)


def map_gender_filter(label: Optional[str]) -> Optional[str]:
    """Dropdown label to stored gender. 'Any' disables the filter."""
    if not label:
        return None
    if label in GENDER_LABELS:
        return GENDER_LABELS[label]
    return label.lower()


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def bounding_box(lat: float, lon: float, radius_km: float) -> Tuple[float, float, float, float]:
    """
    (min_lat, max_lat, min_lon, max_lon) enclosing the search circle.
    Used to prefilter rows in SQL before the exact haversine check.
    """
    d_lat = math.degrees(radius_km / EARTH_RADIUS_KM)
    cos_lat = math.cos(math.radians(lat))
    d_lon = 180.0 if cos_lat < 1e-9 else min(180.0, math.degrees(radius_km / (EARTH_RADIUS_KM * cos_lat)))
    return lat - d_lat, lat + d_lat, lon - d_lon, lon + d_lon
