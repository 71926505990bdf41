from __future__ import annotations
from math import radians, sin, cos, asin, sqrt, isfinite
from numbers import Real
from typing import NamedTuple

import numpy as np

from .errors import InvalidInput

EARTH_RADIUS_MILES = 3958.761
MILES_PER_DEGREE_LAT = 69.0
MIN_COS_LAT = 1e-6


class BoundingBox(NamedTuple):
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    def contains(self, lat: float, lon: float) -> bool:
        return self.min_lat <= lat <= self.max_lat and self.min_lon <= lon <= self.max_lon


def _require_finite(**values) -> None:
    for name, v in values.items():
        if isinstance(v, bool) or not isinstance(v, (Real, np.floating, np.integer)):
            raise InvalidInput(f"{name} must be a number, got {v!r}")
        if not isfinite(float(v)):
            raise InvalidInput(f"{name} must be finite, got {v!r}")


def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    _require_finite(lat1=lat1, lon1=lon1, lat2=lat2, lon2=lon2)
    dphi = radians(lat2 - lat1)
    dlmb = radians(lon2 - lon1)
    phi1 = radians(lat1); phi2 = radians(lat2)
    a = sin(dphi/2)**2 + cos(phi1)*cos(phi2)*sin(dlmb/2)**2
    # rounding can push a a hair past 1.0 for antipodal points
    return 2 * EARTH_RADIUS_MILES * asin(sqrt(min(1.0, max(0.0, a))))


def haversine_miles_many(lat: float, lon: float, lats: np.ndarray, lons: np.ndarray) -> np.ndarray:
    """Vectorized haversine from one point to arrays of points. NaN in, NaN out."""
    _require_finite(lat=lat, lon=lon)
    phi1 = np.radians(lat)
    phi2 = np.radians(np.asarray(lats, dtype=float))
    dphi = phi2 - phi1
    dlmb = np.radians(np.asarray(lons, dtype=float) - lon)
    a = np.sin(dphi / 2) ** 2 + np.cos(phi1) * np.cos(phi2) * np.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_MILES * np.arcsin(np.sqrt(np.clip(a, 0.0, 1.0)))


def bounding_box_from_radius(lat: float, lon: float, miles: float) -> BoundingBox:
    """
    Coarse lat/lon box around a point, used as a query pre-filter.
    1 deg latitude ~ 69 miles; the longitude span widens by 1/cos(lat),
    with cos clamped at MIN_COS_LAT so the poles do not blow up.
    """
    _require_finite(lat=lat, lon=lon, miles=miles)
    if miles < 0:
        raise InvalidInput(f"miles must be non-negative, got {miles!r}")
    lat_delta = miles / MILES_PER_DEGREE_LAT
    lon_delta = miles / (max(abs(cos(radians(lat))), MIN_COS_LAT) * MILES_PER_DEGREE_LAT)
    return BoundingBox(
        min_lat=lat - lat_delta,
        max_lat=lat + lat_delta,
        min_lon=lon - lon_delta,
        max_lon=lon + lon_delta,
    )
