"""
Geospatial helpers.

A tiny geometry layer so search and store modules can do distance calculations
without pulling in heavier GIS dependencies.

Inputs outside the valid coordinate range are clamped (latitude to [-90, 90],
longitude to [-180, 180]) rather than rejected: distance is a pure function with
no error conditions.

`GeoPoint` here is a plain dataclass for map-side coordinates (pointer events,
distance helpers) that are not range-validated. API payloads and search results
use the validated pydantic `odbfinder.domain.models.GeoPoint`; a drag that
overshoots the map edge still produces a usable rectangle.
"""

from __future__ import annotations

from dataclasses import dataclass
from math import atan2, cos, radians, sin, sqrt

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class GeoPoint:
    """A latitude/longitude pair in decimal degrees."""

    lat: float
    lon: float


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, float(value)))


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometers (haversine, R = 6371 km)."""
    phi1 = radians(_clamp(lat1, -90.0, 90.0))
    phi2 = radians(_clamp(lat2, -90.0, 90.0))
    dphi = phi2 - phi1
    dlmb = radians(_clamp(lon2, -180.0, 180.0) - _clamp(lon1, -180.0, 180.0))

    a = sin(dphi / 2) ** 2 + cos(phi1) * cos(phi2) * sin(dlmb / 2) ** 2
    # Rounding can push `a` a hair outside [0, 1] for antipodal points.
    a = _clamp(a, 0.0, 1.0)
    c = 2 * atan2(sqrt(a), sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def haversine_m(a: GeoPoint, b: GeoPoint) -> float:
    """Compute great-circle distance in meters between two points."""
    return haversine_km(a.lat, a.lon, b.lat, b.lon) * 1000.0
