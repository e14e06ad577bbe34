"""
Lightweight spatial indexing (grid bucket) for lat/lon points.

Used by the file-backed record store so nearby queries avoid a full O(N) haversine
scan once the location table grows to thousands of records.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from odbfinder.core.geo import haversine_km

T = TypeVar("T")

_KM_PER_DEG_LAT = 110.540
_KM_PER_DEG_LON_EQUATOR = 111.320


def _to_xy_km(lat: float, lon: float, *, lat0_deg: float) -> tuple[float, float]:
    # Equirectangular projection around a reference latitude (good enough for country-scale bucketing).
    lat0 = math.radians(float(lat0_deg))
    x = float(lon) * _KM_PER_DEG_LON_EQUATOR * math.cos(lat0)
    y = float(lat) * _KM_PER_DEG_LAT
    return x, y


@dataclass(frozen=True)
class _Entry(Generic[T]):
    seq: int
    item: T
    lat: float
    lon: float


class SpatialGridIndex(Generic[T]):
    def __init__(
        self,
        items: list[T],
        *,
        get_latlon: Callable[[T], tuple[float, float]],
        cell_size_km: float = 25.0,
        lat0_deg: float = 26.8,
    ):
        if float(cell_size_km) <= 0:
            raise ValueError("cell_size_km must be > 0")
        self._cell_size_km = float(cell_size_km)
        self._lat0_deg = float(lat0_deg)
        self._cells: dict[tuple[int, int], list[_Entry[T]]] = {}
        self._entries: list[_Entry[T]] = []

        for seq, it in enumerate(items):
            lat, lon = get_latlon(it)
            e = _Entry(seq=seq, item=it, lat=float(lat), lon=float(lon))
            self._entries.append(e)
            x_km, y_km = _to_xy_km(e.lat, e.lon, lat0_deg=self._lat0_deg)
            self._cells.setdefault(self._cell_key_xy(x_km, y_km), []).append(e)

    def __len__(self) -> int:
        return len(self._entries)

    def _cell_key_xy(self, x_km: float, y_km: float) -> tuple[int, int]:
        return (int(math.floor(x_km / self._cell_size_km)), int(math.floor(y_km / self._cell_size_km)))

    def query_within(self, *, lat: float, lon: float, radius_km: float) -> list[tuple[T, float]]:
        """Return `(item, distance_km)` pairs within `radius_km`, in insertion order."""
        r = float(radius_km)
        if r <= 0:
            return []
        x0, y0 = _to_xy_km(float(lat), float(lon), lat0_deg=self._lat0_deg)
        cx, cy = self._cell_key_xy(x0, y0)

        # Projected east-west distances are off by cos(lat0)/cos(lat); widen the x scan to cover it.
        band_lat = min(89.9, abs(float(lat)) + r / _KM_PER_DEG_LAT)
        stretch = max(1.0, math.cos(math.radians(self._lat0_deg)) / max(0.01, math.cos(math.radians(band_lat))))
        steps_x = int(math.ceil(r * stretch / self._cell_size_km)) + 1
        steps_y = int(math.ceil(r / self._cell_size_km)) + 1

        # Wide radii span more grid cells than are occupied; walk the entries instead.
        if (2 * steps_x + 1) * (2 * steps_y + 1) > len(self._cells):
            candidates: list[_Entry[T]] = self._entries
        else:
            candidates = [
                e
                for dx in range(-steps_x, steps_x + 1)
                for dy in range(-steps_y, steps_y + 1)
                for e in self._cells.get((cx + dx, cy + dy), ())
            ]

        hits: list[tuple[int, T, float]] = []
        for e in candidates:
            d = haversine_km(float(lat), float(lon), e.lat, e.lon)
            if d <= r:
                hits.append((e.seq, e.item, d))

        hits.sort(key=lambda h: h[0])
        return [(item, d) for _, item, d in hits]

    def all_with_distance(self, *, lat: float, lon: float) -> list[tuple[T, float]]:
        """Unbounded variant: every entry with its distance, in insertion order."""
        return [(e.item, haversine_km(float(lat), float(lon), e.lat, e.lon)) for e in self._entries]
