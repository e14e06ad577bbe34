"""
Bounding-box filter for a drawn map rectangle.

Known limitation: longitudes are compared numerically, so a rectangle dragged
across the ±180° meridian selects the complementary band.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence, TypeVar

from odbfinder.domain.models import LocationRecord

R = TypeVar("R", bound=LocationRecord)


class LatLon(Protocol):
    @property
    def lat(self) -> float: ...

    @property
    def lon(self) -> float: ...


@dataclass(frozen=True)
class Rectangle:
    north: float
    south: float
    east: float
    west: float

    @classmethod
    def from_corners(cls, a: LatLon, b: LatLon) -> "Rectangle":
        """Normalize two arbitrary drag corners into north/south/east/west bounds."""
        return cls(
            north=max(float(a.lat), float(b.lat)),
            south=min(float(a.lat), float(b.lat)),
            east=max(float(a.lon), float(b.lon)),
            west=min(float(a.lon), float(b.lon)),
        )

    @property
    def is_degenerate(self) -> bool:
        return self.north == self.south or self.east == self.west

    def contains(self, lat: float, lon: float) -> bool:
        return self.south <= lat <= self.north and self.west <= lon <= self.east


def filter_area(candidates: Sequence[R], rect: Rectangle) -> list[R]:
    """Keep records inside `rect`, preserving input order.

    Distances on distance-augmented records are carried through untouched.
    """
    return [c for c in candidates if rect.contains(c.lat, c.lon)]
