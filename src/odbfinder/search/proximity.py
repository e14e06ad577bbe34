from __future__ import annotations

import logging
from typing import Sequence

from odbfinder.core.geo import haversine_km
from odbfinder.domain.models import (
    GeoPoint,
    LocationRecord,
    OriginFailure,
    SearchResult,
    SearchSettings,
    with_distance,
)

"""
Nearest-N search.

Pure function over an already-merged candidate set. It never fails: without an
origin it degrades to the first `max_results` pool records with no distances.
"""

logger = logging.getLogger(__name__)


def nearest(
    candidates: Sequence[LocationRecord],
    settings: SearchSettings,
    origin: GeoPoint | None = None,
    *,
    origin_failure: OriginFailure | None = None,
) -> SearchResult:
    """Rank `candidates` by distance from `origin`, bounded by radius and count."""
    limit = int(settings.max_results)

    if origin is None:
        logger.info(
            "No origin (%s); returning first %d of %d pool records",
            origin_failure or "unavailable",
            limit,
            len(candidates),
        )
        return SearchResult(
            items=[with_distance(c, None) for c in candidates[:limit]],
            distances_valid=False,
            origin=None,
            origin_failure=origin_failure,
        )

    ranked = [with_distance(c, haversine_km(origin.lat, origin.lon, c.lat, c.lon)) for c in candidates]

    radius = float(settings.search_radius_km)
    if radius > 0:
        ranked = [r for r in ranked if r.distance_km <= radius]

    # sorted() is stable: equal distances keep input order.
    ranked = sorted(ranked, key=lambda r: r.distance_km)

    return SearchResult(
        items=ranked[:limit],
        distances_valid=True,
        origin=origin,
        meta={"candidates": len(candidates), "within_radius": len(ranked)},
    )
