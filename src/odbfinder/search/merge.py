"""
Identity-based merge of two candidate sets.

The general pool (bulk `get_all`) can be stale or truncated; the priority list
(a targeted `get_nearby` query) is authoritative on conflict so query-relevant
records are never silently dropped.
"""

from __future__ import annotations

from typing import Hashable, Sequence, TypeVar

from odbfinder.domain.models import LocationRecord

R = TypeVar("R", bound=LocationRecord)


def merge_by_identity(pool: Sequence[R], priority: Sequence[R]) -> list[R]:
    """Combine `pool` and `priority` into one list unique by record id.

    - An id present in both inputs takes the priority record, at the pool position.
    - Priority-only records are appended in priority order.
    - Within a single input, a repeated id keeps its first position and last value.
    - Pending records (`id is None`) are never deduplicated.
    """
    merged: dict[Hashable, R] = {}
    for i, rec in enumerate(pool):
        merged[rec.id if rec.id is not None else ("pool", i)] = rec
    for i, rec in enumerate(priority):
        merged[rec.id if rec.id is not None else ("priority", i)] = rec
    return list(merged.values())
