from __future__ import annotations

# Orchestrates one user's discovery view:
# - settings + general pool + origin + priority nearby fetch -> NEAREST results
# - rectangle draw -> AREA results
# - reset -> back to NEAREST from cached origin/data
# - per-record access decisions and single-item save/delete/lock updates
#
# All mutation of the current result list happens in coroutine bodies on one event
# loop; store calls run in a worker thread so pointer events can interleave.

import asyncio
import logging
from typing import Any, Callable

from odbfinder.access.resolver import AccessResolver
from odbfinder.config.provider import SettingsProvider
from odbfinder.core.geo import GeoPoint as CoreGeoPoint
from odbfinder.core.geo import haversine_km
from odbfinder.domain.models import (
    AccessDecision,
    Action,
    GeoPoint,
    LocationRecord,
    LocationWithDistance,
    Resource,
    SearchResult,
    SearchSettings,
    User,
    with_distance,
)
from odbfinder.search.area import Rectangle, filter_area
from odbfinder.search.merge import merge_by_identity
from odbfinder.search.proximity import nearest
from odbfinder.session.mode import DrawGesture, Mode, ModeController, NearestPhase
from odbfinder.session.origin import (
    DEFAULT_ORIGIN_TIMEOUT_SECONDS,
    OriginOutcome,
    OriginProvider,
    acquire_origin,
)
from odbfinder.store.base import RecordStore, StoreError

logger = logging.getLogger(__name__)


class DiscoverySession:
    def __init__(
        self,
        *,
        store: RecordStore,
        settings_provider: SettingsProvider,
        resolver: AccessResolver,
        defaults: SearchSettings,
        origin_provider: OriginProvider | None = None,
        origin_timeout_seconds: float = DEFAULT_ORIGIN_TIMEOUT_SECONDS,
    ):
        self._store = store
        self._settings_provider = settings_provider
        self._resolver = resolver
        self._defaults = defaults
        self._origin_provider = origin_provider
        self._origin_timeout_seconds = float(origin_timeout_seconds)

        self._controller = ModeController()
        self._gesture = DrawGesture()
        self._search_settings = defaults
        self._pool: list[LocationRecord] = []
        self._origin: GeoPoint | None = None
        self._origin_task: asyncio.Future[OriginOutcome] | None = None
        self._area: Rectangle | None = None
        self._result = SearchResult(items=[], distances_valid=False)

    @property
    def mode(self) -> Mode:
        return self._controller.mode

    @property
    def phase(self) -> NearestPhase | None:
        return self._controller.phase

    @property
    def gesture(self) -> DrawGesture:
        return self._gesture

    @property
    def search_settings(self) -> SearchSettings:
        return self._search_settings

    @property
    def origin(self) -> GeoPoint | None:
        return self._origin

    @property
    def pool(self) -> list[LocationRecord]:
        return list(self._pool)

    @property
    def result(self) -> SearchResult:
        return self._result

    @property
    def results(self) -> list[LocationWithDistance]:
        return list(self._result.items)

    @property
    def distances_valid(self) -> bool:
        return self._result.distances_valid

    async def _run(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        return await asyncio.to_thread(fn, *args, **kwargs)

    async def _load_settings(self) -> SearchSettings:
        try:
            return await self._settings_provider.get_search_settings()
        except Exception as e:  # noqa: BLE001 - any provider fault falls back to defaults
            logger.warning("Search settings unavailable (%s); using defaults %s", e, self._defaults)
            return self._defaults

    async def _fetch_priority(self, origin: GeoPoint) -> list[LocationRecord]:
        s = self._search_settings
        try:
            return await self._run(self._store.get_nearby, origin.lat, origin.lon, s.search_radius_km, s.max_results)
        except StoreError as e:
            logger.warning("Nearby fetch failed (%s); ranking the general pool only", e)
            return []

    def _rank(self) -> SearchResult:
        self._result = nearest(
            self._pool,
            self._search_settings,
            self._origin,
            origin_failure=self._result.origin_failure if self._origin is None else None,
        )
        return self._result

    async def _locate(self) -> OriginOutcome:
        outcome = await acquire_origin(self._origin_provider, timeout_seconds=self._origin_timeout_seconds)
        if outcome.ok:
            self._origin = outcome.origin
            self._pool = merge_by_identity(self._pool, await self._fetch_priority(outcome.origin))
        return outcome

    async def _acquire_and_rank(self) -> SearchResult:
        # One origin request at a time: a reset during a pending load joins it.
        if self._origin_task is None:
            self._origin_task = asyncio.ensure_future(self._locate())
        task = self._origin_task
        try:
            outcome = await asyncio.shield(task)
        finally:
            if task.done() and self._origin_task is task:
                self._origin_task = None

        if not self._controller.acquiring_origin:
            # A rectangle was drawn while we waited: keep the origin cached, leave AREA results alone.
            return self._result

        self._controller.origin_settled()
        self._result = nearest(self._pool, self._search_settings, self._origin, origin_failure=outcome.failure)
        return self._result

    async def load(self) -> SearchResult:
        """Initial load. Store failure on the general pool propagates; everything else degrades."""
        self._search_settings = await self._load_settings()
        self._pool = await self._run(self._store.get_all)
        return await self._acquire_and_rank()

    async def reset(self) -> SearchResult:
        """AREA -> NEAREST, reusing the cached origin and pool."""
        self._controller.reset(origin_cached=self._origin is not None)
        self._gesture.clear()
        self._area = None
        if self._origin is not None:
            return self._rank()
        return await self._acquire_and_rank()

    def start_draw(self) -> None:
        self._gesture.enable()

    def cancel_draw(self) -> None:
        self._gesture.disable()

    def pointer_down(self, point: CoreGeoPoint) -> None:
        self._gesture.pointer_down(point)

    def pointer_move(self, point: CoreGeoPoint) -> None:
        self._gesture.pointer_move(point)

    def pointer_up(self, point: CoreGeoPoint | None = None) -> SearchResult | None:
        """Complete a drag: filter the known candidate set and switch to AREA."""
        completed = self._gesture.pointer_up(point)
        if completed is None:
            return None

        if self._controller.mode is Mode.AREA:
            self._controller.area_refined()
        else:
            self._controller.area_selected()

        self._area = completed.rectangle
        self._filter_area(self._area)
        logger.info("Area selection kept %d of %d records", len(self._result.items), len(self._pool))
        return self._result

    def _filter_area(self, rect: Rectangle, fresh: LocationRecord | None = None) -> SearchResult:
        # Carry any distance from the last proximity pass (possibly stale) onto the pool.
        known = {item.id: item.distance_km for item in self._result.items if item.id is not None}
        if fresh is not None:
            known[fresh.id] = self._distance_for(fresh)
        candidates = [with_distance(rec, known.get(rec.id)) for rec in self._pool]
        self._result = SearchResult(
            items=filter_area(candidates, rect),
            distances_valid=False,
            mode="AREA",
            origin=self._origin,
            meta={"north": rect.north, "south": rect.south, "east": rect.east, "west": rect.west},
        )
        return self._result

    def decision_for(
        self, user: User, record: LocationRecord | None, *, action: Action = "edit", resource: Resource = "odb"
    ) -> AccessDecision:
        return self._resolver.evaluate(user, resource, action, record)

    def _distance_for(self, record: LocationRecord) -> float | None:
        if self._origin is None:
            return None
        return haversine_km(self._origin.lat, self._origin.lon, record.lat, record.lon)

    def _replace_item(self, saved: LocationRecord) -> None:
        """Fold a confirmed write into the pool and re-run the active query over it."""
        self._pool = merge_by_identity(self._pool, [saved])
        if self._controller.mode is Mode.AREA and self._area is not None:
            self._filter_area(self._area, fresh=saved)
        elif self._controller.phase is NearestPhase.RESOLVED:
            self._rank()

    async def save(self, record: LocationRecord, *, user: User) -> LocationRecord:
        """Persist via the store; the local list changes only after the store confirms."""
        saved = await self._run(self._store.save, record, edited_by=user.display_name)
        self._replace_item(saved)
        return saved

    async def delete(self, record_id: int, *, user: User) -> None:
        await self._run(self._store.delete, record_id, edited_by=user.display_name)
        self._pool = [rec for rec in self._pool if rec.id != record_id]
        items = [item for item in self._result.items if item.id != record_id]
        self._result = self._result.model_copy(update={"items": items})

    async def toggle_lock(self, record_id: int, locked: bool, *, user: User) -> LocationRecord | None:
        """Set the lock flag; returns None (no store call) when the role may not lock."""
        if not self._resolver.can_toggle_lock(user):
            logger.info("Lock toggle refused for user=%s role=%s", user.id, user.role)
            return None
        updated = await self._run(self._store.set_lock, record_id, locked, edited_by=user.display_name)
        self._replace_item(updated)
        return updated
