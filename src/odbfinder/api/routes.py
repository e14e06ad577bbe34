"""
API routes.

Endpoints:
- GET    `/api/locations`: general pool
- GET    `/api/locations/nearby`: nearest-N from an optional origin (fallback without one)
- POST   `/api/locations/area`: rectangle filter
- GET    `/api/locations/search`, `/api/locations/activity`: lookup views
- POST   `/api/locations`, `/api/locations/import`, `/api/locations/{id}/lock`; DELETE `/api/locations/{id}`
- GET    `/api/access/{id}`: advisory access decision for one record
- GET    `/api/logs`: audit log view
- GET    `/api/settings`: public search settings

Authentication is external: a gateway injects `X-User-Id`, `X-User-Role` and
`X-User-Name` for the acting user.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel, ValidationError

from odbfinder.access.permissions import ConfigPermissionTables
from odbfinder.access.resolver import AccessResolver, SupervisorChainMembership
from odbfinder.config.overrides import apply_settings_overrides
from odbfinder.config.provider import ConfigSettingsProvider, default_search_settings
from odbfinder.config.settings import get_settings
from odbfinder.core.cache import record_cache_stats
from odbfinder.domain.models import (
    AccessDecision,
    Action,
    AreaRequest,
    GeoPoint,
    LocationRecord,
    Resource,
    SearchResult,
    User,
    with_distance,
)
from odbfinder.search.area import Rectangle, filter_area
from odbfinder.search.lookup import filter_logs
from odbfinder.session.discovery import DiscoverySession
from odbfinder.session.origin import StaticOriginProvider
from odbfinder.store.base import DuplicateCode, ImmutableCodeError, RecordNotFound, RecordStore, StoreError
from odbfinder.store.factory import build_store

logger = logging.getLogger(__name__)

router = APIRouter()


@lru_cache
def _store() -> RecordStore:
    return build_store(get_settings())


@lru_cache
def _resolver() -> AccessResolver:
    settings = get_settings()
    return AccessResolver(
        ConfigPermissionTables(settings),
        SupervisorChainMembership(settings.access.reports_to),
    )


def current_user(
    x_user_id: int = Header(...),
    x_user_role: str = Header(...),
    x_user_name: str = Header(""),
) -> User:
    try:
        return User(id=x_user_id, role=x_user_role, name=x_user_name, username=x_user_name)
    except ValidationError as e:
        raise HTTPException(
            status_code=400,
            detail={"code": "INVALID_USER", "message": f"unknown role '{x_user_role}'"},
        ) from e


def _store_failure(e: StoreError) -> HTTPException:
    if isinstance(e, RecordNotFound):
        return HTTPException(status_code=404, detail={"code": "NOT_FOUND", "message": str(e)})
    if isinstance(e, (DuplicateCode, ImmutableCodeError)):
        return HTTPException(status_code=409, detail={"code": "CONFLICT", "message": str(e)})
    logger.error("Store failure: %s", e)
    return HTTPException(status_code=502, detail={"code": "STORE_ERROR", "message": str(e)})


def _denied(reason: str) -> HTTPException:
    return HTTPException(status_code=403, detail={"code": reason, "message": "permission denied"})


def _require_any(user: User, resource: Resource, action: Action) -> None:
    if not _resolver().has_any(user, resource, action):
        raise _denied("NO_PERMISSION")


def _find(record_id: int) -> LocationRecord:
    try:
        records = _store().get_all()
    except StoreError as e:
        raise _store_failure(e) from e
    for rec in records:
        if rec.id == record_id:
            return rec
    raise _store_failure(RecordNotFound(record_id))


def _access_map(user: User, records: list[Any], resource: Resource) -> dict[str, dict[str, Any]]:
    resolver = _resolver()
    return {
        str(rec.id): {
            "edit": resolver.evaluate(user, resource, "edit", rec).model_dump(),
            "delete": resolver.evaluate(user, "odb", "delete", rec).model_dump(),
        }
        for rec in records
        if rec.id is not None
    }


@router.get("/api/locations")
def get_locations(user: User = Depends(current_user)) -> dict:
    """Return the general location pool."""
    _require_any(user, "odb", "view")
    with record_cache_stats() as stats:
        try:
            records = _store().get_all()
        except StoreError as e:
            raise _store_failure(e) from e
    return {
        "count": len(records),
        "locations": [r.model_dump(mode="json") for r in records],
        "meta": {"cache": stats.as_dict()},
    }


@router.get("/api/locations/nearby", response_model=SearchResult)
async def get_nearby(
    lat: float | None = None,
    lon: float | None = None,
    max_results: int | None = None,
    search_radius_km: float | None = None,
    user: User = Depends(current_user),
) -> SearchResult:
    """Nearest-N from (lat, lon). Missing coordinates fall back to the first N pool records."""
    _require_any(user, "nearby", "view")

    overrides: dict[str, Any] = {}
    if max_results is not None:
        overrides["max_results"] = max_results
    if search_radius_km is not None:
        overrides["search_radius_km"] = search_radius_km
    try:
        settings = apply_settings_overrides(get_settings(), {"search": overrides} if overrides else None)
        origin = GeoPoint(lat=lat, lon=lon) if lat is not None and lon is not None else None
    except ValueError as e:
        raise HTTPException(status_code=400, detail={"code": "VALIDATION_ERROR", "message": str(e)}) from e

    session = DiscoverySession(
        store=_store(),
        settings_provider=ConfigSettingsProvider(settings),
        resolver=_resolver(),
        defaults=default_search_settings(settings),
        origin_provider=StaticOriginProvider(origin),
        origin_timeout_seconds=settings.search.origin_timeout_seconds,
    )
    try:
        result = await session.load()
    except StoreError as e:
        raise _store_failure(e) from e
    meta = {**result.meta, "access": _access_map(user, result.items, "nearby")}
    return result.model_copy(update={"meta": meta})


@router.post("/api/locations/area", response_model=SearchResult)
def post_area(request: AreaRequest, user: User = Depends(current_user)) -> SearchResult:
    """Records inside the rectangle spanned by two arbitrary corners, in pool order."""
    _require_any(user, "map_filter", "view")
    rect = Rectangle.from_corners(request.corner_a, request.corner_b)
    try:
        pool = _store().get_all()
    except StoreError as e:
        raise _store_failure(e) from e
    items = [with_distance(rec, None) for rec in filter_area(pool, rect)]
    return SearchResult(
        items=items,
        distances_valid=False,
        mode="AREA",
        meta={
            "north": rect.north,
            "south": rect.south,
            "east": rect.east,
            "west": rect.west,
            "access": _access_map(user, items, "map_filter"),
        },
    )


@router.get("/api/locations/search")
def get_search(q: str = "", user: User = Depends(current_user)) -> dict:
    """Find records by ODB code or city name."""
    _require_any(user, "search_odb", "view")
    try:
        records = _store().search(q)
    except StoreError as e:
        raise _store_failure(e) from e
    return {"query": q, "count": len(records), "locations": [r.model_dump(mode="json") for r in records]}


@router.get("/api/locations/activity")
def get_activity(user: User = Depends(current_user)) -> dict:
    """Records last edited by the acting user, newest first."""
    _require_any(user, "my_activity", "view")
    try:
        records = _store().activity(user)
    except StoreError as e:
        raise _store_failure(e) from e
    return {"count": len(records), "locations": [r.model_dump(mode="json") for r in records]}


@router.post("/api/locations", response_model=LocationRecord)
def post_location(record: LocationRecord, user: User = Depends(current_user)) -> LocationRecord:
    """Create (no id) or fully replace a record, gated by the acting user's scope."""
    if record.id is None:
        _require_any(user, "odb", "create")
        if record.owner_id is None:
            record = record.model_copy(update={"owner_id": user.id, "owner_name": user.display_name})
    else:
        existing = _find(record.id)
        decision = _resolver().evaluate(user, "odb", "edit", existing)
        if not decision.allowed:
            raise _denied(decision.reason)
        # Ownership is kept; an unowned record is claimed by its editor.
        owner = (
            {"owner_id": existing.owner_id, "owner_name": existing.owner_name}
            if existing.owner_id is not None
            else {"owner_id": user.id, "owner_name": user.display_name}
        )
        record = record.model_copy(update=owner)
    try:
        return _store().save(record, edited_by=user.display_name)
    except StoreError as e:
        raise _store_failure(e) from e


@router.post("/api/locations/import")
def post_import(records: list[LocationRecord], user: User = Depends(current_user)) -> dict:
    """Bulk import; ids are assigned consecutively by the store."""
    _require_any(user, "odb", "create")
    owned = [
        r.model_copy(update={"id": None, "owner_id": r.owner_id or user.id, "owner_name": r.owner_name or user.display_name})
        for r in records
    ]
    try:
        saved = _store().save_bulk(owned, edited_by=user.display_name)
    except StoreError as e:
        raise _store_failure(e) from e
    return {"count": len(saved), "ids": [r.id for r in saved]}


@router.delete("/api/locations/{record_id}")
def delete_location(record_id: int, user: User = Depends(current_user)) -> dict:
    existing = _find(record_id)
    decision = _resolver().evaluate(user, "odb", "delete", existing)
    if not decision.allowed:
        raise _denied(decision.reason)
    try:
        _store().delete(record_id, edited_by=user.display_name)
    except StoreError as e:
        raise _store_failure(e) from e
    return {"deleted": record_id}


class LockRequest(BaseModel):
    locked: bool


@router.post("/api/locations/{record_id}/lock", response_model=LocationRecord)
def post_lock(record_id: int, request: LockRequest, user: User = Depends(current_user)) -> LocationRecord:
    """Lock/unlock a record (admin and supervisor only, regardless of edit scope)."""
    if not _resolver().can_toggle_lock(user):
        raise _denied("NO_PERMISSION")
    try:
        return _store().set_lock(record_id, request.locked, edited_by=user.display_name)
    except StoreError as e:
        raise _store_failure(e) from e


@router.get("/api/access/{record_id}")
def get_access(
    record_id: int,
    resource: Resource = "odb",
    action: Action = "edit",
    user: User = Depends(current_user),
) -> dict:
    """Advisory decision used to render or disable a record's affordances."""
    existing = _find(record_id)
    decision: AccessDecision = _resolver().evaluate(user, resource, action, existing)
    return {
        "record_id": record_id,
        "resource": resource,
        "action": action,
        **decision.model_dump(),
        "is_locked": existing.is_locked,
        "can_toggle_lock": _resolver().can_toggle_lock(user),
    }


@router.get("/api/logs")
def get_logs(search: str | None = None, action: str | None = None, user: User = Depends(current_user)) -> dict:
    _require_any(user, "system_logs", "view")
    try:
        logs = filter_logs(_store().logs(), search=search, action=action)
    except StoreError as e:
        raise _store_failure(e) from e
    return {"count": len(logs), "logs": [entry.model_dump(mode="json") for entry in logs]}


@router.get("/api/settings")
def get_public_settings() -> dict:
    """Return safe-to-expose settings for UI defaults."""
    settings = get_settings()
    return {
        "app": {"name": settings.app.name, "timezone": settings.app.timezone},
        "search": default_search_settings(settings).model_dump(),
    }
