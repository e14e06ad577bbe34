"""
Remote record store client.

Talks JSON to a REST backend that owns persistence (the store is an external
collaborator; this is just its client):

- GET    {base}/locations                  -> list of records
- GET    {base}/locations/nearby           -> list (lat, lon, radius, limit)
- GET    {base}/locations/search           -> list (q)
- GET    {base}/locations/activity         -> list (user)
- POST   {base}/locations                  -> saved record
- POST   {base}/locations/bulk             -> saved records
- POST   {base}/locations/{id}/lock        -> updated record
- DELETE {base}/locations/{id}
- GET    {base}/logs                       -> audit log entries

The general pool (`get_all`) is cached on disk with stale-if-error, so a backend
outage degrades to the last good pool instead of an empty map. Every successful
write invalidates that cache entry.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

import httpx
from pydantic import TypeAdapter, ValidationError

from odbfinder.core.cache import FileCache
from odbfinder.core.http import request_json
from odbfinder.domain.models import AuditLogEntry, LocationRecord, User
from odbfinder.store.base import DuplicateCode, RecordNotFound, StoreError

logger = logging.getLogger(__name__)

_LOCATIONS_ADAPTER = TypeAdapter(list[LocationRecord])
_LOGS_ADAPTER = TypeAdapter(list[AuditLogEntry])

_CACHE_NAMESPACE = "locations"


class HttpRecordStore:
    def __init__(
        self,
        base_url: str,
        cache: FileCache,
        *,
        timeout_seconds: float = 15,
        get_all_ttl_seconds: int = 300,
    ):
        self._base_url = base_url.rstrip("/")
        self._cache = cache
        self._timeout_seconds = float(timeout_seconds)
        self._get_all_ttl_seconds = int(get_all_ttl_seconds)

    def _call(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any | None = None,
        record_id: int | None = None,
        odb_id: str | None = None,
    ) -> Any:
        url = f"{self._base_url}{path}"
        try:
            return request_json(
                method, url, params=params, json_body=json_body, timeout_seconds=self._timeout_seconds
            )
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 404 and record_id is not None:
                raise RecordNotFound(record_id) from e
            if status == 409 and odb_id is not None:
                raise DuplicateCode(odb_id) from e
            raise StoreError(f"{method} {url} failed with HTTP {status}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise StoreError(f"{method} {url} failed: {e}") from e

    def _records(self, payload: Any) -> list[LocationRecord]:
        # Backends return either a bare list or `{"data": [...]}`.
        if isinstance(payload, dict):
            payload = payload.get("data") or []
        try:
            return _LOCATIONS_ADAPTER.validate_python(payload or [])
        except ValidationError as e:
            raise StoreError(f"backend returned invalid location payload: {e}") from e

    def _record(self, payload: Any) -> LocationRecord:
        if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
            payload = payload["data"]
        try:
            return LocationRecord.model_validate(payload)
        except ValidationError as e:
            raise StoreError(f"backend returned invalid location payload: {e}") from e

    def _invalidate_pool(self) -> None:
        self._cache.invalidate(_CACHE_NAMESPACE, self._base_url)

    def get_all(self) -> list[LocationRecord]:
        def builder() -> Any:
            logger.info("Fetching location pool from %s", self._base_url)
            return [r.model_dump(mode="json") for r in self._records(self._call("GET", "/locations"))]

        try:
            payload = self._cache.get_or_set(
                _CACHE_NAMESPACE,
                self._base_url,
                builder,
                ttl_seconds=self._get_all_ttl_seconds,
                stale_if_error=True,
                stale_predicate=lambda exc: isinstance(exc, StoreError),
            )
        except StoreError:
            logger.warning("Location pool unavailable from %s and no cached copy", self._base_url)
            raise
        return self._records(payload)

    def get_nearby(self, lat: float, lon: float, radius_km: float, limit: int) -> list[LocationRecord]:
        params = {"lat": lat, "lon": lon, "radius": radius_km, "limit": int(limit)}
        return self._records(self._call("GET", "/locations/nearby", params=params))

    def save(self, record: LocationRecord, *, edited_by: str) -> LocationRecord:
        body = record.model_dump(mode="json", include=set(LocationRecord.model_fields))
        body["last_edited_by"] = edited_by
        saved = self._record(
            self._call("POST", "/locations", json_body=body, record_id=record.id, odb_id=record.odb_id)
        )
        self._invalidate_pool()
        return saved

    def delete(self, record_id: int, *, edited_by: str = "") -> None:
        self._call("DELETE", f"/locations/{record_id}", params={"user": edited_by}, record_id=record_id)
        self._invalidate_pool()

    def set_lock(self, record_id: int, locked: bool, *, edited_by: str) -> LocationRecord:
        updated = self._record(
            self._call(
                "POST",
                f"/locations/{record_id}/lock",
                json_body={"locked": bool(locked), "user": edited_by},
                record_id=record_id,
            )
        )
        self._invalidate_pool()
        return updated

    def save_bulk(self, records: Sequence[LocationRecord], *, edited_by: str) -> list[LocationRecord]:
        body = {
            "user": edited_by,
            "locations": [r.model_dump(mode="json", include=set(LocationRecord.model_fields)) for r in records],
        }
        saved = self._records(self._call("POST", "/locations/bulk", json_body=body))
        self._invalidate_pool()
        return saved

    def search(self, query: str) -> list[LocationRecord]:
        return self._records(self._call("GET", "/locations/search", params={"q": query}))

    def activity(self, user: User) -> list[LocationRecord]:
        return self._records(self._call("GET", "/locations/activity", params={"user": user.display_name}))

    def logs(self) -> list[AuditLogEntry]:
        payload = self._call("GET", "/logs")
        if isinstance(payload, dict):
            payload = payload.get("data") or []
        try:
            return _LOGS_ADAPTER.validate_python(payload or [])
        except ValidationError as e:
            raise StoreError(f"backend returned invalid log payload: {e}") from e
