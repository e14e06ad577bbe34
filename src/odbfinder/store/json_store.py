"""
File-backed record store.

A reference implementation of the record store contract for single-node
deployments, the CLI and tests:
- one JSON document `{"locations": [...], "logs": [...]}` on disk,
- writes go through a temporary file + atomic replace (never a half-written table),
- an empty/missing file is initialized from a seed catalog (bundled by default),
- nearby queries use a grid bucket index instead of a full haversine scan.

Every mutating call re-reads the file under a lock, so concurrent API workers
in one process serialize their read-modify-write cycles.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Sequence

from pydantic import TypeAdapter

from odbfinder.catalog.loader import load_seed_locations
from odbfinder.core.spatial_index import SpatialGridIndex
from odbfinder.core.time import now_in
from odbfinder.domain.models import AuditLogEntry, LocationRecord, User
from odbfinder.search.lookup import activity_for, search_records
from odbfinder.store.audit import AuditTrail
from odbfinder.store.base import DuplicateCode, ImmutableCodeError, RecordNotFound, StoreError

logger = logging.getLogger(__name__)

_LOCATIONS_ADAPTER = TypeAdapter(list[LocationRecord])
_LOGS_ADAPTER = TypeAdapter(list[AuditLogEntry])


class JsonFileRecordStore:
    def __init__(
        self,
        path: Path,
        *,
        seed: Sequence[LocationRecord] | None = None,
        timezone: str = "UTC",
        cell_size_km: float = 25.0,
        lat0_deg: float = 26.8,
    ):
        self._path = Path(path)
        self._seed = list(seed) if seed is not None else None
        self._timezone = timezone
        self._cell_size_km = float(cell_size_km)
        self._lat0_deg = float(lat0_deg)
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> tuple[list[LocationRecord], AuditTrail]:
        if not self._path.exists():
            seed = self._seed if self._seed is not None else load_seed_locations()
            logger.info("Initializing location store at %s with %d seed records", self._path, len(seed))
            trail = AuditTrail(timezone=self._timezone)
            self._write(list(seed), trail)
            return list(seed), trail
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            locations = _LOCATIONS_ADAPTER.validate_python(raw.get("locations") or [])
            logs = _LOGS_ADAPTER.validate_python(raw.get("logs") or [])
        except (OSError, ValueError, AttributeError) as e:
            # ValidationError subclasses ValueError.
            raise StoreError(f"cannot read location store {self._path}: {e}") from e
        return locations, AuditTrail(logs, timezone=self._timezone)

    def _write(self, locations: list[LocationRecord], trail: AuditTrail) -> None:
        payload: dict[str, Any] = {
            "locations": [loc.model_dump(mode="json") for loc in locations],
            "logs": trail.dump(),
        }
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(".tmp")
            tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
            tmp.replace(self._path)
        except OSError as e:
            raise StoreError(f"cannot write location store {self._path}: {e}") from e

    @staticmethod
    def _index_of(locations: list[LocationRecord], record_id: int) -> int:
        for i, loc in enumerate(locations):
            if loc.id == record_id:
                return i
        raise RecordNotFound(record_id)

    @staticmethod
    def _plain(record: LocationRecord) -> LocationRecord:
        # Drop engine-only fields (e.g. distance_km) before persisting.
        return LocationRecord.model_validate(record.model_dump(include=set(LocationRecord.model_fields)))

    @staticmethod
    def _next_id(locations: list[LocationRecord]) -> int:
        return max((loc.id or 0 for loc in locations), default=0) + 1

    def get_all(self) -> list[LocationRecord]:
        with self._lock:
            locations, _ = self._read()
        return locations

    def get_nearby(self, lat: float, lon: float, radius_km: float, limit: int) -> list[LocationRecord]:
        """Closest records to (lat, lon), nearest first; `radius_km <= 0` means unlimited."""
        locations = self.get_all()
        index = SpatialGridIndex(
            locations,
            get_latlon=lambda loc: (loc.lat, loc.lon),
            cell_size_km=self._cell_size_km,
            lat0_deg=self._lat0_deg,
        )
        if float(radius_km) > 0:
            hits = index.query_within(lat=lat, lon=lon, radius_km=radius_km)
        else:
            hits = index.all_with_distance(lat=lat, lon=lon)
        hits.sort(key=lambda h: h[1])
        return [loc for loc, _ in hits[: max(0, int(limit))]]

    def save(self, record: LocationRecord, *, edited_by: str) -> LocationRecord:
        """Create (id None) or fully replace a record; stamps the audit fields."""
        record = self._plain(record)
        with self._lock:
            locations, trail = self._read()
            stamped = {"last_edited_by": edited_by, "last_edited_at": now_in(self._timezone)}

            if record.id is None:
                if any(loc.odb_id == record.odb_id for loc in locations):
                    raise DuplicateCode(record.odb_id)
                saved = record.model_copy(update={**stamped, "id": self._next_id(locations), "is_locked": False})
                locations.append(saved)
                trail.record(username=edited_by, action="CREATE", details=f"{saved.odb_id} ({saved.city_name})")
            else:
                i = self._index_of(locations, record.id)
                current = locations[i]
                if current.odb_id != record.odb_id:
                    raise ImmutableCodeError(record.id, current.odb_id, record.odb_id)
                # Lock state only changes through set_lock().
                saved = record.model_copy(update={**stamped, "is_locked": current.is_locked})
                locations[i] = saved
                trail.record(username=edited_by, action="UPDATE", details=f"{saved.odb_id} ({saved.city_name})")

            self._write(locations, trail)
        logger.info("Saved location id=%s odb_id=%s by %s", saved.id, saved.odb_id, edited_by)
        return saved

    def delete(self, record_id: int, *, edited_by: str = "") -> None:
        with self._lock:
            locations, trail = self._read()
            removed = locations.pop(self._index_of(locations, record_id))
            trail.record(username=edited_by, action="DELETE", details=f"{removed.odb_id} ({removed.city_name})")
            self._write(locations, trail)
        logger.info("Deleted location id=%s odb_id=%s", record_id, removed.odb_id)

    def set_lock(self, record_id: int, locked: bool, *, edited_by: str) -> LocationRecord:
        with self._lock:
            locations, trail = self._read()
            i = self._index_of(locations, record_id)
            updated = locations[i].model_copy(update={"is_locked": bool(locked)})
            locations[i] = updated
            trail.record(
                username=edited_by,
                action="LOCK" if locked else "UNLOCK",
                details=f"{updated.odb_id} ({updated.city_name})",
            )
            self._write(locations, trail)
        return updated

    def save_bulk(self, records: Sequence[LocationRecord], *, edited_by: str) -> list[LocationRecord]:
        """Append records with consecutive new ids; all-or-nothing on duplicate codes."""
        with self._lock:
            locations, trail = self._read()
            seen = {loc.odb_id for loc in locations}
            for rec in records:
                if rec.odb_id in seen:
                    raise DuplicateCode(rec.odb_id)
                seen.add(rec.odb_id)

            next_id = self._next_id(locations)
            stamped_at = now_in(self._timezone)
            added: list[LocationRecord] = []
            for offset, rec in enumerate(records):
                added.append(
                    self._plain(rec).model_copy(
                        update={
                            "id": next_id + offset,
                            "last_edited_by": edited_by,
                            "last_edited_at": stamped_at,
                        }
                    )
                )
            locations.extend(added)
            trail.record(username=edited_by, action="IMPORT", details=f"{len(added)} locations imported")
            self._write(locations, trail)
        logger.info("Imported %d locations by %s", len(added), edited_by)
        return added

    def search(self, query: str) -> list[LocationRecord]:
        return search_records(self.get_all(), query)

    def activity(self, user: User) -> list[LocationRecord]:
        return activity_for(self.get_all(), user)

    def logs(self) -> list[AuditLogEntry]:
        with self._lock:
            _, trail = self._read()
        return trail.entries


