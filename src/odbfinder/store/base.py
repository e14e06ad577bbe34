"""
Record store contract.

The store is an external collaborator: the engines only consume its outputs.
Failures surface as `StoreError` (or a subclass) for the single operation that
failed; callers keep their cached lists untouched until a write is confirmed.
"""

from __future__ import annotations

from typing import Protocol, Sequence

from odbfinder.domain.models import AuditLogEntry, LocationRecord, User


class StoreError(RuntimeError):
    """A fetch/save/delete was rejected or the backend was unreachable."""


class RecordNotFound(StoreError):
    def __init__(self, record_id: int):
        super().__init__(f"location id={record_id} not found")
        self.record_id = record_id


class DuplicateCode(StoreError):
    def __init__(self, odb_id: str):
        super().__init__(f"ODB code '{odb_id}' already exists")
        self.odb_id = odb_id


class ImmutableCodeError(StoreError):
    def __init__(self, record_id: int, current: str, requested: str):
        super().__init__(
            f"ODB code of location id={record_id} cannot change ('{current}' -> '{requested}')"
        )
        self.record_id = record_id


class RecordStore(Protocol):
    def get_all(self) -> list[LocationRecord]: ...

    def get_nearby(self, lat: float, lon: float, radius_km: float, limit: int) -> list[LocationRecord]: ...

    def save(self, record: LocationRecord, *, edited_by: str) -> LocationRecord: ...

    def delete(self, record_id: int, *, edited_by: str = "") -> None: ...

    def set_lock(self, record_id: int, locked: bool, *, edited_by: str) -> LocationRecord: ...

    def save_bulk(self, records: Sequence[LocationRecord], *, edited_by: str) -> list[LocationRecord]: ...

    def search(self, query: str) -> list[LocationRecord]: ...

    def activity(self, user: User) -> list[LocationRecord]: ...

    def logs(self) -> list[AuditLogEntry]: ...
