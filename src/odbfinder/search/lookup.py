"""
Text lookup helpers over a location list.

- `search_records`: find by ODB code or city name (case-insensitive substring).
- `activity_for`: records last edited by a given user, newest first.
- `filter_logs`: audit log view filtering, newest first.
"""

from __future__ import annotations

from typing import Sequence

from odbfinder.domain.models import AuditLogEntry, LocationRecord, User


def _edited_key(record: LocationRecord) -> float:
    return record.last_edited_at.timestamp() if record.last_edited_at else float("-inf")


def search_records(records: Sequence[LocationRecord], query: str) -> list[LocationRecord]:
    q = (query or "").strip().lower()
    if not q:
        return []
    return [r for r in records if q in r.odb_id.lower() or q in r.city_name.lower()]


def activity_for(records: Sequence[LocationRecord], user: User) -> list[LocationRecord]:
    """Records whose `last_edited_by` contains the user's display name (or username)."""
    term = user.display_name.strip().lower()
    if not term:
        return []
    mine = [r for r in records if r.last_edited_by and term in r.last_edited_by.lower()]
    return sorted(mine, key=_edited_key, reverse=True)


def filter_logs(
    logs: Sequence[AuditLogEntry], *, search: str | None = None, action: str | None = None
) -> list[AuditLogEntry]:
    out = list(logs)
    if search:
        s = search.lower()
        out = [
            entry
            for entry in out
            if s in entry.username.lower() or s in entry.details.lower() or s in entry.resource.lower()
        ]
    if action and action.upper() != "ALL":
        out = [entry for entry in out if entry.action == action.upper()]
    return sorted(out, key=lambda entry: entry.timestamp.timestamp(), reverse=True)
