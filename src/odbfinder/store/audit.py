"""
Audit trail for store mutations.

Each create/update/delete/lock/import appends one `AuditLogEntry`. The log view
(`search.lookup.filter_logs`) reads these newest-first.
"""

from __future__ import annotations

from typing import Any

from odbfinder.core.time import now_in
from odbfinder.domain.models import AuditAction, AuditLogEntry


class AuditTrail:
    def __init__(self, entries: list[AuditLogEntry] | None = None, *, timezone: str = "UTC"):
        self._entries = list(entries or [])
        self._timezone = timezone

    @property
    def entries(self) -> list[AuditLogEntry]:
        return list(self._entries)

    def record(self, *, username: str, action: AuditAction, details: str, resource: str = "odb") -> AuditLogEntry:
        next_id = max((e.id for e in self._entries), default=0) + 1
        entry = AuditLogEntry(
            id=next_id,
            timestamp=now_in(self._timezone),
            username=username or "system",
            action=action,
            resource=resource,
            details=details,
        )
        self._entries.append(entry)
        return entry

    def dump(self) -> list[dict[str, Any]]:
        return [e.model_dump(mode="json") for e in self._entries]
