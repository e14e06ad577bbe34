"""
Role permission tables.

A role owns a set of `(resource, action) -> scope` entries with at most one scope
per pair. Tables are read-only inputs: they come from the `access.roles` block of
the settings YAML and are rebuilt whenever settings are reloaded.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping, Protocol

from odbfinder.config.settings import Settings
from odbfinder.domain.models import Action, PermissionEntry, Resource, Role, Scope

logger = logging.getLogger(__name__)


class PermissionTable:
    def __init__(self, entries: Iterable[PermissionEntry] = ()):
        self._scopes: dict[tuple[str, str], Scope] = {}
        for e in entries:
            key = (e.resource, e.action)
            if key in self._scopes:
                raise ValueError(f"duplicate permission entry for '{e.resource}.{e.action}'")
            self._scopes[key] = e.scope

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Mapping[str, str]]) -> "PermissionTable":
        """Build from `{resource: {action: scope}}` (the YAML shape)."""
        entries = [
            PermissionEntry.model_validate({"resource": resource, "action": action, "scope": scope})
            for resource, actions in mapping.items()
            for action, scope in actions.items()
        ]
        return cls(entries)

    def scope_for(self, resource: Resource, action: Action) -> Scope:
        return self._scopes.get((resource, action), "none")

    def __len__(self) -> int:
        return len(self._scopes)


class PermissionTableProvider(Protocol):
    def role_permissions(self, role: Role) -> PermissionTable: ...


class ConfigPermissionTables:
    """Permission tables read from `settings.access.roles`."""

    def __init__(self, settings: Settings):
        self._tables = {
            role: PermissionTable.from_mapping(mapping) for role, mapping in settings.access.roles.items()
        }

    def role_permissions(self, role: Role) -> PermissionTable:
        table = self._tables.get(role)
        if table is None:
            logger.warning("No permission table configured for role=%s; treating every scope as none", role)
            return PermissionTable()
        return table
