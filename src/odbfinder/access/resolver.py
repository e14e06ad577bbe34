"""
Per-record access resolution.

`AccessResolver.evaluate` is the single entrypoint for view/edit/delete/create
affordances. Its output is advisory: callers render or disable controls from
`AccessDecision.allowed` and show `AccessDecision.reason`; nothing is mutated and
denial is a normal return value, never an exception.

Lock state never downgrades an allowed decision. It only turns a denial into
`LOCKED_NO_PERM` so the UI can explain why a locked record is read-only.

Lock toggling is a separate check gated purely on role (admin or supervisor).
"""

from __future__ import annotations

from typing import Iterable, Mapping, Protocol

from odbfinder.access.permissions import PermissionTableProvider
from odbfinder.domain.models import (
    LOCK_ROLES,
    AccessDecision,
    Action,
    LocationRecord,
    Resource,
    Scope,
    User,
)


class TeamMembership(Protocol):
    def is_member(self, user: User, owner_id: int | None) -> bool: ...


class SupervisorChainMembership:
    """Owner is in the user's team iff it is the user or reports (transitively) to them."""

    def __init__(self, reports_to: Mapping[int, int] | None = None):
        self._reports_to = dict(reports_to or {})

    @classmethod
    def from_users(cls, users: Iterable[User]) -> "SupervisorChainMembership":
        return cls({u.id: u.supervisor_id for u in users if u.supervisor_id is not None})

    def is_member(self, user: User, owner_id: int | None) -> bool:
        if owner_id is None:
            return False
        seen: set[int] = set()
        current: int | None = owner_id
        while current is not None and current not in seen:
            if current == user.id:
                return True
            seen.add(current)
            current = self._reports_to.get(current)
        return False


def resolve_scope(
    scope: Scope,
    *,
    user: User,
    record: LocationRecord | None,
    membership: TeamMembership,
) -> AccessDecision:
    """Turn a looked-up scope plus record ownership into a decision."""
    owner_id = record.owner_id if record is not None else None
    locked = bool(record.is_locked) if record is not None else False

    if scope == "all":
        allowed = True
    elif scope == "own":
        allowed = owner_id is not None and owner_id == user.id
    elif scope == "team":
        allowed = membership.is_member(user, owner_id)
    else:
        allowed = False

    if allowed:
        return AccessDecision(allowed=True, reason="ALLOWED")
    return AccessDecision(allowed=False, reason="LOCKED_NO_PERM" if locked else "NO_PERMISSION")


def can_toggle_lock(user: User) -> bool:
    """Lock toggle is role-gated only, independent of any edit scope."""
    return user.role in LOCK_ROLES


class AccessResolver:
    def __init__(self, tables: PermissionTableProvider, membership: TeamMembership | None = None):
        self._tables = tables
        self._membership = membership or SupervisorChainMembership()

    def scope(self, user: User, resource: Resource, action: Action) -> Scope:
        return self._tables.role_permissions(user.role).scope_for(resource, action)

    def has_any(self, user: User, resource: Resource, action: Action) -> bool:
        """Screen-level guard (no specific record): any scope above none."""
        return self.scope(user, resource, action) != "none"

    def evaluate(
        self,
        user: User,
        resource: Resource,
        action: Action,
        record: LocationRecord | None = None,
    ) -> AccessDecision:
        return resolve_scope(
            self.scope(user, resource, action),
            user=user,
            record=record,
            membership=self._membership,
        )

    def can_toggle_lock(self, user: User) -> bool:
        return can_toggle_lock(user)
