import pytest

from odbfinder.access.permissions import ConfigPermissionTables, PermissionTable
from odbfinder.access.resolver import AccessResolver, SupervisorChainMembership, resolve_scope
from odbfinder.config.settings import Settings, get_settings
from odbfinder.domain.models import LocationRecord, PermissionEntry, User


class _Tables:
    """One fixed table for every role."""

    def __init__(self, mapping):
        self._table = PermissionTable.from_mapping(mapping)

    def role_permissions(self, role):
        return self._table


def _rec(owner_id, *, locked=False) -> LocationRecord:
    return LocationRecord(
        id=1, odb_id="A", city_name="Cairo", lat=30.0, lon=31.0, owner_id=owner_id, is_locked=locked
    )


def test_delegate_own_scope_allows_only_own_records():
    resolver = AccessResolver(ConfigPermissionTables(get_settings()))
    delegate = User(id=42, role="delegate", name="Nour")

    assert resolver.scope(delegate, "odb", "edit") == "own"
    assert resolver.evaluate(delegate, "odb", "edit", _rec(42)).allowed is True

    other = resolver.evaluate(delegate, "odb", "edit", _rec(7))
    assert (other.allowed, other.reason) == (False, "NO_PERMISSION")

    locked = resolver.evaluate(delegate, "odb", "edit", _rec(7, locked=True))
    assert (locked.allowed, locked.reason) == (False, "LOCKED_NO_PERM")


def test_lock_never_downgrades_an_allowed_decision():
    resolver = AccessResolver(_Tables({"odb": {"edit": "own"}}))
    decision = resolver.evaluate(User(id=42, role="delegate"), "odb", "edit", _rec(42, locked=True))
    assert (decision.allowed, decision.reason) == (True, "ALLOWED")


@pytest.mark.parametrize("owner_id", [None, 1, 42, 999])
def test_scope_all_and_none_ignore_ownership(owner_id):
    user = User(id=42, role="user")
    everything = AccessResolver(_Tables({"odb": {"edit": "all"}}))
    nothing = AccessResolver(_Tables({"odb": {"edit": "none"}}))

    assert everything.evaluate(user, "odb", "edit", _rec(owner_id)).allowed is True
    assert nothing.evaluate(user, "odb", "edit", _rec(owner_id)).allowed is False


def test_unlisted_pair_defaults_to_none():
    resolver = AccessResolver(_Tables({"odb": {"view": "all"}}))
    user = User(id=1, role="user")
    assert resolver.scope(user, "system_logs", "view") == "none"
    assert resolver.has_any(user, "system_logs", "view") is False
    assert resolver.has_any(user, "odb", "view") is True


def test_own_scope_with_unowned_record_is_denied():
    resolver = AccessResolver(_Tables({"odb": {"edit": "own"}}))
    assert resolver.evaluate(User(id=1, role="delegate"), "odb", "edit", _rec(None)).allowed is False


def test_team_scope_follows_the_supervisor_chain():
    # 7 -> 5 -> 3 (7 reports to 5, 5 reports to 3)
    membership = SupervisorChainMembership({7: 5, 5: 3})
    resolver = AccessResolver(_Tables({"odb": {"edit": "team"}}), membership)

    top = User(id=3, role="supervisor")
    mid = User(id=5, role="supervisor")

    assert resolver.evaluate(top, "odb", "edit", _rec(7)).allowed is True
    assert resolver.evaluate(mid, "odb", "edit", _rec(7)).allowed is True
    assert resolver.evaluate(mid, "odb", "edit", _rec(5)).allowed is True
    assert resolver.evaluate(mid, "odb", "edit", _rec(3)).allowed is False
    assert resolver.evaluate(mid, "odb", "edit", _rec(None)).allowed is False


def test_team_membership_survives_reporting_cycles():
    membership = SupervisorChainMembership({1: 2, 2: 1})
    assert membership.is_member(User(id=9, role="supervisor"), 1) is False
    assert membership.is_member(User(id=2, role="supervisor"), 1) is True


def test_team_membership_from_users():
    users = [
        User(id=10, role="delegate", supervisor_id=2),
        User(id=2, role="supervisor"),
    ]
    membership = SupervisorChainMembership.from_users(users)
    assert membership.is_member(users[1], 10) is True


@pytest.mark.parametrize(
    "role,expected",
    [("admin", True), ("supervisor", True), ("delegate", False), ("user", False)],
)
def test_lock_toggle_is_role_gated_only(role, expected):
    # Even a role with full edit scope cannot toggle locks unless admin/supervisor.
    resolver = AccessResolver(_Tables({"odb": {"edit": "all"}}))
    assert resolver.can_toggle_lock(User(id=1, role=role)) is expected


def test_resolve_scope_without_record():
    d = resolve_scope("own", user=User(id=1, role="delegate"), record=None, membership=SupervisorChainMembership())
    assert (d.allowed, d.reason) == (False, "NO_PERMISSION")


def test_permission_table_rejects_duplicate_pairs():
    entries = [
        PermissionEntry(resource="odb", action="edit", scope="own"),
        PermissionEntry(resource="odb", action="edit", scope="all"),
    ]
    with pytest.raises(ValueError, match=r"odb\.edit"):
        PermissionTable(entries)


def test_config_tables_unknown_role_gets_empty_table():
    tables = ConfigPermissionTables(Settings())
    assert len(tables.role_permissions("admin")) == 0
