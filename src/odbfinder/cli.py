"""
ODB Finder CLI entrypoint.

This CLI is intended for quick local demos and debugging without a map frontend.
It drives the same `DiscoverySession` and `AccessResolver` the API uses.
"""

from __future__ import annotations

import argparse
import asyncio
import json
from typing import Any

from odbfinder.access.permissions import ConfigPermissionTables
from odbfinder.access.resolver import AccessResolver, SupervisorChainMembership
from odbfinder.config.overrides import apply_settings_overrides
from odbfinder.config.provider import ConfigSettingsProvider, default_search_settings
from odbfinder.config.settings import Settings, get_settings
from odbfinder.core.geo import GeoPoint as CoreGeoPoint
from odbfinder.core.logging import configure_logging
from odbfinder.domain.models import GeoPoint, LocationWithDistance, SearchResult, User
from odbfinder.session.discovery import DiscoverySession
from odbfinder.session.origin import StaticOriginProvider
from odbfinder.store.base import RecordNotFound
from odbfinder.store.factory import build_store


def _build_resolver(settings: Settings) -> AccessResolver:
    return AccessResolver(
        ConfigPermissionTables(settings),
        SupervisorChainMembership(settings.access.reports_to),
    )


def _build_session(settings: Settings, origin: GeoPoint | None) -> DiscoverySession:
    return DiscoverySession(
        store=build_store(settings),
        settings_provider=ConfigSettingsProvider(settings),
        resolver=_build_resolver(settings),
        defaults=default_search_settings(settings),
        origin_provider=StaticOriginProvider(origin),
        origin_timeout_seconds=settings.search.origin_timeout_seconds,
    )


def _print_items(items: list[LocationWithDistance]) -> None:
    for i, item in enumerate(items, start=1):
        dist = f"{item.distance_km:8.2f} km" if item.distance_km is not None else "       -   "
        lock = " [locked]" if item.is_locked else ""
        print(f"{i:>2}. {item.odb_id:<12} {item.city_name:<20} {dist}{lock}")


def _print_result(result: SearchResult, as_json: bool) -> None:
    if as_json:
        print(json.dumps(result.model_dump(mode="json"), ensure_ascii=False, indent=2))
        return
    if result.mode == "NEAREST" and not result.distances_valid:
        print(f"No origin ({result.origin_failure}); showing the first {len(result.items)} records.")
    _print_items(result.items)


def _cmd_nearby(args: argparse.Namespace) -> int:
    """Handle the `nearby` subcommand."""
    overrides: dict[str, Any] = {}
    if args.max_results is not None:
        overrides["max_results"] = int(args.max_results)
    if args.radius_km is not None:
        overrides["search_radius_km"] = float(args.radius_km)
    settings = apply_settings_overrides(get_settings(), {"search": overrides} if overrides else None)

    origin = None
    if args.lat is not None and args.lon is not None:
        origin = GeoPoint(lat=float(args.lat), lon=float(args.lon))

    session = _build_session(settings, origin)
    result = asyncio.run(session.load())
    _print_result(result, args.json)
    return 0


def _cmd_area(args: argparse.Namespace) -> int:
    """Handle the `area` subcommand by replaying a rectangle drag."""
    settings = get_settings()
    session = _build_session(settings, None)
    asyncio.run(session.load())

    session.start_draw()
    session.pointer_down(CoreGeoPoint(lat=float(args.lat1), lon=float(args.lon1)))
    session.pointer_move(CoreGeoPoint(lat=float(args.lat2), lon=float(args.lon2)))
    result = session.pointer_up()
    if result is None:
        return 1
    if not args.json:
        m = result.meta
        print(f"Area N={m['north']} S={m['south']} E={m['east']} W={m['west']}: {len(result.items)} records")
    _print_result(result, args.json)
    return 0


def _cmd_search(args: argparse.Namespace) -> int:
    store = build_store(get_settings())
    records = store.search(args.query)
    if args.json:
        print(json.dumps([r.model_dump(mode="json") for r in records], ensure_ascii=False, indent=2))
        return 0
    for rec in records:
        print(f"{rec.id:>4} {rec.odb_id:<12} {rec.city_name:<20} ({rec.lat:.4f}, {rec.lon:.4f})")
    return 0


def _cmd_access(args: argparse.Namespace) -> int:
    """Print the access decision for one record and one acting user."""
    settings = get_settings()
    store = build_store(settings)
    record = next((r for r in store.get_all() if r.id == int(args.record_id)), None)
    if record is None:
        raise RecordNotFound(int(args.record_id))

    user = User(id=int(args.user_id), role=args.role, name=args.user_name or "")
    resolver = _build_resolver(settings)
    decision = resolver.evaluate(user, args.resource, args.action, record)
    out = {
        "record_id": record.id,
        "owner_id": record.owner_id,
        "is_locked": record.is_locked,
        "resource": args.resource,
        "action": args.action,
        "scope": resolver.scope(user, args.resource, args.action),
        **decision.model_dump(),
        "can_toggle_lock": resolver.can_toggle_lock(user),
    }
    print(json.dumps(out, ensure_ascii=False, indent=2))
    return 0 if decision.allowed else 2


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the ODB Finder CLI."""
    parser = argparse.ArgumentParser(prog="odbfinder")
    parser.add_argument("--log-level", default=None, help="Override app.log_level (e.g. DEBUG)")
    sub = parser.add_subparsers(dest="command", required=True)

    near = sub.add_parser("nearby", help="Nearest-N records from an origin (omit it for the fallback list).")
    near.add_argument("--lat", type=float, default=None)
    near.add_argument("--lon", type=float, default=None)
    near.add_argument("--max-results", type=int, default=None)
    near.add_argument("--radius-km", type=float, default=None, help="0 means unlimited")
    near.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    near.set_defaults(func=_cmd_nearby)

    area = sub.add_parser("area", help="Records inside the rectangle spanned by two corners.")
    area.add_argument("--lat1", required=True, type=float)
    area.add_argument("--lon1", required=True, type=float)
    area.add_argument("--lat2", required=True, type=float)
    area.add_argument("--lon2", required=True, type=float)
    area.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    area.set_defaults(func=_cmd_area)

    search = sub.add_parser("search", help="Find records by ODB code or city name.")
    search.add_argument("query")
    search.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    search.set_defaults(func=_cmd_search)

    acc = sub.add_parser("access", help="Explain the access decision for a record.")
    acc.add_argument("record_id", type=int)
    acc.add_argument("--user-id", required=True, type=int)
    acc.add_argument("--role", required=True, choices=["admin", "supervisor", "delegate", "user"])
    acc.add_argument("--user-name", default=None)
    acc.add_argument("--resource", default="odb")
    acc.add_argument("--action", default="edit", choices=["view", "edit", "delete", "create"])
    acc.set_defaults(func=_cmd_access)
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint callable used by `python -m odbfinder.cli`."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    func: Any = getattr(args, "func")
    return int(func(args))


if __name__ == "__main__":
    raise SystemExit(main())
