"""Build the configured record store (`store.backend` in settings)."""

from __future__ import annotations

from odbfinder.catalog.loader import load_locations
from odbfinder.config.settings import Settings
from odbfinder.core.cache import FileCache
from odbfinder.core.env import resolve_path
from odbfinder.store.base import RecordStore
from odbfinder.store.http_store import HttpRecordStore
from odbfinder.store.json_store import JsonFileRecordStore


def build_cache(settings: Settings) -> FileCache:
    return FileCache(
        resolve_path(settings.cache.dir),
        enabled=settings.cache.enabled,
        default_ttl_seconds=settings.cache.default_ttl_seconds,
    )


def build_store(settings: Settings) -> RecordStore:
    cfg = settings.store
    if cfg.backend == "http":
        if not cfg.base_url:
            raise ValueError("store.base_url is required when store.backend is 'http'")
        return HttpRecordStore(
            cfg.base_url,
            build_cache(settings),
            timeout_seconds=settings.app.http_timeout_seconds,
            get_all_ttl_seconds=cfg.get_all_cache_ttl_seconds,
        )

    seed = load_locations(cfg.seed_path) if cfg.seed_path else None
    return JsonFileRecordStore(
        resolve_path(cfg.path),
        seed=seed,
        timezone=settings.app.timezone,
        cell_size_km=settings.search.index_cell_size_km,
        lat0_deg=settings.search.index_lat0_deg,
    )
