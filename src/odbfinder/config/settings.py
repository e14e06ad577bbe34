"""
Application settings (Pydantic).

Settings come from the packaged `defaults.yaml` (or the file named by
`ODBFINDER_CONFIG_PATH`), then a small set of environment variables:

- `ODBFINDER_LOG_LEVEL`  -> `app.log_level`
- `ODBFINDER_CACHE_DIR`  -> `cache.dir`
- `ODBFINDER_STORE_PATH` -> `store.path`
- `ODBFINDER_STORE_URL`  -> `store.base_url` (and switches `store.backend` to `http`)

Search bounds and role permission tables live in YAML, never in engine code.
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field

from odbfinder.core.env import load_env_file

_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "ODBFINDER_LOG_LEVEL": ("app", "log_level"),
    "ODBFINDER_CACHE_DIR": ("cache", "dir"),
    "ODBFINDER_STORE_PATH": ("store", "path"),
    "ODBFINDER_STORE_URL": ("store", "base_url"),
}


class AppSettings(BaseModel):
    name: str = "ODB Finder"
    timezone: str = "Africa/Cairo"
    http_timeout_seconds: float = 15
    log_level: str = "INFO"
    # Browser origins allowed to call the API; empty disables CORS.
    cors_origins: list[str] = Field(default_factory=list)


class CacheSettings(BaseModel):
    enabled: bool = True
    dir: str = ".cache/odbfinder"
    default_ttl_seconds: int = 60 * 5


class SearchDefaultsSettings(BaseModel):
    max_results: int = Field(10, ge=1)
    search_radius_km: float = Field(0.0, ge=0)
    origin_timeout_seconds: float = Field(10.0, gt=0)
    # Grid bucket size for store-side nearby queries.
    index_cell_size_km: float = Field(25.0, gt=0)
    index_lat0_deg: float = Field(26.8, ge=-90, le=90)


class StoreSettings(BaseModel):
    backend: Literal["json", "http"] = "json"
    path: str = "data/locations.json"
    seed_path: str | None = None
    base_url: str | None = None
    get_all_cache_ttl_seconds: int = 60 * 5


class AccessSettings(BaseModel):
    # role -> resource -> action -> scope
    roles: dict[str, dict[str, dict[str, str]]] = Field(default_factory=dict)
    # user id -> supervisor user id
    reports_to: dict[int, int] = Field(default_factory=dict)


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    search: SearchDefaultsSettings = Field(default_factory=SearchDefaultsSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    access: AccessSettings = Field(default_factory=AccessSettings)


def _load_yaml(text: str, source: str) -> dict[str, Any]:
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{source}: expected a mapping at the YAML root")
    return data


def _package_yaml(filename: str) -> dict[str, Any]:
    text = resources.files("odbfinder.config").joinpath(filename).read_text(encoding="utf-8")
    return _load_yaml(text, filename)


def _with_env(raw: dict[str, Any]) -> dict[str, Any]:
    data = {section: dict(values or {}) for section, values in raw.items()}
    for var, (section, key) in _ENV_OVERRIDES.items():
        value = os.getenv(var)
        if value:
            data.setdefault(section, {})[key] = value
    if os.getenv("ODBFINDER_STORE_URL"):
        data["store"]["backend"] = "http"
    return data


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings (cached)."""
    load_env_file()
    config_path = os.getenv("ODBFINDER_CONFIG_PATH")
    if config_path:
        raw = _load_yaml(Path(config_path).read_text(encoding="utf-8"), config_path)
    else:
        raw = _package_yaml("defaults.yaml")
    return Settings.model_validate(_with_env(raw))


@lru_cache
def get_logging_config() -> dict[str, Any]:
    return _package_yaml("logging.yaml")
