"""Search settings providers consumed by the discovery session."""

from __future__ import annotations

from typing import Protocol

from odbfinder.config.settings import Settings
from odbfinder.domain.models import SearchSettings


class SettingsProvider(Protocol):
    async def get_search_settings(self) -> SearchSettings: ...


def default_search_settings(settings: Settings) -> SearchSettings:
    return SearchSettings(
        max_results=settings.search.max_results,
        search_radius_km=settings.search.search_radius_km,
    )


class ConfigSettingsProvider:
    """Search bounds straight from the loaded (possibly overridden) settings."""

    def __init__(self, settings: Settings):
        self._settings = settings

    async def get_search_settings(self) -> SearchSettings:
        return default_search_settings(self._settings)
