"""
Per-request search overrides.

The nearby endpoint and the CLI may change the result bounds for a single request.
Only the keys in `OVERRIDABLE` are accepted; anything else is rejected with its
dotted path, so a typo never silently falls back to the defaults. Permission
tables, store locations and URLs are never overridable.
"""

from __future__ import annotations

from typing import Any, Mapping

from odbfinder.config.settings import Settings

OVERRIDABLE: dict[str, frozenset[str]] = {
    "search": frozenset({"max_results", "search_radius_km"}),
}


def _checked(overrides: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
    out: dict[str, dict[str, Any]] = {}
    for section, values in overrides.items():
        allowed = OVERRIDABLE.get(section)
        if allowed is None:
            raise ValueError(f"settings_overrides contains a disallowed key: '{section}'")
        if not isinstance(values, Mapping):
            raise ValueError(f"settings_overrides key '{section}' must be a mapping")
        for key in values:
            if key not in allowed:
                raise ValueError(f"settings_overrides contains a disallowed key: '{section}.{key}'")
        out[section] = dict(values)
    return out


def apply_settings_overrides(settings: Settings, overrides: Mapping[str, Any] | None) -> Settings:
    """Return a re-validated copy of `settings` with `overrides` applied (or `settings` itself)."""
    if not overrides:
        return settings
    payload = settings.model_dump()
    for section, values in _checked(overrides).items():
        payload[section] = {**payload[section], **values}
    # Pydantic ranges (max_results >= 1, radius >= 0) are enforced here; errors are ValueErrors.
    return Settings.model_validate(payload)
