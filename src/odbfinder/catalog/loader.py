"""
Location catalog loader.

Catalogs are JSON arrays of location records, either the bundled seed catalog
(`odbfinder/catalog/seed_locations.json`) or an import file. We validate them into
typed Pydantic models so store and engine code can assume a consistent shape.
"""

from __future__ import annotations

import json
from importlib import resources
from pathlib import Path

from pydantic import TypeAdapter

from odbfinder.core.env import resolve_path
from odbfinder.domain.models import LocationRecord


_LOCATIONS_ADAPTER = TypeAdapter(list[LocationRecord])


def load_locations(path: str | Path) -> list[LocationRecord]:
    """Load and validate a location catalog JSON file."""
    resolved = resolve_path(path)
    payload = json.loads(resolved.read_text(encoding="utf-8"))
    return _LOCATIONS_ADAPTER.validate_python(payload)


def load_seed_locations() -> list[LocationRecord]:
    """Load the bundled seed catalog used to initialize an empty store."""
    text = resources.files("odbfinder.catalog").joinpath("seed_locations.json").read_text(encoding="utf-8")
    return _LOCATIONS_ADAPTER.validate_json(text)
