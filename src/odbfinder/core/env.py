"""
Project root and `.env` handling.

Relative paths in settings (`store.path`, `store.seed_path`, `cache.dir`) are
anchored at the project root, not at whatever directory uvicorn, the CLI or pytest
was started from. The root is `ODBFINDER_HOME` when set, else the nearest ancestor
of the working directory holding a `pyproject.toml` or `.env`, else the working
directory itself.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

_ROOT_MARKERS = ("pyproject.toml", ".env")


@lru_cache
def project_root() -> Path:
    home = os.getenv("ODBFINDER_HOME")
    if home:
        return Path(home).expanduser().resolve()
    cwd = Path.cwd().resolve()
    for candidate in (cwd, *cwd.parents):
        if any((candidate / marker).is_file() for marker in _ROOT_MARKERS):
            return candidate
    return cwd


@lru_cache
def load_env_file() -> Path | None:
    """Load `ODBFINDER_ENV_FILE` or `<root>/.env` once. Variables already set in the process win."""
    path = Path(os.getenv("ODBFINDER_ENV_FILE") or project_root() / ".env").expanduser()
    if not path.is_file():
        return None
    load_dotenv(dotenv_path=path, override=False)
    return path


def resolve_path(path: str | Path) -> Path:
    p = Path(path).expanduser()
    return p if p.is_absolute() else (project_root() / p).resolve()
