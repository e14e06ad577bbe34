"""
Logging setup.

`config/logging.yaml` is the base `dictConfig`; the effective level (argument,
else `app.log_level` / `ODBFINDER_LOG_LEVEL`) replaces the root and handler levels.
Both the API module and the CLI call this at startup.
"""

from __future__ import annotations

import copy
import logging.config

from odbfinder.config.settings import get_logging_config, get_settings


def configure_logging(level: str | None = None) -> None:
    # dictConfig mutates what it is given; the cached config must stay pristine.
    config = copy.deepcopy(get_logging_config())
    level = (level or get_settings().app.log_level).upper()
    config.setdefault("root", {})["level"] = level
    for handler in (config.get("handlers") or {}).values():
        handler["level"] = level
    logging.config.dictConfig(config)
