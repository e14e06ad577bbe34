"""
Timezone-aware timestamps.

Audit stamps (`last_edited_at`, log timestamps) are always timezone-aware so records
written by the API, CLI and remote backend compare correctly.
"""

from __future__ import annotations

from datetime import datetime, timezone as dt_timezone
from zoneinfo import ZoneInfo


def now_in(timezone: str) -> datetime:
    """Current time as an aware datetime in `timezone`."""
    return datetime.now(dt_timezone.utc).astimezone(ZoneInfo(timezone))
