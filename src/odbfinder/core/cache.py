"""
On-disk JSON cache with stale-if-error.

The HTTP record store keeps the last good copy of the general location pool here,
so a backend outage degrades to slightly stale markers instead of an empty map.
One file per `(namespace, key)` under `<dir>/<namespace>/<sha256>.json` holding
`{"stored_at": <unix>, "ttl": <seconds>, "value": ...}`.
"""

from __future__ import annotations

import contextvars
import json
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from hashlib import sha256
from pathlib import Path
from typing import Any, Callable, Iterator


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    expired: int = 0
    sets: int = 0
    stale_fallbacks: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


_current_stats: contextvars.ContextVar[CacheStats | None] = contextvars.ContextVar(
    "odbfinder_cache_stats", default=None
)


def _bump(field: str) -> None:
    stats = _current_stats.get()
    if stats is not None:
        setattr(stats, field, getattr(stats, field) + 1)


@contextmanager
def record_cache_stats() -> Iterator[CacheStats]:
    """Count cache traffic inside the block (per task/thread context); used for API `meta`."""
    stats = CacheStats()
    token = _current_stats.set(stats)
    try:
        yield stats
    finally:
        _current_stats.reset(token)


class FileCache:
    def __init__(self, base_dir: Path, enabled: bool = True, default_ttl_seconds: int = 300):
        self._base_dir = Path(base_dir)
        self._enabled = enabled
        self._default_ttl_seconds = int(default_ttl_seconds)

    def _path(self, namespace: str, key: str) -> Path:
        return self._base_dir / namespace / f"{sha256(key.encode('utf-8')).hexdigest()}.json"

    def _load(self, namespace: str, key: str) -> dict[str, Any] | None:
        path = self._path(namespace, key)
        try:
            envelope = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError):
            # Unreadable envelope: treat as a miss, the next set() replaces it.
            return None
        if not isinstance(envelope, dict) or "value" not in envelope:
            return None
        return envelope

    def get(self, namespace: str, key: str, ttl_seconds: int | None = None, *, allow_stale: bool = False) -> Any | None:
        """Cached value, or None when missing (or expired, unless `allow_stale`)."""
        if not self._enabled:
            return None
        envelope = self._load(namespace, key)
        if envelope is None:
            _bump("misses")
            return None
        ttl = ttl_seconds if ttl_seconds is not None else int(envelope.get("ttl", self._default_ttl_seconds))
        if not allow_stale and int(time.time()) - int(envelope.get("stored_at", 0)) > ttl:
            _bump("misses")
            _bump("expired")
            return None
        _bump("hits")
        return envelope["value"]

    def set(self, namespace: str, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        if not self._enabled:
            return
        path = self._path(namespace, key)
        path.parent.mkdir(parents=True, exist_ok=True)
        envelope = {
            "stored_at": int(time.time()),
            "ttl": int(ttl_seconds if ttl_seconds is not None else self._default_ttl_seconds),
            "value": value,
        }
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(envelope, ensure_ascii=False), encoding="utf-8")
        tmp.replace(path)
        _bump("sets")

    def invalidate(self, namespace: str, key: str) -> None:
        self._path(namespace, key).unlink(missing_ok=True)

    def get_or_set(
        self,
        namespace: str,
        key: str,
        builder: Callable[[], Any],
        ttl_seconds: int | None = None,
        *,
        stale_if_error: bool = False,
        stale_predicate: Callable[[Exception], bool] | None = None,
    ) -> Any:
        """Fresh cached value, else `builder()` (stored on success).

        With `stale_if_error`, a failing builder returns the expired value instead when
        one exists and `stale_predicate(exc)` accepts the error (no predicate: any error).
        """
        cached = self.get(namespace, key, ttl_seconds)
        if cached is not None:
            return cached
        try:
            value = builder()
        except Exception as exc:
            if not stale_if_error or (stale_predicate is not None and not stale_predicate(exc)):
                raise
            stale = self.get(namespace, key, allow_stale=True)
            if stale is None:
                raise
            _bump("stale_fallbacks")
            return stale
        self.set(namespace, key, value, ttl_seconds)
        return value
