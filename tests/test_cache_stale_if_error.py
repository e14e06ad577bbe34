import pytest

from odbfinder.core.cache import FileCache, record_cache_stats


def test_file_cache_stale_if_error_returns_expired_value(monkeypatch, tmp_path):
    cache = FileCache(tmp_path, enabled=True, default_ttl_seconds=1)

    monkeypatch.setattr("odbfinder.core.cache.time.time", lambda: 0)
    cache.set("locations", "pool", [{"id": 1}], ttl_seconds=1)

    monkeypatch.setattr("odbfinder.core.cache.time.time", lambda: 100)

    def builder():
        raise RuntimeError("backend down")

    with record_cache_stats() as stats:
        val = cache.get_or_set(
            "locations",
            "pool",
            builder,
            ttl_seconds=1,
            stale_if_error=True,
            stale_predicate=lambda exc: isinstance(exc, RuntimeError),
        )
    assert val == [{"id": 1}]
    assert stats.expired == 1
    assert stats.stale_fallbacks == 1


def test_file_cache_stale_if_error_respects_predicate(monkeypatch, tmp_path):
    cache = FileCache(tmp_path, enabled=True, default_ttl_seconds=1)

    monkeypatch.setattr("odbfinder.core.cache.time.time", lambda: 0)
    cache.set("locations", "pool", [{"id": 1}], ttl_seconds=1)

    monkeypatch.setattr("odbfinder.core.cache.time.time", lambda: 100)

    def builder():
        raise RuntimeError("backend down")

    with pytest.raises(RuntimeError):
        cache.get_or_set(
            "locations",
            "pool",
            builder,
            ttl_seconds=1,
            stale_if_error=True,
            stale_predicate=lambda exc: isinstance(exc, ValueError),
        )


def test_file_cache_invalidate_forces_rebuild(tmp_path):
    cache = FileCache(tmp_path, enabled=True, default_ttl_seconds=60)
    cache.set("locations", "pool", [1])
    cache.invalidate("locations", "pool")
    assert cache.get("locations", "pool") is None
    assert cache.get_or_set("locations", "pool", lambda: [2]) == [2]
    assert cache.get("locations", "pool") == [2]


def test_disabled_cache_always_builds(tmp_path):
    cache = FileCache(tmp_path, enabled=False)
    calls = []
    for _ in range(2):
        cache.get_or_set("ns", "k", lambda: calls.append(1) or len(calls))
    assert len(calls) == 2
