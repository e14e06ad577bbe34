import asyncio

from odbfinder.domain.models import GeoPoint
from odbfinder.session.origin import OriginError, StaticOriginProvider, acquire_origin


class _SlowProvider:
    async def locate(self) -> GeoPoint:
        await asyncio.sleep(5)
        return GeoPoint(lat=30.0, lon=31.0)


class _DeniedProvider:
    async def locate(self) -> GeoPoint:
        raise OriginError("permission_denied", "user said no")


class _BrokenProvider:
    async def locate(self) -> GeoPoint:
        raise RuntimeError("sensor glitch")


def test_acquire_origin_success():
    origin = GeoPoint(lat=30.0444, lon=31.2357)
    outcome = asyncio.run(acquire_origin(StaticOriginProvider(origin)))
    assert outcome.ok
    assert outcome.origin == origin
    assert outcome.failure is None


def test_acquire_origin_times_out_without_raising():
    outcome = asyncio.run(acquire_origin(_SlowProvider(), timeout_seconds=0.05))
    assert not outcome.ok
    assert outcome.failure == "timeout"


def test_acquire_origin_classifies_failures():
    assert asyncio.run(acquire_origin(_DeniedProvider())).failure == "permission_denied"
    assert asyncio.run(acquire_origin(_BrokenProvider())).failure == "position_unavailable"
    assert asyncio.run(acquire_origin(StaticOriginProvider(None))).failure == "position_unavailable"


def test_acquire_origin_without_provider_is_unavailable():
    outcome = asyncio.run(acquire_origin(None))
    assert outcome.failure == "position_unavailable"
