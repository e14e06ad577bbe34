"""
Origin acquisition.

One-shot, asynchronous, bounded by a fixed timeout (10 s by default). The outcome
is either a `GeoPoint` or one of three failure kinds; it never raises and never
blocks past the timeout. Failure only switches the proximity engine to its
no-distance fallback.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

from odbfinder.domain.models import GeoPoint, OriginFailure

logger = logging.getLogger(__name__)

DEFAULT_ORIGIN_TIMEOUT_SECONDS = 10.0


class OriginError(Exception):
    """Raised by origin providers; `kind` classifies the failure."""

    def __init__(self, kind: OriginFailure, message: str = ""):
        super().__init__(message or kind)
        self.kind: OriginFailure = kind


class OriginProvider(Protocol):
    async def locate(self) -> GeoPoint: ...


@dataclass(frozen=True)
class OriginOutcome:
    origin: GeoPoint | None = None
    failure: OriginFailure | None = None

    @property
    def ok(self) -> bool:
        return self.origin is not None


class StaticOriginProvider:
    """Fixed origin (CLI/API query params); `None` behaves like an unsupported device."""

    def __init__(self, origin: GeoPoint | None):
        self._origin = origin

    async def locate(self) -> GeoPoint:
        if self._origin is None:
            raise OriginError("position_unavailable", "no position supplied")
        return self._origin


async def acquire_origin(
    provider: OriginProvider | None, *, timeout_seconds: float = DEFAULT_ORIGIN_TIMEOUT_SECONDS
) -> OriginOutcome:
    """Await `provider.locate()` and classify the result."""
    if provider is None:
        logger.info("Origin unsupported: no provider configured")
        return OriginOutcome(failure="position_unavailable")
    try:
        origin = await asyncio.wait_for(provider.locate(), timeout=float(timeout_seconds))
    except asyncio.TimeoutError:
        logger.warning("Origin acquisition timed out after %.1fs", float(timeout_seconds))
        return OriginOutcome(failure="timeout")
    except OriginError as e:
        logger.warning("Origin acquisition failed: %s", e.kind)
        return OriginOutcome(failure=e.kind)
    except Exception as e:  # noqa: BLE001 - any provider fault degrades to "unavailable"
        logger.warning("Origin provider error (%s); treating as position_unavailable", type(e).__name__)
        return OriginOutcome(failure="position_unavailable")
    return OriginOutcome(origin=origin)
