"""
Mode and draw-gesture state machines.

`ModeController` decides whose output is authoritative:

    NEAREST/ACQUIRING_ORIGIN --origin resolved/failed--> NEAREST/RESOLVED
    NEAREST --draw completed--> AREA
    AREA --reset--> NEAREST/RESOLVED          (origin cached)
    AREA --reset--> NEAREST/ACQUIRING_ORIGIN  (no cached origin)

`DrawGesture` is the rectangle-drag protocol nested under drawing mode:

    IDLE --pointer_down--> ANCHORED --pointer_move--> TRACKING --pointer_up--> IDLE

The only exclusive resource is map panning (`PanLock`): suspended on pointer_down,
always resumed on pointer_up or when drawing is disabled mid-drag.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from odbfinder.core.geo import GeoPoint
from odbfinder.search.area import Rectangle

logger = logging.getLogger(__name__)


class InvalidTransition(RuntimeError):
    """A state machine event arrived in a state that cannot accept it."""


class Mode(str, enum.Enum):
    NEAREST = "NEAREST"
    AREA = "AREA"


class NearestPhase(str, enum.Enum):
    ACQUIRING_ORIGIN = "acquiring-origin"
    RESOLVED = "resolved"


class ModeController:
    def __init__(self) -> None:
        self._mode = Mode.NEAREST
        self._phase: NearestPhase | None = NearestPhase.ACQUIRING_ORIGIN

    @property
    def mode(self) -> Mode:
        return self._mode

    @property
    def phase(self) -> NearestPhase | None:
        """NEAREST sub-state; None while in AREA."""
        return self._phase

    @property
    def acquiring_origin(self) -> bool:
        return self._phase is NearestPhase.ACQUIRING_ORIGIN

    def origin_settled(self) -> None:
        """Origin succeeded or failed; both resolve NEAREST."""
        if self._mode is not Mode.NEAREST or self._phase is not NearestPhase.ACQUIRING_ORIGIN:
            raise InvalidTransition(f"origin_settled in {self._mode.value}/{self._phase}")
        self._phase = NearestPhase.RESOLVED

    def area_selected(self) -> None:
        if self._mode is not Mode.NEAREST:
            raise InvalidTransition(f"area_selected in {self._mode.value}")
        self._mode = Mode.AREA
        self._phase = None

    def area_refined(self) -> None:
        """A further rectangle drawn while already in AREA."""
        if self._mode is not Mode.AREA:
            raise InvalidTransition(f"area_refined in {self._mode.value}")

    def reset(self, *, origin_cached: bool) -> None:
        if self._mode is not Mode.AREA:
            raise InvalidTransition(f"reset in {self._mode.value}")
        self._mode = Mode.NEAREST
        self._phase = NearestPhase.RESOLVED if origin_cached else NearestPhase.ACQUIRING_ORIGIN


class PanLock:
    """Map panning flag; held exclusively by an active drag."""

    def __init__(self) -> None:
        self._enabled = True

    @property
    def panning_enabled(self) -> bool:
        return self._enabled

    def suspend(self) -> None:
        self._enabled = False

    def resume(self) -> None:
        self._enabled = True


class GesturePhase(str, enum.Enum):
    IDLE = "idle"
    ANCHORED = "anchored"
    TRACKING = "tracking"


@dataclass(frozen=True)
class DrawCompleted:
    rectangle: Rectangle


class DrawGesture:
    def __init__(self, pan_lock: PanLock | None = None):
        self._pan = pan_lock or PanLock()
        self._phase = GesturePhase.IDLE
        self._drawing_enabled = False
        self._anchor: GeoPoint | None = None
        self._cursor: GeoPoint | None = None
        self._last: Rectangle | None = None

    @property
    def phase(self) -> GesturePhase:
        return self._phase

    @property
    def drawing_enabled(self) -> bool:
        return self._drawing_enabled

    @property
    def pan_lock(self) -> PanLock:
        return self._pan

    @property
    def preview(self) -> Rectangle | None:
        """Rectangle following the pointer while a drag is in progress."""
        if self._anchor is None or self._cursor is None:
            return None
        return Rectangle.from_corners(self._anchor, self._cursor)

    @property
    def last_rectangle(self) -> Rectangle | None:
        return self._last

    def enable(self) -> None:
        self._drawing_enabled = True
        # Starting a new draw discards the previous selection.
        self._last = None

    def disable(self) -> None:
        """Leave drawing mode; an in-progress drag is discarded and panning restored."""
        if self._phase is not GesturePhase.IDLE:
            logger.debug("Draw cancelled in phase=%s", self._phase.value)
        self._drawing_enabled = False
        self._phase = GesturePhase.IDLE
        self._anchor = None
        self._cursor = None
        self._pan.resume()

    def clear(self) -> None:
        """Disable drawing and forget the last completed rectangle."""
        self.disable()
        self._last = None

    def pointer_down(self, point: GeoPoint) -> None:
        if not self._drawing_enabled or self._phase is not GesturePhase.IDLE:
            return
        self._pan.suspend()
        self._anchor = point
        self._cursor = point
        self._phase = GesturePhase.ANCHORED

    def pointer_move(self, point: GeoPoint) -> None:
        if self._phase is GesturePhase.IDLE:
            return
        self._cursor = point
        self._phase = GesturePhase.TRACKING

    def pointer_up(self, point: GeoPoint | None = None) -> DrawCompleted | None:
        """Finish the drag; returns the completed rectangle (possibly degenerate)."""
        if self._phase is GesturePhase.IDLE or self._anchor is None:
            return None
        if point is not None:
            self._cursor = point
        rect = Rectangle.from_corners(self._anchor, self._cursor or self._anchor)
        self._pan.resume()
        self._phase = GesturePhase.IDLE
        self._anchor = None
        self._cursor = None
        # One rectangle per activation, as with a toolbar "draw box" button.
        self._drawing_enabled = False
        self._last = rect
        return DrawCompleted(rectangle=rect)
