import pytest

from odbfinder.core.geo import GeoPoint
from odbfinder.search.area import Rectangle
from odbfinder.session.mode import DrawGesture, GesturePhase, InvalidTransition, Mode, ModeController, NearestPhase


def test_mode_controller_lifecycle():
    mc = ModeController()
    assert (mc.mode, mc.phase) == (Mode.NEAREST, NearestPhase.ACQUIRING_ORIGIN)

    mc.origin_settled()
    assert mc.phase is NearestPhase.RESOLVED

    mc.area_selected()
    assert (mc.mode, mc.phase) == (Mode.AREA, None)
    mc.area_refined()
    assert mc.mode is Mode.AREA

    mc.reset(origin_cached=True)
    assert (mc.mode, mc.phase) == (Mode.NEAREST, NearestPhase.RESOLVED)


def test_reset_without_cached_origin_reacquires():
    mc = ModeController()
    mc.area_selected()
    mc.reset(origin_cached=False)
    assert mc.acquiring_origin


def test_invalid_transitions_raise():
    mc = ModeController()
    with pytest.raises(InvalidTransition):
        mc.reset(origin_cached=True)
    with pytest.raises(InvalidTransition):
        mc.area_refined()
    mc.origin_settled()
    with pytest.raises(InvalidTransition):
        mc.origin_settled()


def test_drag_produces_normalized_rectangle_and_releases_pan():
    g = DrawGesture()
    g.enable()
    g.pointer_down(GeoPoint(29.0, 32.0))
    assert g.phase is GesturePhase.ANCHORED
    assert g.pan_lock.panning_enabled is False

    g.pointer_move(GeoPoint(31.0, 30.0))
    assert g.phase is GesturePhase.TRACKING
    assert g.preview == Rectangle(north=31.0, south=29.0, east=32.0, west=30.0)

    done = g.pointer_up()
    assert done is not None
    assert done.rectangle == Rectangle(north=31.0, south=29.0, east=32.0, west=30.0)
    assert g.phase is GesturePhase.IDLE
    assert g.pan_lock.panning_enabled is True
    assert g.drawing_enabled is False
    assert g.last_rectangle == done.rectangle


def test_pointer_down_ignored_unless_drawing_enabled():
    g = DrawGesture()
    g.pointer_down(GeoPoint(30.0, 31.0))
    assert g.phase is GesturePhase.IDLE
    assert g.pan_lock.panning_enabled is True
    assert g.pointer_up() is None


def test_disable_mid_drag_restores_panning():
    g = DrawGesture()
    g.enable()
    g.pointer_down(GeoPoint(30.0, 31.0))
    g.pointer_move(GeoPoint(30.5, 31.5))
    g.disable()
    assert g.phase is GesturePhase.IDLE
    assert g.pan_lock.panning_enabled is True
    assert g.preview is None
    assert g.pointer_up() is None


def test_click_without_move_is_a_degenerate_rectangle():
    g = DrawGesture()
    g.enable()
    g.pointer_down(GeoPoint(30.0, 31.0))
    done = g.pointer_up()
    assert done.rectangle.is_degenerate


def test_enable_discards_previous_selection():
    g = DrawGesture()
    g.enable()
    g.pointer_down(GeoPoint(30.0, 31.0))
    g.pointer_up(GeoPoint(31.0, 32.0))
    assert g.last_rectangle is not None
    g.enable()
    assert g.last_rectangle is None
