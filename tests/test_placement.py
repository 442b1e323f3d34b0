"""Test manual marker placement and axis-snap."""

import pytest
from pydantic import ValidationError

from wireoverlay.diagram.model import MarkerPosition
from wireoverlay.placement import controller
from wireoverlay.placement.controller import DisplayRect, PlacementEvent, snap_to_axis
from wireoverlay.types import MarkerId, Variant

RECT = DisplayRect(width=1000, height=1000)


def _click(x: float, y: float, snap: bool = False, rect: DisplayRect = RECT) -> PlacementEvent:
    return PlacementEvent(pointer_x=x, pointer_y=y, rect=rect, snap=snap)


def _with_anchor(x: float, y: float):
    """Three-point state with P1 placed and PA active."""
    return controller.place_at(controller.start(Variant.THREE_POINT), _click(x, y))


def test_start_state():
    state = controller.start("three_point")
    assert state.active == MarkerId.P1
    assert state.markers.positions == {}


def test_pointer_is_normalized_against_display_rect():
    state = controller.start(Variant.THREE_POINT)
    state = controller.place_at(state, _click(200, 150, rect=DisplayRect(width=400, height=300)))
    assert state.markers.get(MarkerId.P1) == MarkerPosition(x=500, y=500)


def test_auto_advance_stays_on_last():
    state = controller.start(Variant.THREE_POINT)
    seen = [state.active]
    for x in (100, 200, 300):
        state = controller.place_at(state, _click(x, 100))
        seen.append(state.active)
    assert seen == [MarkerId.P1, MarkerId.PA, MarkerId.P2, MarkerId.P2]

    # A fourth click overwrites the last marker.
    state = controller.place_at(state, _click(400, 100))
    assert state.active == MarkerId.P2
    assert state.markers.get(MarkerId.P2) == MarkerPosition(x=400, y=100)
    assert state.markers.get(MarkerId.P1) == MarkerPosition(x=100, y=100)


def test_four_point_sequence():
    state = controller.start(Variant.FOUR_POINT)
    for x in (100, 200, 300, 400, 500):
        state = controller.place_at(state, _click(x, 100))
    assert state.active == MarkerId.P4
    assert state.markers.is_complete()


def test_snap_to_vertical_line_when_closer_horizontally():
    state = controller.place_at(_with_anchor(500, 500), _click(505, 700, snap=True))
    assert state.markers.get(MarkerId.PA) == MarkerPosition(x=500, y=700)


def test_snap_to_horizontal_line_when_closer_vertically():
    state = controller.place_at(_with_anchor(500, 500), _click(520, 495, snap=True))
    assert state.markers.get(MarkerId.PA) == MarkerPosition(x=520, y=500)


def test_snap_tie_locks_horizontal_line():
    state = controller.place_at(_with_anchor(500, 500), _click(520, 480, snap=True))
    assert state.markers.get(MarkerId.PA) == MarkerPosition(x=520, y=500)


def test_snap_to_axis_comparison():
    anchor = MarkerPosition(x=500, y=500)
    assert snap_to_axis(510, 600, anchor) == (500, 600)
    assert snap_to_axis(600, 510, anchor) == (600, 500)
    assert snap_to_axis(520, 480, anchor) == (520, 500)


def test_snap_uses_immediate_predecessor():
    state = controller.start(Variant.THREE_POINT)
    state = controller.place_at(state, _click(100, 100))
    state = controller.place_at(state, _click(100, 500))
    state = controller.place_at(state, _click(600, 510, snap=True))
    assert state.markers.get(MarkerId.P2) == MarkerPosition(x=600, y=500)


def test_snap_without_predecessor_is_ignored():
    state = controller.place_at(controller.start(Variant.THREE_POINT), _click(123, 456, snap=True))
    assert state.markers.get(MarkerId.P1) == MarkerPosition(x=123, y=456)


def test_snap_with_unplaced_predecessor_is_ignored():
    state = controller.select(controller.start(Variant.THREE_POINT), MarkerId.PA)
    state = controller.place_at(state, _click(520, 480, snap=True))
    assert state.markers.get(MarkerId.PA) == MarkerPosition(x=520, y=480)


def test_four_point_snap_stays_within_pair():
    state = controller.start(Variant.FOUR_POINT)
    state = controller.place_at(state, _click(100, 100))
    state = controller.place_at(state, _click(110, 400, snap=True))
    assert state.markers.get(MarkerId.P2) == MarkerPosition(x=100, y=400)
    # P3 starts a new pair: no snapping to P2
    state = controller.place_at(state, _click(105, 700, snap=True))
    assert state.markers.get(MarkerId.P3) == MarkerPosition(x=105, y=700)


def test_click_outside_image_is_accepted():
    state = controller.place_at(controller.start(Variant.THREE_POINT), _click(-50, 1200))
    assert state.markers.get(MarkerId.P1) == MarkerPosition(x=-50, y=1200)


def test_states_are_not_mutated():
    before = controller.start(Variant.THREE_POINT)
    after = controller.place_at(before, _click(1, 1))
    assert before.active == MarkerId.P1
    assert before.markers.get(MarkerId.P1) is None
    assert after.markers.get(MarkerId.P1) is not None


def test_select_clear_reset():
    state = controller.replay(
        controller.start(Variant.THREE_POINT),
        [_click(100, 100), _click(200, 200), _click(300, 300)],
    )
    state = controller.select(state, MarkerId.P1)
    assert state.active == MarkerId.P1

    state = controller.clear(state, MarkerId.PA)
    assert state.markers.get(MarkerId.PA) is None
    assert state.markers.get(MarkerId.P1) is not None

    state = controller.reset(state)
    assert state.active == MarkerId.P1
    assert state.markers.positions == {}


def test_select_rejects_foreign_marker():
    with pytest.raises(ValueError):
        controller.select(controller.start(Variant.THREE_POINT), MarkerId.P4)


def test_display_rect_must_have_area():
    with pytest.raises(ValidationError):
        DisplayRect(width=0, height=100)
