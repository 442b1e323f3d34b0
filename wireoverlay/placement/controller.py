"""Manual marker placement as pure state transitions.

The UI feeds pointer events in; each call returns a new PlacementState and
never mutates the old one. Placement always succeeds, even for clicks
outside the displayed image (the normalized value then leaves 0–1000).
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from wireoverlay.diagram.model import (
    MarkerMap,
    MarkerPosition,
    to_normalized,
    topology_for,
)
from wireoverlay.types import MarkerId, Variant

log = logging.getLogger(__name__)


class DisplayRect(BaseModel):
    """Bounding box of the image as displayed on screen."""

    model_config = ConfigDict(frozen=True)

    width: float = Field(..., gt=0)
    height: float = Field(..., gt=0)


class PlacementEvent(BaseModel):
    """A click, in pixels relative to the displayed image's top-left corner."""

    model_config = ConfigDict(frozen=True)

    pointer_x: float
    pointer_y: float
    rect: DisplayRect
    snap: bool = Field(default=False, description="Axis-snap modifier held (e.g. Shift)")


class PlacementState(BaseModel):
    model_config = ConfigDict(frozen=True)

    variant: Variant
    active: MarkerId
    markers: MarkerMap


def start(variant: Variant | str = Variant.THREE_POINT) -> PlacementState:
    """Empty state with the first marker of ``variant`` active."""
    variant = Variant(variant)
    topo = topology_for(variant)
    return PlacementState(variant=variant, active=topo.markers[0], markers=MarkerMap(variant=variant))


def snap_to_axis(nx: float, ny: float, anchor: MarkerPosition) -> tuple[float, float]:
    """Lock the point onto the anchor's vertical or horizontal line.

    The closer axis wins: if the click is horizontally nearer (dx < dy) x is
    taken from the anchor, otherwise y is. Equal distances lock y.
    """
    dx = abs(nx - anchor.x)
    dy = abs(ny - anchor.y)
    if dx < dy:
        return anchor.x, ny
    return nx, anchor.y


def place_at(state: PlacementState, event: PlacementEvent) -> PlacementState:
    """Commit a click as the active marker's position and advance."""
    nx, ny = to_normalized(event.pointer_x, event.pointer_y, event.rect.width, event.rect.height)

    if event.snap:
        topo = topology_for(state.variant)
        pred_id = topo.predecessor(state.active)
        anchor = state.markers.get(pred_id) if pred_id else None
        if anchor is not None:
            nx, ny = snap_to_axis(nx, ny, anchor)

    markers = state.markers.with_position(state.active, MarkerPosition(x=nx, y=ny))
    next_id = topology_for(state.variant).next_marker(state.active)
    log.debug("Placed %s at (%.1f, %.1f); next %s", state.active.name, nx, ny, next_id.name)
    return state.model_copy(update={"markers": markers, "active": next_id})


def select(state: PlacementState, marker_id: MarkerId) -> PlacementState:
    """Make ``marker_id`` the active marker (e.g. to re-place it)."""
    marker_id = MarkerId(marker_id)
    if marker_id not in topology_for(state.variant).markers:
        raise ValueError(f"{marker_id.name} is not part of the {state.variant.value} variant")
    return state.model_copy(update={"active": marker_id})


def clear(state: PlacementState, marker_id: Optional[MarkerId] = None) -> PlacementState:
    """Forget one placement (the active marker by default); the active id is kept."""
    target = MarkerId(marker_id) if marker_id is not None else state.active
    return state.model_copy(update={"markers": state.markers.without(target)})


def reset(state: PlacementState) -> PlacementState:
    """Drop every placement and start over from the first marker."""
    return start(state.variant)


def replay(state: PlacementState, events: list[PlacementEvent]) -> PlacementState:
    """Apply a sequence of clicks in order."""
    for event in events:
        state = place_at(state, event)
    return state
