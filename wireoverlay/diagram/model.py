"""Normalized marker coordinates and the fixed diagram topologies.

Positions live on a 0–1000 grid independent of the photo's resolution:
(0, 0) is the top-left corner and (1000, 1000) the bottom-right. Values
outside the grid are kept as-is; they simply land outside the raster.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterator, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from wireoverlay.types import MarkerId, Variant

NORMALIZED_SCALE = 1000.0


class MarkerPosition(BaseModel):
    """A marker center on the normalized grid."""

    model_config = ConfigDict(frozen=True)

    x: float = Field(..., description="Horizontal position, 0 = left edge, 1000 = right edge")
    y: float = Field(..., description="Vertical position, 0 = top edge, 1000 = bottom edge")


@dataclass(frozen=True)
class Segment:
    """A line between two markers, identified by its endpoints."""

    start: MarkerId
    end: MarkerId

    @property
    def key(self) -> str:
        return f"{self.start.name}-{self.end.name}"

    @classmethod
    def parse(cls, key: str) -> Segment:
        """Parse ``"P1-PA"`` (names) or ``"1-A"`` (labels)."""
        left, sep, right = key.strip().partition("-")
        if not sep:
            raise ValueError(f"Segment key must look like 'P1-P2', got {key!r}")
        return cls(_parse_marker_id(left), _parse_marker_id(right))


def _parse_marker_id(token: str) -> MarkerId:
    token = token.strip()
    if token.upper() in MarkerId.__members__:
        return MarkerId[token.upper()]
    return MarkerId(token.upper())


@dataclass(frozen=True)
class Topology:
    """Marker order, segment order and predecessor chain of a variant."""

    variant: Variant
    markers: tuple[MarkerId, ...]
    segments: tuple[Segment, ...]
    predecessors: Mapping[MarkerId, MarkerId]

    def next_marker(self, marker_id: MarkerId) -> MarkerId:
        """The marker after ``marker_id``, or ``marker_id`` itself when last."""
        idx = self.markers.index(marker_id)
        if idx + 1 < len(self.markers):
            return self.markers[idx + 1]
        return marker_id

    def predecessor(self, marker_id: MarkerId) -> Optional[MarkerId]:
        return self.predecessors.get(marker_id)


TOPOLOGIES: dict[Variant, Topology] = {
    Variant.THREE_POINT: Topology(
        variant=Variant.THREE_POINT,
        markers=(MarkerId.P1, MarkerId.PA, MarkerId.P2),
        segments=(Segment(MarkerId.P1, MarkerId.PA), Segment(MarkerId.PA, MarkerId.P2)),
        predecessors={MarkerId.PA: MarkerId.P1, MarkerId.P2: MarkerId.PA},
    ),
    Variant.FOUR_POINT: Topology(
        variant=Variant.FOUR_POINT,
        markers=(MarkerId.P1, MarkerId.P2, MarkerId.P3, MarkerId.P4),
        segments=(Segment(MarkerId.P1, MarkerId.P2), Segment(MarkerId.P3, MarkerId.P4)),
        # Snapping stays inside each independent pair.
        predecessors={MarkerId.P2: MarkerId.P1, MarkerId.P4: MarkerId.P3},
    ),
}


def topology_for(variant: Variant | str) -> Topology:
    return TOPOLOGIES[Variant(variant)]


class MarkerMap(BaseModel):
    """Immutable MarkerId → position mapping. Absent ids are simply missing."""

    model_config = ConfigDict(frozen=True)

    variant: Variant = Variant.FOUR_POINT
    positions: Mapping[MarkerId, MarkerPosition] = Field(default_factory=dict, validate_default=True)

    @field_validator("positions", mode="after")
    @classmethod
    def _freeze_positions(cls, value: Mapping[MarkerId, MarkerPosition]) -> Mapping[MarkerId, MarkerPosition]:
        # Read-only view; frozen=True alone still allows item assignment
        return MappingProxyType(dict(value))

    @field_serializer("positions", mode="wrap")
    def _dump_positions(self, value: Mapping[MarkerId, MarkerPosition], handler):
        return handler(dict(value))

    def get(self, marker_id: MarkerId) -> Optional[MarkerPosition]:
        return self.positions.get(marker_id)

    def present(self) -> Iterator[tuple[MarkerId, MarkerPosition]]:
        """Present markers in the variant's declaration order."""
        for marker_id in topology_for(self.variant).markers:
            pos = self.positions.get(marker_id)
            if pos is not None:
                yield marker_id, pos

    def with_position(self, marker_id: MarkerId, pos: MarkerPosition) -> MarkerMap:
        positions = dict(self.positions)
        positions[marker_id] = pos
        return MarkerMap(variant=self.variant, positions=positions)

    def without(self, marker_id: MarkerId) -> MarkerMap:
        positions = {k: v for k, v in self.positions.items() if k != marker_id}
        return MarkerMap(variant=self.variant, positions=positions)

    def is_complete(self) -> bool:
        return all(m in self.positions for m in topology_for(self.variant).markers)

    def to_labels(self) -> dict[str, Optional[dict[str, float]]]:
        """Serialize keyed by printed label, ``None`` for absent markers."""
        out: dict[str, Optional[dict[str, float]]] = {}
        for marker_id in topology_for(self.variant).markers:
            pos = self.positions.get(marker_id)
            out[marker_id.value] = {"x": pos.x, "y": pos.y} if pos else None
        return out

    @classmethod
    def from_labels(
        cls, variant: Variant | str, data: Mapping[str, Optional[Mapping[str, float]]]
    ) -> MarkerMap:
        """Build from a label-keyed dict such as ``{"1": {"x": 1, "y": 2}, "A": None}``.

        Labels that are not part of the variant are ignored.
        """
        variant = Variant(variant)
        positions: dict[MarkerId, MarkerPosition] = {}
        for marker_id in topology_for(variant).markers:
            raw = data.get(marker_id.value)
            if raw is None:
                raw = data.get(marker_id.name)
            if raw is not None:
                positions[marker_id] = MarkerPosition.model_validate(raw)
        return cls(variant=variant, positions=positions)


def lookup(markers: MarkerMap, marker_id: MarkerId) -> Optional[MarkerPosition]:
    return markers.get(marker_id)


def to_pixel(pos: MarkerPosition, width: float, height: float) -> tuple[float, float]:
    """Map a normalized position onto a raster of ``width`` x ``height`` pixels."""
    return pos.x * width / NORMALIZED_SCALE, pos.y * height / NORMALIZED_SCALE


def to_normalized(px: float, py: float, width: float, height: float) -> tuple[float, float]:
    """Inverse of :func:`to_pixel`; not clamped to the 0–1000 grid."""
    return px * NORMALIZED_SCALE / width, py * NORMALIZED_SCALE / height
