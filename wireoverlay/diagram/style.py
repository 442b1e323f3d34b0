"""Visual style constants and the segment style resolver.

Every size scales with the photo's width so a diagram drawn on a phone
snapshot and on a 4K photo looks the same.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict

from wireoverlay.diagram.model import Segment, topology_for
from wireoverlay.types import StyleKind, Variant

RGB = tuple[int, int, int]

# ---------------------------------------------------------------------------
# Colors
# ---------------------------------------------------------------------------
COLOR_PRIMARY = (255, 0, 0)        # solid run (red)
COLOR_SECONDARY = (0, 0, 255)      # dashed run (blue)
COLOR_MARKER_FILL = (255, 215, 0)  # yellow
COLOR_MARKER_BORDER = (204, 160, 0)
COLOR_LABEL = (0, 0, 0)

KIND_COLORS: dict[StyleKind, RGB] = {
    StyleKind.SOLID: COLOR_PRIMARY,
    StyleKind.DASHED: COLOR_SECONDARY,
}

# ---------------------------------------------------------------------------
# Strokes (fractions of image width)
# ---------------------------------------------------------------------------
STROKE_WIDTH_FRACTION = 0.005

# ---------------------------------------------------------------------------
# Marker glyph
# ---------------------------------------------------------------------------
MARKER_RADIUS_FRACTION = 0.015
MARKER_MIN_RADIUS = 6.0
MARKER_BORDER_FRACTION = 0.15  # of radius
LABEL_SIZE_FACTOR = 1.1        # font size = radius * factor
LABEL_BASELINE_SHIFT = 0.08    # of font size, pushes glyphs down to look centered
FONT_FAMILY = "DejaVu Sans, Arial, Helvetica, sans-serif"
FONT_FILES = ("DejaVuSans-Bold.ttf", "Arial Bold.ttf", "arialbd.ttf")


@dataclass(frozen=True)
class VariantStyle:
    """Per-variant minimums and default segment styles."""

    min_stroke_width: float
    min_dash: float
    dash_fraction: float
    defaults: Mapping[Segment, StyleKind]


VARIANT_STYLES: dict[Variant, VariantStyle] = {
    Variant.THREE_POINT: VariantStyle(
        min_stroke_width=2.0,
        min_dash=4.0,
        dash_fraction=0.012,
        defaults=dict(zip(topology_for(Variant.THREE_POINT).segments, (StyleKind.SOLID, StyleKind.DASHED))),
    ),
    Variant.FOUR_POINT: VariantStyle(
        min_stroke_width=3.0,
        min_dash=5.0,
        dash_fraction=0.01,
        defaults=dict(zip(topology_for(Variant.FOUR_POINT).segments, (StyleKind.SOLID, StyleKind.DASHED))),
    ),
}


class SegmentStyle(BaseModel):
    """Logical style of a segment: a kind plus an optional color override."""

    model_config = ConfigDict(frozen=True)

    kind: StyleKind = StyleKind.SOLID
    color: Optional[RGB] = None


StyleOverrides = Mapping[Segment, SegmentStyle]


@dataclass(frozen=True)
class Stroke:
    """Concrete drawing parameters for one segment."""

    color: RGB
    width: float
    dash: tuple[float, ...] = ()

    @property
    def dashed(self) -> bool:
        return bool(self.dash)


def resolve_stroke(
    style: SegmentStyle,
    image_width: float,
    variant: Variant = Variant.FOUR_POINT,
) -> Stroke:
    """Turn a logical segment style into pixel stroke parameters."""
    vs = VARIANT_STYLES[Variant(variant)]
    width = max(vs.min_stroke_width, image_width * STROKE_WIDTH_FRACTION)
    dash: tuple[float, ...] = ()
    if style.kind is StyleKind.DASHED:
        d = max(vs.min_dash, image_width * vs.dash_fraction)
        dash = (d, d)
    color = style.color or KIND_COLORS[style.kind]
    return Stroke(color=tuple(color), width=width, dash=dash)


def segment_style(
    segment: Segment,
    variant: Variant,
    overrides: Optional[StyleOverrides] = None,
) -> SegmentStyle:
    """Caller override if any, else the variant default for ``segment``."""
    if overrides and segment in overrides:
        return overrides[segment]
    return SegmentStyle(kind=VARIANT_STYLES[Variant(variant)].defaults[segment])


def marker_radius(image_width: float) -> float:
    return max(MARKER_MIN_RADIUS, image_width * MARKER_RADIUS_FRACTION)


def border_width(radius: float) -> float:
    return max(1.0, radius * MARKER_BORDER_FRACTION)


def label_font_size(radius: float) -> float:
    return radius * LABEL_SIZE_FACTOR


def parse_overrides(table: Mapping[str, object]) -> dict[Segment, SegmentStyle]:
    """Build typed overrides from a config table.

    Values may be a bare kind (``"dashed"``) or a mapping such as
    ``{"kind": "dashed", "color": [0, 128, 0]}``.
    """
    out: dict[Segment, SegmentStyle] = {}
    for key, value in table.items():
        if isinstance(value, SegmentStyle):
            style = value
        elif isinstance(value, (str, StyleKind)):
            style = SegmentStyle(kind=StyleKind(value))
        else:
            style = SegmentStyle.model_validate(value)
        out[Segment.parse(key)] = style
    return out
