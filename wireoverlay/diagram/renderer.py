"""OverlayRenderer — marker map + photo → annotated raster (or SVG).

Draw order is fixed: the photo first, then every segment whose two
endpoints are present, then the marker glyphs so they always sit on top
of the lines. Missing markers are not an error; anything touching them is
left out.
"""

from __future__ import annotations

import asyncio
import base64
import io
import logging
import math
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Optional

from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from wireoverlay.diagram.model import MarkerMap, Segment, to_pixel, topology_for
from wireoverlay.diagram.style import (
    COLOR_LABEL,
    COLOR_MARKER_BORDER,
    COLOR_MARKER_FILL,
    FONT_FAMILY,
    FONT_FILES,
    LABEL_BASELINE_SHIFT,
    RGB,
    Stroke,
    StyleOverrides,
    border_width,
    label_font_size,
    marker_radius,
    resolve_stroke,
    segment_style,
)
from wireoverlay.errors import CanvasUnavailable, DecodeError
from wireoverlay.types import MarkerId

log = logging.getLogger(__name__)

# Formats that keep an alpha channel when the source had one.
ALPHA_FORMATS = {"PNG", "WEBP", "TIFF"}
FORMAT_ALIASES = {"JPG": "JPEG", "TIF": "TIFF"}


@dataclass(frozen=True)
class PlannedLine:
    segment: Segment
    start: tuple[float, float]
    end: tuple[float, float]
    stroke: Stroke


@dataclass(frozen=True)
class PlannedGlyph:
    marker_id: MarkerId
    center: tuple[float, float]
    radius: float

    @property
    def label(self) -> str:
        return self.marker_id.value

    @property
    def font_size(self) -> float:
        return label_font_size(self.radius)


@dataclass
class OverlayPlan:
    """Everything to draw, in draw order, in pixel space."""

    width: int
    height: int
    lines: list[PlannedLine] = field(default_factory=list)
    glyphs: list[PlannedGlyph] = field(default_factory=list)


@dataclass(frozen=True)
class RenderedImage:
    data: bytes
    format: str
    width: int
    height: int
    segments_drawn: tuple[Segment, ...] = ()
    markers_drawn: tuple[MarkerId, ...] = ()

    @property
    def mime_type(self) -> str:
        if self.format == "SVG":
            return "image/svg+xml"
        return Image.MIME.get(self.format, "application/octet-stream")


def decode_image(data: bytes) -> Image.Image:
    """Decode raster bytes, raising :class:`DecodeError` on anything unreadable."""
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeError(f"Base image could not be decoded: {e}") from e
    if img.width <= 0 or img.height <= 0:
        raise DecodeError(f"Base image has no pixels ({img.width}x{img.height})")
    return img


def plan_overlay(
    markers: MarkerMap,
    width: int,
    height: int,
    styles: Optional[StyleOverrides] = None,
) -> OverlayPlan:
    """Resolve which segments and glyphs get drawn and where."""
    topo = topology_for(markers.variant)
    plan = OverlayPlan(width=width, height=height)

    for seg in topo.segments:
        a = markers.get(seg.start)
        b = markers.get(seg.end)
        if a is None or b is None:
            log.debug("Skipping segment %s: endpoint missing", seg.key)
            continue
        stroke = resolve_stroke(segment_style(seg, markers.variant, styles), width, markers.variant)
        plan.lines.append(PlannedLine(
            segment=seg,
            start=to_pixel(a, width, height),
            end=to_pixel(b, width, height),
            stroke=stroke,
        ))

    radius = marker_radius(width)
    for marker_id, pos in markers.present():
        plan.glyphs.append(PlannedGlyph(
            marker_id=marker_id,
            center=to_pixel(pos, width, height),
            radius=radius,
        ))

    return plan


class OverlayRenderer:
    """Renders a MarkerMap over a base photo."""

    def __init__(self, markers: MarkerMap, styles: Optional[StyleOverrides] = None):
        self.markers = markers
        self.styles = styles

    def render(self, base_image: bytes, output_format: Optional[str] = None) -> RenderedImage:
        """Composite the overlay and re-encode.

        ``output_format`` is a Pillow format name (``"PNG"``, ``"JPEG"`` ...);
        by default the source image's format is reused.
        """
        base = decode_image(base_image)
        fmt = _normalize_format(output_format or base.format or "PNG")
        plan = plan_overlay(self.markers, base.width, base.height, self.styles)

        canvas = _acquire_canvas(base)
        draw = ImageDraw.Draw(canvas)

        for line in plan.lines:
            _draw_line(draw, line, canvas.size)
        for glyph in plan.glyphs:
            _draw_glyph(draw, glyph, canvas.size)

        keep_alpha = fmt in ALPHA_FORMATS and base.has_transparency_data
        out = canvas if keep_alpha else canvas.convert("RGB")

        buf = io.BytesIO()
        out.save(buf, format=fmt)
        data = buf.getvalue()
        log.debug(
            "Rendered %dx%d %s: %d segments, %d markers (%d bytes)",
            base.width, base.height, fmt, len(plan.lines), len(plan.glyphs), len(data),
        )
        return RenderedImage(
            data=data,
            format=fmt,
            width=out.width,
            height=out.height,
            segments_drawn=tuple(line.segment for line in plan.lines),
            markers_drawn=tuple(g.marker_id for g in plan.glyphs),
        )

    async def render_async(self, base_image: bytes, output_format: Optional[str] = None) -> RenderedImage:
        """Same as :meth:`render`, off the event loop."""
        return await asyncio.to_thread(self.render, base_image, output_format)

    def render_svg(self, base_image: bytes) -> str:
        """SVG document with the photo embedded and the overlay as vectors."""
        return self.render_svg_image(base_image).data.decode("utf-8")

    def render_svg_image(self, base_image: bytes) -> RenderedImage:
        """:meth:`render_svg` packaged as a RenderedImage, with what was drawn."""
        base = decode_image(base_image)
        plan = plan_overlay(self.markers, base.width, base.height, self.styles)
        mime = Image.MIME.get(base.format or "", "image/png")
        href = f"data:{mime};base64,{base64.b64encode(base_image).decode('ascii')}"

        w, h = plan.width, plan.height
        svg_lines = [
            f'<svg xmlns="http://www.w3.org/2000/svg" '
            f'width="{w}" height="{h}" viewBox="0 0 {w} {h}" '
            f'style="font-family: {FONT_FAMILY};">',
            f'<image href="{href}" x="0" y="0" width="{w}" height="{h}"/>',
        ]
        for line in plan.lines:
            svg_lines.append(_svg_line(line))
        for glyph in plan.glyphs:
            svg_lines.append(_svg_glyph(glyph))
        svg_lines.append("</svg>")
        return RenderedImage(
            data="\n".join(svg_lines).encode("utf-8"),
            format="SVG",
            width=w,
            height=h,
            segments_drawn=tuple(line.segment for line in plan.lines),
            markers_drawn=tuple(g.marker_id for g in plan.glyphs),
        )

    def render_to_file(self, base_image: bytes, path: str, output_format: Optional[str] = None) -> RenderedImage:
        """Render and write to ``path``; ``.svg`` paths get the vector form."""
        target = Path(path)
        if target.suffix.lower() == ".svg":
            result = self.render_svg_image(base_image)
            target.write_bytes(result.data)
            log.info("SVG written to %s", path)
            return result

        if output_format is None:
            output_format = Image.registered_extensions().get(target.suffix.lower())
        result = self.render(base_image, output_format)
        target.write_bytes(result.data)
        log.info("%s written to %s (%d bytes)", result.format, path, len(result.data))
        return result


def render(
    base_image: bytes,
    markers: MarkerMap,
    styles: Optional[StyleOverrides] = None,
    output_format: Optional[str] = None,
) -> RenderedImage:
    """Convenience: one-shot render."""
    return OverlayRenderer(markers, styles).render(base_image, output_format)


# ---------------------------------------------------------------------------
# Raster helpers
# ---------------------------------------------------------------------------

def _normalize_format(fmt: str) -> str:
    fmt = fmt.upper().lstrip(".")
    fmt = FORMAT_ALIASES.get(fmt, fmt)
    Image.init()
    if fmt not in Image.SAVE:
        raise ValueError(f"Unsupported output format: {fmt}")
    return fmt


def _to_8bit(img: Image.Image) -> Image.Image:
    """Scale high bit-depth grayscale down to L; other modes pass through."""
    if img.mode == "I" or img.mode.startswith("I;16"):
        # 16-bit samples, also when Pillow widens them to 32-bit I
        return img.convert("I").point(lambda v: v * (1 / 256)).convert("L")
    if img.mode == "F":
        lo, hi = img.getextrema()
        scale = 255 / (hi - lo) if hi > lo else 0.0
        return img.point(lambda v: v * scale + (-lo * scale)).convert("L")
    return img


def _acquire_canvas(base: Image.Image) -> Image.Image:
    """A private RGBA copy of the photo to draw on."""
    try:
        return _to_8bit(base).convert("RGBA")
    except (MemoryError, ValueError, OSError) as e:
        raise CanvasUnavailable(f"Could not allocate {base.width}x{base.height} canvas: {e}") from e


def _stroke_px(width: float) -> int:
    return max(1, int(round(width)))


def _draw_run(draw: ImageDraw.ImageDraw, p0: tuple[float, float], p1: tuple[float, float],
              color: RGB, width: float) -> None:
    """One continuous stroke with round caps."""
    draw.line([p0, p1], fill=color, width=_stroke_px(width))
    r = width / 2
    for x, y in (p0, p1):
        draw.ellipse([x - r, y - r, x + r, y + r], fill=color)


def _clip_span(
    p0: tuple[float, float], p1: tuple[float, float], bounds: tuple[float, float, float, float]
) -> Optional[tuple[float, float]]:
    """Liang-Barsky: the ``(t0, t1)`` part of p0→p1 inside ``bounds``, or None."""
    (x0, y0), (x1, y1) = p0, p1
    xmin, ymin, xmax, ymax = bounds
    dx, dy = x1 - x0, y1 - y0
    t0, t1 = 0.0, 1.0
    for p, q in ((-dx, x0 - xmin), (dx, xmax - x0), (-dy, y0 - ymin), (dy, ymax - y0)):
        if p == 0:
            if q < 0:
                return None
            continue
        t = q / p
        if p < 0:
            if t > t1:
                return None
            t0 = max(t0, t)
        else:
            if t < t0:
                return None
            t1 = min(t1, t)
    return t0, t1


def _draw_line(draw: ImageDraw.ImageDraw, line: PlannedLine, canvas_size: tuple[int, int]) -> None:
    stroke = line.stroke
    (x0, y0), (x1, y1) = line.start, line.end

    # Only the part near the raster is drawn; endpoints may be far off-canvas.
    margin = stroke.width + 1
    span = _clip_span(line.start, line.end, (-margin, -margin, canvas_size[0] + margin, canvas_size[1] + margin))
    if span is None:
        return

    length = math.hypot(x1 - x0, y1 - y0)
    if not stroke.dashed or length == 0:
        t0, t1 = span
        _draw_run(
            draw,
            (x0 + (x1 - x0) * t0, y0 + (y1 - y0) * t0),
            (x0 + (x1 - x0) * t1, y0 + (y1 - y0) * t1),
            stroke.color,
            stroke.width,
        )
        return
    ux, uy = (x1 - x0) / length, (y1 - y0) / length

    # Walk the dash pattern (on, off, on, off ...) across the visible span,
    # starting on a whole cycle so the phase matches the full segment.
    pattern = stroke.dash if len(stroke.dash) % 2 == 0 else stroke.dash * 2
    cycle = sum(pattern)
    pos = math.floor(span[0] * length / cycle) * cycle
    stop = span[1] * length
    i = 0
    while pos < stop:
        run = pattern[i % len(pattern)]
        end = min(pos + run, length)
        if i % 2 == 0:
            _draw_run(
                draw,
                (x0 + ux * pos, y0 + uy * pos),
                (x0 + ux * end, y0 + uy * end),
                stroke.color,
                stroke.width,
            )
        pos = end
        i += 1


@lru_cache(maxsize=64)
def _load_font(size: int) -> ImageFont.FreeTypeFont:
    for name in FONT_FILES:
        try:
            return ImageFont.truetype(name, size)
        except OSError:
            continue
    return ImageFont.load_default(size=size)


def _draw_glyph(draw: ImageDraw.ImageDraw, glyph: PlannedGlyph, canvas_size: tuple[int, int]) -> None:
    cx, cy = glyph.center
    r = glyph.radius
    if cx + r < 0 or cy + r < 0 or cx - r > canvas_size[0] or cy - r > canvas_size[1]:
        return
    draw.ellipse(
        [cx - r, cy - r, cx + r, cy + r],
        fill=COLOR_MARKER_FILL,
        outline=COLOR_MARKER_BORDER,
        width=_stroke_px(border_width(r)),
    )
    size = glyph.font_size
    font = _load_font(max(1, int(round(size))))
    draw.text(
        (cx, cy + size * LABEL_BASELINE_SHIFT),
        glyph.label,
        fill=COLOR_LABEL,
        font=font,
        anchor="mm",
    )


# ---------------------------------------------------------------------------
# SVG helpers
# ---------------------------------------------------------------------------

def _rgb(color: RGB) -> str:
    return "rgb({}, {}, {})".format(*color)


def _svg_line(line: PlannedLine) -> str:
    (x1, y1), (x2, y2) = line.start, line.end
    stroke = line.stroke
    dash = ""
    if stroke.dashed:
        dash = f' stroke-dasharray="{",".join(f"{d:g}" for d in stroke.dash)}"'
    return (
        f'<line id="seg-{line.segment.key}" x1="{x1:g}" y1="{y1:g}" x2="{x2:g}" y2="{y2:g}" '
        f'stroke="{_rgb(stroke.color)}" stroke-width="{stroke.width:g}" '
        f'stroke-linecap="round"{dash}/>'
    )


def _svg_glyph(glyph: PlannedGlyph) -> str:
    cx, cy = glyph.center
    r = glyph.radius
    size = glyph.font_size
    return "\n".join([
        f'<g id="marker-{glyph.marker_id.name}">',
        f'<circle cx="{cx:g}" cy="{cy:g}" r="{r:g}" fill="{_rgb(COLOR_MARKER_FILL)}" '
        f'stroke="{_rgb(COLOR_MARKER_BORDER)}" stroke-width="{border_width(r):g}"/>',
        f'<text x="{cx:g}" y="{cy + size * LABEL_BASELINE_SHIFT:g}" font-size="{size:g}" '
        f'font-weight="bold" text-anchor="middle" dominant-baseline="central" '
        f'fill="{_rgb(COLOR_LABEL)}">{glyph.label}</text>',
        "</g>",
    ])
