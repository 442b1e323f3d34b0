"""CLI for the wiring overlay tool.

Usage:
    wo detect photo.jpg [--variant three_point] [-n 3]
    wo render photo.jpg markers.json [-o out.png] [--format JPEG]
    wo batch photo.jpg [-n 3] [-o wiring]
    wo place photo.jpg clicks.json [-o out.png]
    wo edit photo.jpg "remove the background" [-o edited.png]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from wireoverlay.config import WireOverlayConfig
from wireoverlay.detection.base import VisionMarkerDetector
from wireoverlay.detection.orchestrator import DetectionOrchestrator, sniff_mime
from wireoverlay.diagram.model import MarkerMap
from wireoverlay.diagram.renderer import OverlayRenderer, RenderedImage
from wireoverlay.errors import WireOverlayError
from wireoverlay.llm.providers.gemini import GeminiProvider
from wireoverlay.observability.logging import setup_logging
from wireoverlay.placement import controller
from wireoverlay.placement.controller import DisplayRect, PlacementEvent
from wireoverlay.types import Variant


def _read_photo(path: str) -> bytes:
    photo = Path(path)
    if not photo.exists():
        print(f"File not found: {path}")
        sys.exit(1)
    return photo.read_bytes()


def _read_json(path: str):
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        print(f"Could not read {path}: {e}")
        sys.exit(1)


def _variant(args: argparse.Namespace, config: WireOverlayConfig) -> Variant:
    return Variant(args.variant) if args.variant else config.variant


def _provider(config: WireOverlayConfig) -> GeminiProvider:
    if not config.gemini_api_key:
        print("GEMINI_API_KEY not set (env or wireoverlay.yaml)")
        sys.exit(1)
    return GeminiProvider(config.gemini_api_key, config.gemini_model, config.gemini_image_model)


def _output_path(photo: str, output: str | None, suffix: str, fmt: str | None) -> str:
    if output:
        return output
    src = Path(photo)
    ext = f".{fmt.lower()}" if fmt else src.suffix
    return str(src.with_name(f"{src.stem}_{suffix}{ext}"))


def _report(path: str, result: RenderedImage) -> None:
    print(f"Saved: {path} ({result.width}x{result.height} {result.format})")
    print(f"  Segments: {', '.join(s.key for s in result.segments_drawn) or 'none'}")
    print(f"  Markers:  {', '.join(m.name for m in result.markers_drawn) or 'none'}")


def cmd_detect(args: argparse.Namespace, config: WireOverlayConfig) -> None:
    """Run the detector and print the marker maps as JSON."""
    image = _read_photo(args.photo)
    variant = _variant(args, config)
    orchestrator = DetectionOrchestrator(VisionMarkerDetector(_provider(config), variant))
    maps = asyncio.run(orchestrator.detect_batch(image, args.n))
    print(json.dumps([m.to_labels() for m in maps], indent=2))


def cmd_render(args: argparse.Namespace, config: WireOverlayConfig) -> None:
    """Draw a marker JSON file onto the photo."""
    image = _read_photo(args.photo)
    markers = MarkerMap.from_labels(_variant(args, config), _read_json(args.markers))
    fmt = args.format or config.output_format or None
    output = _output_path(args.photo, args.output, "wiring", fmt)
    result = OverlayRenderer(markers, config.style_overrides()).render_to_file(image, output, fmt)
    _report(output, result)


def cmd_batch(args: argparse.Namespace, config: WireOverlayConfig) -> None:
    """Detect N times and save one rendered diagram per detection."""
    image = _read_photo(args.photo)
    variant = _variant(args, config)
    fmt = args.format or config.output_format or None
    n = args.n or config.batch_size
    orchestrator = DetectionOrchestrator(VisionMarkerDetector(_provider(config), variant))

    print(f"Generating {n} diagrams from {args.photo}...")
    items = asyncio.run(orchestrator.generate_batch(image, n, config.style_overrides(), fmt))

    stem = args.output or f"{Path(args.photo).stem}_wiring"
    for i, item in enumerate(items, start=1):
        path = f"{stem}_{i}.{item.image.format.lower()}"
        Path(path).write_bytes(item.image.data)
        _report(path, item.image)
        print(f"  Coordinates: {json.dumps(item.markers.to_labels())}")


def cmd_place(args: argparse.Namespace, config: WireOverlayConfig) -> None:
    """Replay recorded clicks through the placement controller and render.

    The clicks file is a list of ``{"x", "y", "width", "height", "snap"}``
    objects, in display pixels of an image shown at ``width`` x ``height``.
    """
    image = _read_photo(args.photo)
    raw_events = _read_json(args.clicks)
    events = [
        PlacementEvent(
            pointer_x=e["x"],
            pointer_y=e["y"],
            rect=DisplayRect(width=e["width"], height=e["height"]),
            snap=bool(e.get("snap", False)),
        )
        for e in raw_events
    ]
    state = controller.replay(controller.start(_variant(args, config)), events)
    print(json.dumps(state.markers.to_labels(), indent=2))

    fmt = args.format or config.output_format or None
    output = _output_path(args.photo, args.output, "wiring", fmt)
    result = OverlayRenderer(state.markers, config.style_overrides()).render_to_file(image, output, fmt)
    _report(output, result)


def cmd_edit(args: argparse.Namespace, config: WireOverlayConfig) -> None:
    """Prompt-driven image edit through the image model."""
    image = _read_photo(args.photo)
    provider = _provider(config)

    async def _run():
        return await provider.edit_image(image, await sniff_mime(image), args.prompt)

    result = asyncio.run(_run())
    output = args.output or _output_path(args.photo, None, "edited", result.mime_type.split("/")[-1])
    Path(output).write_bytes(result.data)
    print(f"Saved: {output} ({len(result.data)} bytes, {result.mime_type})")


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="wo",
        description="Wiring path overlay tool",
    )
    parser.add_argument("--config", default="wireoverlay.yaml", help="Config file path")
    sub = parser.add_subparsers(dest="command", help="Available commands")

    variants = [v.value for v in Variant]

    # detect
    p_detect = sub.add_parser("detect", help="Detect marker coordinates")
    p_detect.add_argument("photo", help="Path to photo file")
    p_detect.add_argument("--variant", choices=variants, default=None)
    p_detect.add_argument("-n", type=int, default=1, help="Number of independent detections")

    # render
    p_render = sub.add_parser("render", help="Render a marker JSON file onto a photo")
    p_render.add_argument("photo", help="Path to photo file")
    p_render.add_argument("markers", help='JSON file, e.g. {"1": {"x": 100, "y": 200}, "2": null}')
    p_render.add_argument("--variant", choices=variants, default=None)
    p_render.add_argument("--format", default=None, help="Output format (PNG, JPEG, WEBP...)")
    p_render.add_argument("--output", "-o", default=None, help="Output file path (.svg for vector)")

    # batch
    p_batch = sub.add_parser("batch", help="Detect N times and render each result")
    p_batch.add_argument("photo", help="Path to photo file")
    p_batch.add_argument("-n", type=int, default=None, help="Batch size (default from config)")
    p_batch.add_argument("--variant", choices=variants, default=None)
    p_batch.add_argument("--format", default=None, help="Output format (PNG, JPEG, WEBP...)")
    p_batch.add_argument("--output", "-o", default=None, help="Output file stem")

    # place
    p_place = sub.add_parser("place", help="Render manually placed markers from recorded clicks")
    p_place.add_argument("photo", help="Path to photo file")
    p_place.add_argument("clicks", help="JSON list of click events")
    p_place.add_argument("--variant", choices=variants, default=None)
    p_place.add_argument("--format", default=None, help="Output format (PNG, JPEG, WEBP...)")
    p_place.add_argument("--output", "-o", default=None, help="Output file path (.svg for vector)")

    # edit
    p_edit = sub.add_parser("edit", help="Edit a photo with a text prompt")
    p_edit.add_argument("photo", help="Path to photo file")
    p_edit.add_argument("prompt", help="Edit instruction")
    p_edit.add_argument("--output", "-o", default=None, help="Output file path")

    return parser


def main() -> None:
    """Entry point for the `wo` CLI."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(0)

    config = WireOverlayConfig.from_yaml(args.config)
    setup_logging(config.log_level)

    commands = {
        "detect": cmd_detect,
        "render": cmd_render,
        "batch": cmd_batch,
        "place": cmd_place,
        "edit": cmd_edit,
    }

    fn = commands.get(args.command)
    if not fn:
        parser.print_help()
        return
    try:
        fn(args, config)
    except WireOverlayError as e:
        print(f"{type(e).__name__}: {e}")
        sys.exit(2)


if __name__ == "__main__":
    main()
