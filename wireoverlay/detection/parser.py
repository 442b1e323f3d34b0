"""Parse detector output into a MarkerMap."""

from __future__ import annotations

import json
import logging
import math
from typing import Any

from wireoverlay.diagram.model import MarkerMap, MarkerPosition, topology_for
from wireoverlay.errors import DetectionError
from wireoverlay.types import Variant

log = logging.getLogger(__name__)


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def _coord(value: Any, label: str, axis: str) -> float:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DetectionError(f"Marker {label!r}: {axis} is not a number ({value!r})")
    if not math.isfinite(value):
        raise DetectionError(f"Marker {label!r}: {axis} is not finite ({value!r})")
    return float(value)


def parse_marker_map(payload: str | dict, variant: Variant) -> MarkerMap:
    """Validate a label-keyed ``{"1": {"x":..,"y":..} | null, ...}`` payload.

    Keys that do not belong to the variant are ignored; missing keys mean
    the marker was not found. Anything else that does not fit the shape
    raises :class:`DetectionError`.
    """
    if isinstance(payload, str):
        text = _strip_fences(payload)
        if not text:
            raise DetectionError("Detector returned an empty response")
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise DetectionError(f"Detector returned invalid JSON: {e}") from e
    else:
        data = payload

    if not isinstance(data, dict):
        raise DetectionError(f"Detector returned {type(data).__name__}, expected a JSON object")

    variant = Variant(variant)
    positions = {}
    for marker_id in topology_for(variant).markers:
        raw = data.get(marker_id.value)
        if raw is None:
            continue
        if not isinstance(raw, dict) or "x" not in raw or "y" not in raw:
            raise DetectionError(f"Marker {marker_id.value!r}: expected {{x, y}} or null, got {raw!r}")
        positions[marker_id] = MarkerPosition(
            x=_coord(raw["x"], marker_id.value, "x"),
            y=_coord(raw["y"], marker_id.value, "y"),
        )

    extra = set(data) - {m.value for m in topology_for(variant).markers}
    if extra:
        log.debug("Ignoring unexpected detector keys: %s", sorted(extra))
    return MarkerMap(variant=variant, positions=positions)
