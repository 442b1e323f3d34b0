"""Detector boundary: image bytes in, MarkerMap out."""

from __future__ import annotations

import abc
import logging

from wireoverlay.detection.parser import parse_marker_map
from wireoverlay.detection.prompts import marker_prompt
from wireoverlay.diagram.model import MarkerMap, topology_for
from wireoverlay.llm.base import VisionProvider
from wireoverlay.types import Variant

log = logging.getLogger(__name__)


class MarkerDetector(abc.ABC):
    """Finds the variant's markers in a photo."""

    variant: Variant

    @abc.abstractmethod
    async def detect(self, image: bytes, mime_type: str) -> MarkerMap:
        """Return the detected markers; raise DetectionError on failure."""


class VisionMarkerDetector(MarkerDetector):
    """Asks a vision model for normalized marker centers."""

    def __init__(self, provider: VisionProvider, variant: Variant | str = Variant.FOUR_POINT) -> None:
        self.provider = provider
        self.variant = Variant(variant)

    async def detect(self, image: bytes, mime_type: str) -> MarkerMap:
        system, user = marker_prompt(self.variant)
        resp = await self.provider.complete_with_vision(
            image, mime_type, user, system_prompt=system, json_mode=True,
        )
        markers = parse_marker_map(resp.text, self.variant)
        log.info(
            "%s found %d/%d markers in %d ms",
            resp.provider, len(markers.positions), len(topology_for(self.variant).markers), resp.latency_ms,
        )
        return markers
