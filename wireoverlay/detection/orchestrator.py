"""Detection fan-out: run the detector N times and render each result.

    photo bytes (shared, read-only)
        │
        ├── detect ──► MarkerMap ──► render ──► BatchItem
        ├── detect ──► MarkerMap ──► render ──► BatchItem
        └── ...                                   (n tasks, asyncio.gather)

The detector is non-deterministic, so every call may place the markers
differently; each rendered image stays paired with the map it came from.
A batch is all-or-nothing: the first failure fails the whole call.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional

from PIL import Image

from wireoverlay.detection.base import MarkerDetector
from wireoverlay.diagram.model import MarkerMap
from wireoverlay.diagram.renderer import OverlayRenderer, RenderedImage, decode_image
from wireoverlay.diagram.style import StyleOverrides
from wireoverlay.errors import WireOverlayError
from wireoverlay.observability.metrics import MetricsCollector

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchItem:
    """A detection result and the image rendered from it."""

    markers: MarkerMap
    image: RenderedImage


async def sniff_mime(image: bytes) -> str:
    """Decode the photo (off the loop) and report its MIME type."""
    img = await asyncio.to_thread(decode_image, image)
    return Image.MIME.get(img.format or "", "image/png")


class DetectionOrchestrator:
    def __init__(self, detector: MarkerDetector, metrics: Optional[MetricsCollector] = None) -> None:
        self.detector = detector
        self.metrics = metrics or MetricsCollector()

    async def detect_once(self, image: bytes, mime_type: Optional[str] = None) -> MarkerMap:
        """One detector call."""
        if mime_type is None:
            mime_type = await sniff_mime(image)
        start = time.monotonic()
        try:
            markers = await self.detector.detect(image, mime_type)
        except WireOverlayError as e:
            self.metrics.record_failure(type(e).__name__)
            raise
        self.metrics.record_detection(int((time.monotonic() - start) * 1000))
        return markers

    async def detect_batch(self, image: bytes, n: int, mime_type: Optional[str] = None) -> list[MarkerMap]:
        """``n`` independent, concurrent detector calls."""
        _check_batch_size(n)
        if mime_type is None:
            mime_type = await sniff_mime(image)
        log.info("Detecting markers %d times (%s)", n, mime_type)
        return list(await asyncio.gather(*(self.detect_once(image, mime_type) for _ in range(n))))

    async def generate(
        self,
        image: bytes,
        styles: Optional[StyleOverrides] = None,
        output_format: Optional[str] = None,
        mime_type: Optional[str] = None,
    ) -> BatchItem:
        """Detect once and render the result."""
        markers = await self.detect_once(image, mime_type)
        rendered = await self._render(image, markers, styles, output_format)
        return BatchItem(markers=markers, image=rendered)

    async def generate_batch(
        self,
        image: bytes,
        n: int,
        styles: Optional[StyleOverrides] = None,
        output_format: Optional[str] = None,
        mime_type: Optional[str] = None,
    ) -> list[BatchItem]:
        """``n`` detect-then-render pipelines in parallel; fails as a whole."""
        _check_batch_size(n)
        if mime_type is None:
            mime_type = await sniff_mime(image)
        log.info("Generating %d diagrams", n)
        items = await asyncio.gather(
            *(self.generate(image, styles, output_format, mime_type) for _ in range(n))
        )
        return list(items)

    async def _render(
        self,
        image: bytes,
        markers: MarkerMap,
        styles: Optional[StyleOverrides],
        output_format: Optional[str],
    ) -> RenderedImage:
        start = time.monotonic()
        try:
            rendered = await OverlayRenderer(markers, styles).render_async(image, output_format)
        except WireOverlayError as e:
            self.metrics.record_failure(type(e).__name__)
            raise
        self.metrics.record_render(int((time.monotonic() - start) * 1000))
        return rendered


def _check_batch_size(n: int) -> None:
    if n < 1:
        raise ValueError(f"Batch size must be at least 1, got {n}")
