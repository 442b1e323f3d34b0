"""HTTP REST API — render, detect and batch-generate overlays.

Images travel base64-encoded inside JSON bodies.
"""

from __future__ import annotations

import base64
import binascii
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field, ValidationError

from wireoverlay.detection.base import VisionMarkerDetector
from wireoverlay.detection.orchestrator import DetectionOrchestrator, sniff_mime
from wireoverlay.diagram.model import MarkerMap
from wireoverlay.diagram.renderer import OverlayRenderer, RenderedImage
from wireoverlay.diagram.style import parse_overrides
from wireoverlay.errors import (
    CanvasUnavailable,
    DecodeError,
    DetectionError,
    EmptyResultError,
    WireOverlayError,
)
from wireoverlay.gateway.auth import require_api_key
from wireoverlay.types import Variant

router = APIRouter(prefix="/api/v1", tags=["api"], dependencies=[Depends(require_api_key)])

ERROR_STATUS: dict[type[WireOverlayError], int] = {
    DecodeError: 422,
    DetectionError: 502,
    EmptyResultError: 502,
    CanvasUnavailable: 500,
}

MarkerPayload = dict[str, Optional[dict[str, float]]]


class ImageRequest(BaseModel):
    image_b64: str
    variant: Optional[Variant] = None
    segment_styles: dict[str, Any] = Field(default_factory=dict)
    output_format: str = ""


class RenderRequest(ImageRequest):
    markers: MarkerPayload


class GenerateRequest(ImageRequest):
    n: Optional[int] = Field(default=None, ge=1, le=10)


class EditRequest(BaseModel):
    image_b64: str
    prompt: str


class RenderResponse(BaseModel):
    image_b64: str
    format: str
    width: int
    height: int
    segments: list[str]
    markers: list[str]


class DetectResponse(BaseModel):
    variant: Variant
    markers: MarkerPayload


class GeneratedItem(BaseModel):
    markers: MarkerPayload
    image: RenderResponse


class GenerateResponse(BaseModel):
    variant: Variant
    items: list[GeneratedItem]


class EditResponse(BaseModel):
    image_b64: str
    mime_type: str


def _decode_b64(data: str) -> bytes:
    # Accept data URLs as produced by browsers
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise HTTPException(422, f"image_b64 is not valid base64: {e}") from e


def _raise_http(e: WireOverlayError) -> None:
    status = next((code for cls, code in ERROR_STATUS.items() if isinstance(e, cls)), 500)
    raise HTTPException(status, str(e)) from e


def _rendered(img: RenderedImage) -> RenderResponse:
    return RenderResponse(
        image_b64=base64.b64encode(img.data).decode("ascii"),
        format=img.format,
        width=img.width,
        height=img.height,
        segments=[s.key for s in img.segments_drawn],
        markers=[m.name for m in img.markers_drawn],
    )


def _styles(req: ImageRequest, request: Request):
    table = req.segment_styles or request.app.state.config.segment_styles
    try:
        return parse_overrides(table)
    except (ValueError, ValidationError) as e:
        raise HTTPException(422, f"Invalid segment_styles: {e}") from e


def _orchestrator(request: Request, variant: Variant) -> DetectionOrchestrator:
    provider = request.app.state.provider
    if provider is None or not provider.is_available():
        raise HTTPException(503, "No vision provider configured")
    detector = VisionMarkerDetector(provider, variant)
    return DetectionOrchestrator(detector, request.app.state.metrics)


@router.post("/render", response_model=RenderResponse)
async def render(req: RenderRequest, request: Request):
    config = request.app.state.config
    variant = req.variant or config.variant
    image = _decode_b64(req.image_b64)
    try:
        markers = MarkerMap.from_labels(variant, req.markers)
    except ValidationError as e:
        raise HTTPException(422, f"Invalid markers: {e}") from e

    renderer = OverlayRenderer(markers, _styles(req, request))
    try:
        result = await renderer.render_async(image, req.output_format or config.output_format or None)
    except WireOverlayError as e:
        request.app.state.metrics.record_failure(type(e).__name__)
        _raise_http(e)
    except ValueError as e:
        raise HTTPException(422, str(e)) from e
    request.app.state.metrics.record_render()
    return _rendered(result)


@router.post("/detect", response_model=DetectResponse)
async def detect(req: ImageRequest, request: Request):
    variant = req.variant or request.app.state.config.variant
    orchestrator = _orchestrator(request, variant)
    try:
        markers = await orchestrator.detect_once(_decode_b64(req.image_b64))
    except WireOverlayError as e:
        _raise_http(e)
    return DetectResponse(variant=variant, markers=markers.to_labels())


@router.post("/generate", response_model=GenerateResponse)
async def generate(req: GenerateRequest, request: Request):
    config = request.app.state.config
    variant = req.variant or config.variant
    orchestrator = _orchestrator(request, variant)
    try:
        items = await orchestrator.generate_batch(
            _decode_b64(req.image_b64),
            req.n or config.batch_size,
            styles=_styles(req, request),
            output_format=req.output_format or config.output_format or None,
        )
    except WireOverlayError as e:
        _raise_http(e)
    except ValueError as e:
        raise HTTPException(422, str(e)) from e
    return GenerateResponse(
        variant=variant,
        items=[GeneratedItem(markers=i.markers.to_labels(), image=_rendered(i.image)) for i in items],
    )


@router.post("/edit", response_model=EditResponse)
async def edit(req: EditRequest, request: Request):
    provider = request.app.state.provider
    if provider is None or not provider.is_available():
        raise HTTPException(503, "No vision provider configured")
    image = _decode_b64(req.image_b64)
    try:
        result = await provider.edit_image(image, await sniff_mime(image), req.prompt)
    except WireOverlayError as e:
        request.app.state.metrics.record_failure(type(e).__name__)
        _raise_http(e)
    return EditResponse(image_b64=base64.b64encode(result.data).decode("ascii"), mime_type=result.mime_type)
