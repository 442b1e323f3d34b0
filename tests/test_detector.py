"""Test the Gemini provider and the vision-backed detector."""

import asyncio
from types import SimpleNamespace

import httpx
import pytest

from fakes import FakeProvider
from wireoverlay.detection.base import VisionMarkerDetector
from wireoverlay.errors import DetectionError, EmptyResultError
from wireoverlay.llm.providers.gemini import GeminiProvider
from wireoverlay.types import MarkerId, Variant


class _Models:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    async def generate_content(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return self.response


def _provider(models: _Models) -> GeminiProvider:
    provider = GeminiProvider("test-key", model="m-vision", image_model="m-image")
    provider._client = SimpleNamespace(aio=SimpleNamespace(models=models))
    return provider


def _part(data=None, mime_type=None):
    inline = SimpleNamespace(data=data, mime_type=mime_type) if data is not None else None
    return SimpleNamespace(inline_data=inline)


def _image_response(*parts):
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))])


def test_complete_with_vision():
    resp = SimpleNamespace(text='{"1": null}', usage_metadata=SimpleNamespace(total_token_count=42))
    models = _Models(response=resp)
    result = asyncio.run(_provider(models).complete_with_vision(b"img", "image/png", "find", json_mode=True))
    assert result.text == '{"1": null}'
    assert result.tokens_used == 42
    assert result.provider == "gemini"
    assert models.calls[0]["model"] == "m-vision"
    assert models.calls[0]["config"].response_mime_type == "application/json"


def test_transport_error_is_detection_error():
    models = _Models(error=httpx.ConnectError("boom"))
    with pytest.raises(DetectionError):
        asyncio.run(_provider(models).complete_with_vision(b"img", "image/png", "find"))


def test_edit_image_returns_inline_data():
    models = _Models(response=_image_response(_part(), _part(b"PNGDATA", "image/png")))
    result = asyncio.run(_provider(models).edit_image(b"img", "image/jpeg", "brighten"))
    assert result.data == b"PNGDATA"
    assert result.mime_type == "image/png"
    assert models.calls[0]["model"] == "m-image"


def test_edit_image_without_image_part():
    models = _Models(response=_image_response(_part()))
    with pytest.raises(EmptyResultError):
        asyncio.run(_provider(models).edit_image(b"img", "image/jpeg", "brighten"))


def test_is_available_needs_key():
    assert GeminiProvider("k").is_available()
    assert not GeminiProvider("").is_available()


def test_vision_detector_parses_fenced_json():
    provider = FakeProvider(['```json\n{"1": {"x": 10, "y": 20}, "3": {"x": 5, "y": 6}}\n```'])
    detector = VisionMarkerDetector(provider, Variant.FOUR_POINT)
    markers = asyncio.run(detector.detect(b"img", "image/jpeg"))
    assert markers.get(MarkerId.P1).x == 10
    assert markers.get(MarkerId.P3).y == 6
    assert markers.get(MarkerId.P2) is None
    assert provider.mime_types == ["image/jpeg"]


def test_vision_detector_rejects_garbage():
    detector = VisionMarkerDetector(FakeProvider(["I could not find any markers"]), Variant.THREE_POINT)
    with pytest.raises(DetectionError):
        asyncio.run(detector.detect(b"img", "image/png"))
