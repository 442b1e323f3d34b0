"""Test doubles for the detector and vision provider."""

from __future__ import annotations

import asyncio

from wireoverlay.detection.base import MarkerDetector
from wireoverlay.diagram.model import MarkerMap
from wireoverlay.errors import EmptyResultError
from wireoverlay.llm.base import ImageResponse, LLMResponse, VisionProvider
from wireoverlay.types import Variant


class ScriptedDetector(MarkerDetector):
    """Returns (or raises) the scripted results in call order."""

    def __init__(self, results, variant=Variant.FOUR_POINT, delay: float = 0.01):
        self.results = list(results)
        self.variant = variant
        self.delay = delay
        self.calls = 0
        self.in_flight = 0
        self.max_in_flight = 0

    async def detect(self, image: bytes, mime_type: str) -> MarkerMap:
        idx = self.calls
        self.calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            result = self.results[idx]
        finally:
            self.in_flight -= 1
        if isinstance(result, Exception):
            raise result
        return result


class FakeProvider(VisionProvider):
    def __init__(self, texts=None, image: bytes | None = None):
        self.texts = list(texts or [])
        self.image = image
        self.prompts: list[str] = []
        self.mime_types: list[str] = []

    async def complete_with_vision(self, image, mime_type, prompt, system_prompt="", json_mode=False):
        self.prompts.append(prompt)
        self.mime_types.append(mime_type)
        text = self.texts.pop(0) if len(self.texts) > 1 else self.texts[0]
        return LLMResponse(text=text, model="fake", provider="fake")

    async def edit_image(self, image, mime_type, prompt):
        if self.image is None:
            raise EmptyResultError("no image")
        return ImageResponse(data=self.image, mime_type="image/png", model="fake", provider="fake")

    def name(self) -> str:
        return "fake"

    def is_available(self) -> bool:
        return True
