"""Gemini provider — marker detection and prompt-driven image edits."""

from __future__ import annotations

import logging
import time

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from wireoverlay.errors import DetectionError, EmptyResultError
from wireoverlay.llm.base import ImageResponse, LLMResponse, VisionProvider

log = logging.getLogger(__name__)


class GeminiProvider(VisionProvider):
    """Each instance owns its own client, so keys never leak between callers."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-pro",
        image_model: str = "gemini-2.5-flash-image",
    ) -> None:
        self._api_key = api_key
        self._model_name = model
        self._image_model_name = image_model
        self._client: genai.Client | None = None

    def _get_client(self) -> genai.Client:
        if not self._client:
            self._client = genai.Client(api_key=self._api_key)
        return self._client

    async def complete_with_vision(
        self,
        image: bytes,
        mime_type: str,
        prompt: str,
        system_prompt: str = "",
        json_mode: bool = False,
    ) -> LLMResponse:
        client = self._get_client()
        config = types.GenerateContentConfig(
            system_instruction=system_prompt or None,
            response_mime_type="application/json" if json_mode else None,
        )
        start = time.monotonic()
        try:
            resp = await client.aio.models.generate_content(
                model=self._model_name,
                contents=[types.Part.from_bytes(data=image, mime_type=mime_type), prompt],
                config=config,
            )
        except (genai_errors.APIError, httpx.HTTPError) as e:
            raise DetectionError(f"Gemini request failed: {e}") from e
        latency_ms = int((time.monotonic() - start) * 1000)

        tokens_used = 0
        if resp.usage_metadata:
            tokens_used = resp.usage_metadata.total_token_count or 0
        log.debug("Gemini %s answered in %d ms (%d tokens)", self._model_name, latency_ms, tokens_used)
        return LLMResponse(
            text=resp.text or "",
            model=self._model_name,
            provider="gemini",
            tokens_used=tokens_used,
            latency_ms=latency_ms,
        )

    async def edit_image(self, image: bytes, mime_type: str, prompt: str) -> ImageResponse:
        client = self._get_client()
        start = time.monotonic()
        try:
            resp = await client.aio.models.generate_content(
                model=self._image_model_name,
                contents=[types.Part.from_bytes(data=image, mime_type=mime_type), prompt],
            )
        except (genai_errors.APIError, httpx.HTTPError) as e:
            raise DetectionError(f"Gemini image request failed: {e}") from e
        latency_ms = int((time.monotonic() - start) * 1000)

        for candidate in resp.candidates or []:
            content = candidate.content
            if not content or not content.parts:
                continue
            for part in content.parts:
                if part.inline_data and part.inline_data.data:
                    return ImageResponse(
                        data=part.inline_data.data,
                        mime_type=part.inline_data.mime_type or "image/png",
                        model=self._image_model_name,
                        provider="gemini",
                        latency_ms=latency_ms,
                    )
        raise EmptyResultError("Gemini returned no image for the edit request")

    def name(self) -> str:
        return "gemini"

    def is_available(self) -> bool:
        return bool(self._api_key)
