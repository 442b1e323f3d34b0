"""Vision model provider abstraction."""

from __future__ import annotations

import abc
from dataclasses import dataclass, field


@dataclass
class LLMResponse:
    text: str
    model: str
    provider: str
    tokens_used: int = 0
    latency_ms: int = 0
    raw: dict | None = field(default=None, repr=False)


@dataclass
class ImageResponse:
    """An image produced by the model."""

    data: bytes
    mime_type: str
    model: str
    provider: str
    latency_ms: int = 0


class VisionProvider(abc.ABC):
    """Base class for model backends that look at images."""

    @abc.abstractmethod
    async def complete_with_vision(
        self,
        image: bytes,
        mime_type: str,
        prompt: str,
        system_prompt: str = "",
        json_mode: bool = False,
    ) -> LLMResponse:
        """Send one image plus a text prompt and return the text answer."""

    @abc.abstractmethod
    async def edit_image(self, image: bytes, mime_type: str, prompt: str) -> ImageResponse:
        """Ask the model for an edited copy of ``image``."""

    @abc.abstractmethod
    def name(self) -> str:
        """Provider identifier."""

    @abc.abstractmethod
    def is_available(self) -> bool:
        """True if credentials are configured."""
