"""Shared test helpers."""

from __future__ import annotations

import io

import pytest
from PIL import Image

WHITE = (255, 255, 255)


def make_photo(width: int = 1000, height: int = 800, fmt: str = "PNG", color=WHITE, mode: str = "RGB") -> bytes:
    img = Image.new(mode, (width, height), color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def open_image(data: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


@pytest.fixture
def photo() -> bytes:
    return make_photo()
