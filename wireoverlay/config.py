"""Configuration loading from YAML + environment variables."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings

from wireoverlay.diagram.model import Segment
from wireoverlay.diagram.style import SegmentStyle, parse_overrides
from wireoverlay.types import Variant


class WireOverlayConfig(BaseSettings):
    # Server
    host: str = "0.0.0.0"
    port: int = 8350
    log_level: str = "INFO"

    # API keys (from env)
    gemini_api_key: str = ""
    wireoverlay_api_key: str = ""

    # Models
    gemini_model: str = "gemini-2.5-pro"
    gemini_image_model: str = "gemini-2.5-flash-image"

    # Diagram
    variant: Variant = Variant.FOUR_POINT
    batch_size: int = Field(default=3, ge=1, le=10)
    output_format: str = ""  # empty = same as the uploaded photo
    segment_styles: dict[str, Any] = Field(default_factory=dict)

    # HTTP API
    http_api_require_auth: bool = False

    def style_overrides(self) -> dict[Segment, SegmentStyle]:
        """Typed per-segment styles from ``segment_styles``."""
        return parse_overrides(self.segment_styles)

    @classmethod
    def from_yaml(cls, path: str | Path = "wireoverlay.yaml") -> WireOverlayConfig:
        """Load config from YAML file, with env vars taking precedence."""
        yaml_path = Path(path)
        yaml_data: dict[str, Any] = {}

        if yaml_path.exists():
            with yaml_path.open("r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
            yaml_data = {
                k: v for k, v in _flatten_yaml(raw.get("wireoverlay", {})).items()
                if k.upper() not in os.environ
            }

        return cls(**yaml_data)


def _flatten_yaml(data: dict, prefix: str = "") -> dict:
    """Flatten nested YAML into flat key-value pairs for Pydantic."""
    flat: dict[str, Any] = {}
    for key, value in data.items():
        full_key = f"{prefix}_{key}" if prefix else key
        if isinstance(value, dict) and key not in ("segment_styles",):
            flat.update(_flatten_yaml(value, full_key))
        else:
            flat[full_key] = value
    return flat
