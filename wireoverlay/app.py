"""FastAPI application factory — wires everything together."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from wireoverlay import __version__
from wireoverlay.config import WireOverlayConfig
from wireoverlay.gateway.http_api import router as api_router
from wireoverlay.llm.base import VisionProvider
from wireoverlay.llm.providers.gemini import GeminiProvider
from wireoverlay.observability.metrics import MetricsCollector

logger = logging.getLogger(__name__)


def create_app(
    config: WireOverlayConfig | None = None,
    provider: Optional[VisionProvider] = None,
) -> FastAPI:
    """Build and return the FastAPI application."""
    if config is None:
        config = WireOverlayConfig.from_yaml()

    app = FastAPI(title="wireoverlay", version=__version__, docs_url="/docs")
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

    if provider is None and config.gemini_api_key:
        provider = GeminiProvider(config.gemini_api_key, config.gemini_model, config.gemini_image_model)
    if provider is None:
        logger.warning("No Gemini API key configured; /detect, /generate and /edit are disabled")

    app.state.config = config
    app.state.provider = provider
    app.state.metrics = MetricsCollector()

    app.include_router(api_router)

    @app.get("/health")
    async def health():
        return {
            "status": "healthy",
            "version": __version__,
            "detector": provider.name() if provider else "disabled",
            "variant": config.variant.value,
        }

    @app.get("/metrics")
    async def metrics():
        return app.state.metrics.summary()

    logger.info("wireoverlay %s ready (variant=%s)", __version__, config.variant.value)
    return app
