"""Exception hierarchy shared by the renderer, detector and orchestrator."""

from __future__ import annotations


class WireOverlayError(Exception):
    """Base class for all wireoverlay failures."""


class DecodeError(WireOverlayError):
    """The base image bytes could not be decoded."""


class CanvasUnavailable(WireOverlayError):
    """A drawing surface could not be acquired. Not retried."""


class DetectionError(WireOverlayError):
    """The detector failed or returned content that is not a marker map."""


class EmptyResultError(WireOverlayError):
    """The model call succeeded but produced no usable image."""
