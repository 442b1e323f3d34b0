"""Marker map model, segment styles and the overlay renderer."""

from wireoverlay.diagram.model import MarkerMap, MarkerPosition, Segment
from wireoverlay.diagram.renderer import OverlayRenderer, RenderedImage

__all__ = ["MarkerMap", "MarkerPosition", "OverlayRenderer", "RenderedImage", "Segment"]
