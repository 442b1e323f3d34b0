"""Marker detection through a vision model, plus batch fan-out."""

from wireoverlay.detection.base import MarkerDetector, VisionMarkerDetector
from wireoverlay.detection.orchestrator import BatchItem, DetectionOrchestrator
from wireoverlay.detection.parser import parse_marker_map

__all__ = [
    "BatchItem",
    "DetectionOrchestrator",
    "MarkerDetector",
    "VisionMarkerDetector",
    "parse_marker_map",
]
