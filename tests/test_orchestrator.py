"""Test detection fan-out and batch rendering."""

import asyncio

import pytest

from conftest import open_image
from fakes import FakeProvider, ScriptedDetector
from wireoverlay.detection.base import VisionMarkerDetector
from wireoverlay.detection.orchestrator import DetectionOrchestrator
from wireoverlay.diagram.model import MarkerMap
from wireoverlay.errors import DecodeError, DetectionError
from wireoverlay.types import MarkerId, Variant


def _map(**labels) -> MarkerMap:
    return MarkerMap.from_labels(Variant.FOUR_POINT, {k.lstrip("p"): v for k, v in labels.items()})


MAP_A = _map(p1={"x": 100, "y": 100}, p2={"x": 900, "y": 100})
MAP_B = _map(p3={"x": 100, "y": 500}, p4={"x": 900, "y": 500})
MAP_C = _map(p1={"x": 500, "y": 500})


def test_detect_once(photo):
    orchestrator = DetectionOrchestrator(ScriptedDetector([MAP_A]))
    assert asyncio.run(orchestrator.detect_once(photo)) == MAP_A
    assert orchestrator.metrics.detection_count == 1


def test_detect_batch_runs_concurrently(photo):
    detector = ScriptedDetector([MAP_A, MAP_B, MAP_C], delay=0.05)
    maps = asyncio.run(DetectionOrchestrator(detector).detect_batch(photo, 3))
    assert maps == [MAP_A, MAP_B, MAP_C]
    assert detector.calls == 3
    assert detector.max_in_flight == 3


def test_generate_batch_pairs_maps_with_images(photo):
    detector = ScriptedDetector([MAP_A, MAP_B, MAP_C])
    orchestrator = DetectionOrchestrator(detector)
    items = asyncio.run(orchestrator.generate_batch(photo, 3))

    assert len(items) == 3
    assert [item.markers for item in items] == [MAP_A, MAP_B, MAP_C]
    assert [s.key for s in items[0].image.segments_drawn] == ["P1-P2"]
    assert [s.key for s in items[1].image.segments_drawn] == ["P3-P4"]
    assert items[2].image.segments_drawn == ()
    assert items[2].image.markers_drawn == (MarkerId.P1,)
    for item in items:
        assert open_image(item.image.data).size == (1000, 800)
    assert orchestrator.metrics.render_count == 3


def test_batch_fails_as_a_whole(photo):
    detector = ScriptedDetector([MAP_A, DetectionError("upstream 500"), MAP_C])
    orchestrator = DetectionOrchestrator(detector)
    with pytest.raises(DetectionError, match="upstream 500"):
        asyncio.run(orchestrator.generate_batch(photo, 3))
    assert orchestrator.metrics.failure_counts["DetectionError"] == 1


def test_detect_batch_fails_as_a_whole(photo):
    detector = ScriptedDetector([DetectionError("bad json"), MAP_B])
    with pytest.raises(DetectionError):
        asyncio.run(DetectionOrchestrator(detector).detect_batch(photo, 2))


def test_batch_size_must_be_positive(photo):
    orchestrator = DetectionOrchestrator(ScriptedDetector([]))
    with pytest.raises(ValueError):
        asyncio.run(orchestrator.detect_batch(photo, 0))
    with pytest.raises(ValueError):
        asyncio.run(orchestrator.generate_batch(photo, 0))


def test_undecodable_photo_fails_before_detection():
    detector = ScriptedDetector([MAP_A])
    with pytest.raises(DecodeError):
        asyncio.run(DetectionOrchestrator(detector).generate_batch(b"garbage", 1))
    assert detector.calls == 0


def test_vision_detector_end_to_end(photo):
    provider = FakeProvider(['{"1": {"x": 100, "y": 200}, "A": {"x": 300, "y": 200}, "2": null}'])
    orchestrator = DetectionOrchestrator(VisionMarkerDetector(provider, Variant.THREE_POINT))
    item = asyncio.run(orchestrator.generate(photo))

    assert item.markers.variant == Variant.THREE_POINT
    assert [s.key for s in item.image.segments_drawn] == ["P1-PA"]
    assert provider.mime_types == ["image/png"]
    assert '"A"' in provider.prompts[0]


def test_vision_detector_propagates_parse_errors(photo):
    provider = FakeProvider(["I could not find any markers."])
    orchestrator = DetectionOrchestrator(VisionMarkerDetector(provider))
    with pytest.raises(DetectionError):
        asyncio.run(orchestrator.detect_batch(photo, 2))
