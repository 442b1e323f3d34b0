"""In-process metrics collector — no external deps."""

from __future__ import annotations

import time
from collections import defaultdict
from dataclasses import dataclass, field


@dataclass
class MetricsCollector:
    detection_count: int = 0
    render_count: int = 0
    failure_counts: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    detection_latencies: list[int] = field(default_factory=list)
    render_latencies: list[int] = field(default_factory=list)
    _start_time: float = field(default_factory=time.time)

    def record_detection(self, latency_ms: int = 0) -> None:
        self.detection_count += 1
        _keep(self.detection_latencies, latency_ms)

    def record_render(self, latency_ms: int = 0) -> None:
        self.render_count += 1
        _keep(self.render_latencies, latency_ms)

    def record_failure(self, error_type: str) -> None:
        self.failure_counts[error_type] += 1

    def summary(self) -> dict:
        return {
            "uptime_seconds": int(time.time() - self._start_time),
            "detections": self.detection_count,
            "renders": self.render_count,
            "failures": dict(self.failure_counts),
            "avg_detection_ms": _avg(self.detection_latencies),
            "avg_render_ms": _avg(self.render_latencies),
        }


def _keep(latencies: list[int], latency_ms: int) -> None:
    if latency_ms:
        latencies.append(latency_ms)
        if len(latencies) > 1000:
            del latencies[:-500]


def _avg(latencies: list[int]) -> int:
    return int(sum(latencies) / len(latencies)) if latencies else 0
