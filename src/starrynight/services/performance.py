"""Frame-rate and operation timing monitor."""

import logging
import time
from collections import deque
from contextlib import contextmanager
from typing import Iterator

import numpy as np

from starrynight.events.types import PerformanceFramePayload, PerformanceThresholdPayload, UnifiedEvent
from starrynight.models.health import HealthResult
from starrynight.orchestration.descriptor import SystemContext
from starrynight.services.base import BaseSystem

logger = logging.getLogger(__name__)


class PerformanceMonitor(BaseSystem):
    """
    Collects frame deltas and named operation durations.

    Frames come from coordinator ticks and from `performance:frame` events.
    Health fails when the average frame rate over the window drops below
    `min_healthy_fps` once MIN_SAMPLES frames have been seen.

    While degraded, operation timing is switched off; frame sampling keeps
    running so recovery can be detected.
    """

    MIN_SAMPLES = 30
    FRAME_WINDOW = 240
    OPERATION_WINDOW = 100

    def __init__(self, context: SystemContext):
        super().__init__(context)
        self._frames: deque[float] = deque(maxlen=self.FRAME_WINDOW)
        self._operations: dict[str, deque[float]] = {}
        self._below_threshold = False

    def _setup(self) -> None:
        self.subscribe(UnifiedEvent.PERFORMANCE_FRAME, self._on_frame)

    def _teardown(self) -> None:
        self._frames.clear()
        self._operations.clear()

    def _on_frame(self, payload: PerformanceFramePayload) -> None:
        self.record_frame(payload.delta_time)

    def update_animation(self, delta_ms: float) -> None:
        self.record_frame(delta_ms)

    # =================================================================
    # Recording
    # =================================================================

    def record_frame(self, delta_ms: float) -> None:
        if delta_ms > 0:
            self._frames.append(float(delta_ms))

    def record_operation(self, name: str, duration_ms: float) -> None:
        if self.is_degraded:
            return
        self._operations.setdefault(name, deque(maxlen=self.OPERATION_WINDOW)).append(duration_ms)

    @contextmanager
    def time_operation(self, name: str) -> Iterator[None]:
        """Record the duration of the enclosed block under name."""
        started = time.perf_counter()
        try:
            yield
        finally:
            self.record_operation(name, (time.perf_counter() - started) * 1000)

    # =================================================================
    # Statistics
    # =================================================================

    def frame_stats(self) -> dict[str, float]:
        if not self._frames:
            return {"samples": 0, "average_fps": 0.0, "p95_frame_ms": 0.0, "max_frame_ms": 0.0}

        frames = np.fromiter(self._frames, dtype=float)
        mean_ms = float(frames.mean())
        return {
            "samples": int(frames.size),
            "average_fps": 1000.0 / mean_ms if mean_ms > 0 else 0.0,
            "p95_frame_ms": float(np.percentile(frames, 95)),
            "max_frame_ms": float(frames.max()),
        }

    def operation_stats(self, name: str) -> dict[str, float]:
        samples = self._operations.get(name)
        if not samples:
            return {"count": 0, "mean_ms": 0.0, "max_ms": 0.0}
        values = np.fromiter(samples, dtype=float)
        return {"count": int(values.size), "mean_ms": float(values.mean()), "max_ms": float(values.max())}

    @property
    def operation_names(self) -> list[str]:
        return sorted(self._operations)

    def _check_health(self) -> HealthResult:
        stats = self.frame_stats()
        threshold = self.config.min_healthy_fps
        below = stats["samples"] >= self.MIN_SAMPLES and stats["average_fps"] < threshold

        if below and not self._below_threshold:
            self.publish(
                UnifiedEvent.PERFORMANCE_THRESHOLD_EXCEEDED,
                PerformanceThresholdPayload(metric="average_fps", value=stats["average_fps"], threshold=threshold),
            )
        self._below_threshold = below

        if below:
            return HealthResult.failing(
                f"average frame rate {stats['average_fps']:.1f} fps is below {threshold:g} fps", **stats
            )
        return HealthResult.ok(f"{stats['samples']} frames sampled", **stats)
