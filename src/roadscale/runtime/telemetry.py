"""roadscale.runtime.telemetry

Rolling frames-per-second and inference latency, recomputed on a fixed
wall-clock window.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional

DEFAULT_WINDOW_MS = 1000.0


@dataclass(frozen=True)
class TelemetrySnapshot:
    fps: float
    infer_ms: Optional[float] = None
    t_ms: float = 0.0

    @property
    def has_measurement(self) -> bool:
        return self.fps > 0


class FrameRateMeter:
    """Counts frames and publishes FPS once per ``window_ms``.

    The published value holds between windows so readers always see the most
    recent complete measurement.
    """

    def __init__(self, window_ms: float = DEFAULT_WINDOW_MS, latency_samples: int = 30) -> None:
        self.window_ms = float(window_ms)
        self._frames = 0
        self._start_ms: Optional[float] = None
        self._fps = 0.0
        self._updated_ms = 0.0
        self._latencies: Deque[float] = deque(maxlen=max(1, int(latency_samples)))

    def tick(self, now_ms: float) -> bool:
        """Count one frame; returns True when a new FPS value was published."""
        self._frames += 1
        if self._start_ms is None:
            self._start_ms = now_ms
        elapsed = now_ms - self._start_ms
        if elapsed >= self.window_ms:
            self._fps = float(round(self._frames * 1000.0 / elapsed))
            self._frames = 0
            self._start_ms = now_ms
            self._updated_ms = now_ms
            return True
        return False

    def record_inference(self, infer_ms: float) -> None:
        self._latencies.append(float(infer_ms))

    @property
    def fps(self) -> float:
        return self._fps

    @property
    def infer_ms(self) -> Optional[float]:
        if not self._latencies:
            return None
        return sum(self._latencies) / float(len(self._latencies))

    def snapshot(self) -> TelemetrySnapshot:
        return TelemetrySnapshot(fps=self._fps, infer_ms=self.infer_ms, t_ms=self._updated_ms)
