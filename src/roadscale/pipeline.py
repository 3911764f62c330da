"""
Live processing loop.

Per frame: draw the calibration overlay and status chip, hand the frame to
the inference worker when the cadence selects it, consume whatever results
have arrived, update telemetry, and let the adaptive controller react.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator, Optional, Protocol

import numpy as np
from tqdm import tqdm

from roadscale.calibration.state import CalibrationState
from roadscale.notify import Notifier
from roadscale.runtime.adaptive import AdaptiveConfig, AdaptiveController, Mitigation
from roadscale.runtime.telemetry import FrameRateMeter, TelemetrySnapshot
from roadscale.runtime.tuning import ResolutionTier, RuntimeTuning
from roadscale.runtime.worker import Detector, InferenceWorker
from roadscale.utils.data_models import Detection
from roadscale.utils.video_io import VideoWriter, fit_to_tier
from roadscale.utils.visualization import draw_calibration, draw_status_chip, format_chip


class FrameSource(Protocol):
    width: int
    height: int
    fps: float
    total_frames: Optional[int]

    def frames(self, start_frame: int = 0, end_frame: Optional[int] = None) -> Iterator[tuple[int, np.ndarray]]: ...


@dataclass
class RunSummary:
    frames: int = 0
    inference_submitted: int = 0
    inference_skipped_busy: int = 0
    inference_results: int = 0
    errors: list[str] = field(default_factory=list)
    mitigations: list[Mitigation] = field(default_factory=list)
    final_tuning: Optional[RuntimeTuning] = None
    final_fps: float = 0.0


def _perf_ms() -> float:
    return time.perf_counter() * 1000.0


class Pipeline:
    """Processing loop around an externally owned calibration state."""

    def __init__(
        self,
        config: dict,
        calibration: Optional[CalibrationState] = None,
        *,
        notifier: Optional[Notifier] = None,
        detector: Optional[Detector] = None,
        clock: Callable[[], float] = _perf_ms,
    ):
        """
        Initialize the pipeline.

        Args:
            config: Configuration dictionary
            calibration: Calibration state to draw and report (read only)
            notifier: Status sink shared with the calibration subsystem
            detector: Inference engine run inside the worker; defaults to the null detector
            clock: Millisecond clock, injectable for tests
        """
        self.config = config
        self.calibration = calibration if calibration is not None else CalibrationState()
        self.notifier = notifier if notifier is not None else Notifier()
        self.clock = clock

        proc_cfg = config.get("processing", {})
        tel_cfg = config.get("telemetry", {})
        self.backend = str(proc_cfg.get("backend", "cpu"))
        self.model = str(proc_cfg.get("model", "yolov5n"))

        self.meter = FrameRateMeter(
            window_ms=float(tel_cfg.get("window_ms", 1000)),
            latency_samples=int(tel_cfg.get("latency_samples", 30)),
        )
        self.controller = AdaptiveController(
            AdaptiveConfig.from_config(config.get("adaptive", {})),
            notifier=self.notifier,
        )
        self.worker = InferenceWorker(detector)
        self.detections: dict[int, list[Detection]] = {}
        self.summary = RunSummary()
        self._infer_tick = 0

    @property
    def tuning(self) -> RuntimeTuning:
        return self.controller.tuning

    @property
    def telemetry(self) -> TelemetrySnapshot:
        return self.meter.snapshot()

    @property
    def chip_text(self) -> str:
        return format_chip(self.backend, self.tuning, self.calibration.quality_label)

    def select_resolution(self, tier: ResolutionTier) -> Optional[Mitigation]:
        """Operator tier choice; the controller holds it for one period."""
        mitigation = self.controller.select_resolution(tier, self.clock())
        if mitigation is not None:
            self.summary.mitigations.append(mitigation)
        return mitigation

    def start(self) -> None:
        if not self.worker.running:
            self.worker.start(self.backend, self.model, int(self.tuning.resolution))
        self.notifier.show("Running", "ok")
        self.notifier.log("Loop started.")

    def stop(self) -> None:
        self.worker.dispose()
        self._consume_worker_messages()
        self.summary.final_tuning = self.tuning
        self.summary.final_fps = self.meter.fps
        self.notifier.show("Stopped", "warn")
        self.notifier.log("Loop stopped.")

    def process_frame(self, frame_idx: int, frame: np.ndarray, now_ms: Optional[float] = None) -> np.ndarray:
        """Run one render tick and return the annotated frame."""
        now = self.clock() if now_ms is None else now_ms
        annotated = np.ascontiguousarray(frame).copy()
        draw_calibration(annotated, self.calibration)
        draw_status_chip(annotated, self.chip_text, self.calibration.quality_label)

        tuning = self.tuning
        if tuning.selects_frame(self._infer_tick):
            small = fit_to_tier(frame, int(tuning.resolution))
            if self.worker.submit_frame(frame_idx, small, now):
                self.summary.inference_submitted += 1
            else:
                self.summary.inference_skipped_busy += 1
        self._infer_tick += 1

        self._consume_worker_messages()

        self.summary.frames += 1
        if self.meter.tick(now):
            self.notifier.log(f"FPS:{self.meter.fps:g} • backend:{self.backend} • res:{tuning.resolution.label}")
        mitigation = self.controller.tick(self.meter.snapshot(), now)
        if mitigation is not None:
            self.summary.mitigations.append(mitigation)
        return annotated

    def _consume_worker_messages(self) -> None:
        for msg in self.worker.drain():
            kind = msg.get("type")
            if kind == "result":
                if msg["frame_idx"] < 0:
                    continue
                self.summary.inference_results += 1
                self.meter.record_inference(msg["infer_ms"])
                self.detections[msg["frame_idx"]] = list(msg["detections"])
            elif kind == "error":
                self.summary.errors.append(msg["message"])
                self.notifier.show(msg["message"], "bad")
                self.notifier.log(msg["message"])

    def run(
        self,
        source: FrameSource,
        start_frame: int = 0,
        end_frame: Optional[int] = None,
        output_path: Optional[Path] = None,
        resolution: Optional[ResolutionTier] = None,
    ) -> RunSummary:
        """
        Run the loop over a frame source.

        Args:
            source: Video file or camera reader
            start_frame: First frame to process
            end_frame: Last frame to process (exclusive)
            output_path: Optional path for the annotated video
            resolution: Starting tier chosen by the operator

        Returns:
            RunSummary with counters, mitigations and final tuning
        """
        self.summary = RunSummary()
        if resolution is not None:
            self.select_resolution(resolution)
        writer: Optional[VideoWriter] = None
        if output_path is not None:
            out_cfg = self.config.get("processing", {})
            writer = VideoWriter(
                output_path,
                source.width,
                source.height,
                fps=source.fps,
                codec=str(out_cfg.get("output_codec", "h264")),
                crf=int(out_cfg.get("output_crf", 23)),
            )

        total = None
        if source.total_frames:
            total = (end_frame if end_frame is not None else source.total_frames) - start_frame

        self.start()
        try:
            with tqdm(total=total, desc="Processing", unit="frame") as pbar:
                for frame_idx, frame in source.frames(start_frame=start_frame, end_frame=end_frame):
                    annotated = self.process_frame(frame_idx, frame)
                    if writer is not None:
                        writer.write_frame(annotated)
                    pbar.set_postfix_str(self.chip_text.replace("•", "|"), refresh=False)
                    pbar.update(1)
        finally:
            self.stop()
            if writer is not None:
                writer.close()
        return self.summary
