from __future__ import annotations

from typing import Iterator, Optional

import numpy as np

from roadscale.calibration.line import calibrate_line, line_quality
from roadscale.calibration.state import CalibrationState
from roadscale.notify import Notifier
from roadscale.pipeline import Pipeline
from roadscale.runtime import ResolutionTier
from roadscale.settings import load_config
from roadscale.utils.data_models import Length, Units


class ListSource:
    def __init__(self, frames: list[np.ndarray], fps: float = 30.0) -> None:
        self._frames = frames
        self.height, self.width = frames[0].shape[:2]
        self.fps = fps
        self.total_frames: Optional[int] = len(frames)

    def frames(self, start_frame: int = 0, end_frame: Optional[int] = None) -> Iterator[tuple[int, np.ndarray]]:
        stop = len(self._frames) if end_frame is None else min(end_frame, len(self._frames))
        for i in range(start_frame, stop):
            yield i, self._frames[i]


def test_process_frame_annotates_a_copy() -> None:
    pipeline = Pipeline(load_config(), notifier=Notifier(clock=lambda: 0.0))
    frame = np.zeros((720, 1280, 3), dtype=np.uint8)
    out = pipeline.process_frame(0, frame, now_ms=0.0)
    assert out.shape == frame.shape
    assert out.any()
    assert not frame.any()


def test_sustained_low_fps_raises_cadence_once_at_lowest_tier() -> None:
    notifier = Notifier(clock=lambda: 0.0)
    pipeline = Pipeline(load_config(), notifier=notifier)
    frame = np.zeros((720, 1280, 3), dtype=np.uint8)

    pipeline.start()
    try:
        # 8 frames per second for five seconds
        for i in range(41):
            pipeline.process_frame(i, frame, now_ms=i * 125.0)
    finally:
        pipeline.stop()

    summary = pipeline.summary
    assert summary.frames == 41
    assert [m.kind for m in summary.mitigations] == ["cadence_up"]
    assert pipeline.tuning.resolution == ResolutionTier.P480
    assert pipeline.tuning.cadence_k == 3
    assert pipeline.chip_text == "cpu • 480p • k:3 • cal:N/A"
    assert summary.final_fps == 8.0
    assert summary.inference_submitted >= 1
    assert "Adaptive: cadence k 2→3" in [n.message for n in notifier.notices_of("warn")]


def test_chip_reflects_calibration_quality() -> None:
    state = CalibrationState()
    cal = calibrate_line((0.0, 0.0), (100.0, 0.0), Length(value=50, units=Units.FEET))
    state.commit_line(cal, line_quality(cal))
    pipeline = Pipeline(load_config(), state)
    assert pipeline.chip_text.endswith("cal:Good")


def test_run_over_frame_source() -> None:
    frames = [np.full((120, 160, 3), i, dtype=np.uint8) for i in range(6)]
    pipeline = Pipeline(load_config(), notifier=Notifier(clock=lambda: 0.0))
    summary = pipeline.run(ListSource(frames), start_frame=1, end_frame=5)
    assert summary.frames == 4
    assert summary.final_tuning == pipeline.tuning
    assert not pipeline.worker.running


def test_run_starts_at_operator_selected_tier() -> None:
    frames = [np.zeros((120, 160, 3), dtype=np.uint8) for _ in range(3)]
    pipeline = Pipeline(load_config(), notifier=Notifier(clock=lambda: 0.0))
    summary = pipeline.run(ListSource(frames), resolution=ResolutionTier.P720)
    assert summary.mitigations[0].kind == "manual_resolution"
    assert pipeline.tuning.resolution == ResolutionTier.P720
    assert pipeline.tuning.resolution_changed_ms is not None
