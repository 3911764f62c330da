"""OpenCV window that feeds mouse events into a capture session.

Frames are RGB everywhere in roadscale; conversion to BGR happens only at
``cv2.imshow``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

import cv2
import numpy as np

from roadscale.calibration.session import Calibrator, HomographyCaptureSession, LineCaptureSession
from roadscale.utils.data_models import CalibrationMode, Length
from roadscale.utils.video_io import VideoReader
from roadscale.utils.visualization import (
    QUALITY_COLORS,
    draw_calibration,
    draw_line_preview,
    draw_quad,
    draw_status_chip,
)

logger = logging.getLogger(__name__)

WINDOW_NAME = "roadscale - calibrate"
KEY_ESC = 27

_SEVERITY_COLORS = {
    "ok": (80, 200, 120),
    "warn": (255, 190, 60),
    "bad": (235, 80, 80),
}


def load_still(path: Path, frame_number: int = 0, *, video_suffixes: Iterable[str] = ()) -> np.ndarray:
    """Load an RGB still from an image file, or frame ``frame_number`` of a video."""
    if path.suffix.lower() in set(video_suffixes):
        return VideoReader(path).get_frame(frame_number)
    bgr = cv2.imread(str(path))
    if bgr is None:
        raise FileNotFoundError(f"Could not read image: {path}")
    return cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)


def render(image: np.ndarray, calibrator: Calibrator) -> np.ndarray:
    """Current calibration, in-progress points, guide and banner over a copy of ``image``."""
    frame = image.copy()
    draw_calibration(frame, calibrator.state)

    session = calibrator.session
    if isinstance(session, LineCaptureSession) and session.is_open:
        draw_line_preview(frame, session.start_point, session.preview_end)
    elif isinstance(session, HomographyCaptureSession) and session.is_open:
        draw_quad(frame, session.points, grid=False)

    notifier = calibrator.notifier
    h = frame.shape[0]
    if notifier.guide:
        draw_status_chip(frame, notifier.guide, origin=(8, h - 56))
    if notifier.current is not None:
        color = _SEVERITY_COLORS[notifier.current.severity]
        cv2.putText(frame, notifier.current.message, (8, h - 16), cv2.FONT_HERSHEY_SIMPLEX, 0.6, color, 2)
    label = calibrator.state.quality_label
    draw_status_chip(frame, f"cal:{label.value}", label)
    cv2.rectangle(frame, (0, 0), (frame.shape[1] - 1, h - 1), QUALITY_COLORS[label], 1)
    return frame


def run_picker(
    image: np.ndarray,
    calibrator: Calibrator,
    mode: CalibrationMode,
    *,
    depth: Optional[Length] = None,
) -> None:
    """
    Block until the session completes or the operator quits.

    Keys:
        ESC / q: cancel the session and close the window
        r: restart the session (after a rejected line, or to redo the points)
        Enter: close the window (after a calibration is committed)
    """
    def start() -> None:
        if mode == CalibrationMode.HOMOGRAPHY:
            calibrator.start_homography(depth=depth)
        else:
            calibrator.start_line()

    def on_mouse(event, x, y, flags, param):
        p = (float(x), float(y))
        if event == cv2.EVENT_LBUTTONDOWN:
            calibrator.pointer_down(p)
        elif event == cv2.EVENT_MOUSEMOVE:
            calibrator.pointer_move(p)
        elif event == cv2.EVENT_LBUTTONUP:
            calibrator.pointer_up(p)

    start()
    cv2.namedWindow(WINDOW_NAME, cv2.WINDOW_NORMAL)
    cv2.setMouseCallback(WINDOW_NAME, on_mouse)
    try:
        while True:
            shown = render(image, calibrator)
            cv2.imshow(WINDOW_NAME, cv2.cvtColor(shown, cv2.COLOR_RGB2BGR))
            key = cv2.waitKey(30) & 0xFF
            if key in (KEY_ESC, ord("q")):
                calibrator.cancel()
                break
            if key == ord("r"):
                start()
            elif key in (13, 10) and not (calibrator.session and calibrator.session.is_open):
                break
    finally:
        cv2.destroyWindow(WINDOW_NAME)
    logger.info("Picker closed: %s", calibrator.state.mode.value)
