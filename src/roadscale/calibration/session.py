"""roadscale.calibration.session

Capture sessions turn pointer input into calibrations. Each session is an
explicit state machine::

    IDLE -> AWAITING_FIRST_POINT -> AWAITING_NEXT_POINT(n) -> COMPLETE
                                                           \\-> ABORTED

Closed sessions (COMPLETE or ABORTED) ignore further input. ``Calibrator``
owns at most one open session; starting a new one force-closes the old one.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from roadscale.calibration.homography import POINT_ORDER, calibrate_homography, homography_quality
from roadscale.calibration.line import MIN_PIXEL_LENGTH, calibrate_line, line_quality
from roadscale.calibration.state import CalibrationState
from roadscale.errors import ERROR, CalibrationRejected
from roadscale.geometry.vectors import Vec2
from roadscale.notify import Notifier
from roadscale.utils.data_models import (
    CalibrationMode,
    HomographyCalibration,
    Length,
    LineCalibration,
    Units,
)

IDLE_GUIDE = "Select mode and click Start Calibration"
LINE_GUIDE = "Click and drag along the road to draw a line, then release."
HOMOGRAPHY_GUIDE = "Click 4 points: " + ", ".join(POINT_ORDER) + "."

DEFAULT_DEPTH = Length(value=40.0, units=Units.FEET)


class SessionStatus(str, Enum):
    IDLE = "idle"
    AWAITING_FIRST_POINT = "awaiting_first_point"
    AWAITING_NEXT_POINT = "awaiting_next_point"
    COMPLETE = "complete"
    ABORTED = "aborted"


@dataclass(frozen=True)
class Surface:
    """Rendering surface bounds in local pixel space."""

    width: float
    height: float

    def contains(self, p: Vec2) -> bool:
        return 0.0 <= p[0] <= self.width and 0.0 <= p[1] <= self.height


class CaptureSession:
    mode: CalibrationMode = CalibrationMode.NONE

    def __init__(self, state: CalibrationState, notifier: Notifier, surface: Surface) -> None:
        self.state = state
        self.notifier = notifier
        self.surface = surface
        self.status = SessionStatus.IDLE
        self._points: list[Vec2] = []

    @property
    def is_open(self) -> bool:
        return self.status in (SessionStatus.AWAITING_FIRST_POINT, SessionStatus.AWAITING_NEXT_POINT)

    @property
    def points(self) -> list[Vec2]:
        return list(self._points)

    def start(self) -> None:
        self.state.begin(self.mode)
        self._points = []
        self.status = SessionStatus.AWAITING_FIRST_POINT

    def cancel(self) -> None:
        if not self.is_open:
            return
        self._close(SessionStatus.ABORTED)
        self.notifier.log(f"{self.mode.value} capture cancelled.")

    def _close(self, status: SessionStatus) -> None:
        self._points = []
        self.status = status
        self.notifier.set_guide(IDLE_GUIDE)

    def _reject(self, e: CalibrationRejected) -> None:
        severity = "warn" if e.code == ERROR.CAL_LENGTH_MISSING else "bad"
        self.notifier.show(e.message, severity)
        self.notifier.log(f"{self.mode.value} capture rejected: {e.code}")


class LineCaptureSession(CaptureSession):
    """One-shot: closes after one completed or one rejected drag."""

    mode = CalibrationMode.LINE

    def __init__(
        self,
        state: CalibrationState,
        notifier: Notifier,
        surface: Surface,
        real_length: Optional[Length],
        *,
        min_pixel_length: float = MIN_PIXEL_LENGTH,
    ) -> None:
        super().__init__(state, notifier, surface)
        self.real_length = real_length
        self.min_pixel_length = min_pixel_length
        self.preview_end: Optional[Vec2] = None

    def start(self) -> None:
        super().start()
        self.preview_end = None
        self.notifier.set_guide(LINE_GUIDE)
        self.notifier.show("Draw a line along the road, then release.", "ok")

    @property
    def start_point(self) -> Optional[Vec2]:
        return self._points[0] if self._points else None

    def pointer_down(self, p: Vec2) -> bool:
        if self.status != SessionStatus.AWAITING_FIRST_POINT or not self.surface.contains(p):
            return False
        self._points = [(float(p[0]), float(p[1]))]
        self.preview_end = self._points[0]
        self.status = SessionStatus.AWAITING_NEXT_POINT
        return True

    def pointer_move(self, p: Vec2) -> bool:
        if self.status != SessionStatus.AWAITING_NEXT_POINT or not self.surface.contains(p):
            return False
        self.preview_end = (float(p[0]), float(p[1]))
        return True

    def pointer_up(self, p: Optional[Vec2] = None) -> Optional[LineCalibration]:
        if self.status != SessionStatus.AWAITING_NEXT_POINT:
            return None
        if p is not None and self.surface.contains(p):
            self.preview_end = (float(p[0]), float(p[1]))
        start = self._points[0]
        end = self.preview_end if self.preview_end is not None else start

        try:
            cal = calibrate_line(start, end, self.real_length, min_pixel_length=self.min_pixel_length)
        except CalibrationRejected as e:
            self._reject(e)
            self._close(SessionStatus.ABORTED)
            return None

        quality = line_quality(cal)
        self.state.commit_line(cal, quality)
        self.notifier.show(f"Line calibration set ({cal.real_length}).", "ok")
        self.notifier.log(
            f"Calibration line: pxLen={cal.pixel_length:.1f}, scale={cal.scale_m_per_px:.5f} m/px, "
            f"quality={quality.value:.2f} ({quality.label.value})"
        )
        self._close(SessionStatus.COMPLETE)
        return cal


class HomographyCaptureSession(CaptureSession):
    """Collects four clicks; a rejected quad restarts the same session."""

    mode = CalibrationMode.HOMOGRAPHY

    def __init__(
        self,
        state: CalibrationState,
        notifier: Notifier,
        surface: Surface,
        lane_width: Optional[Length],
        depth: Length = DEFAULT_DEPTH,
        *,
        edge_ratio_warn: float = 1.3,
        edge_angle_warn_deg: float = 15.0,
    ) -> None:
        super().__init__(state, notifier, surface)
        self.lane_width = lane_width
        self.depth = depth
        self.edge_ratio_warn = edge_ratio_warn
        self.edge_angle_warn_deg = edge_angle_warn_deg

    @property
    def remaining(self) -> int:
        return len(POINT_ORDER) - len(self._points)

    @property
    def next_label(self) -> Optional[str]:
        return POINT_ORDER[len(self._points)] if self.is_open else None

    def start(self) -> None:
        super().start()
        self.notifier.set_guide(HOMOGRAPHY_GUIDE)
        self.notifier.show(HOMOGRAPHY_GUIDE, "ok")

    def _restart(self) -> None:
        self._points = []
        self.status = SessionStatus.AWAITING_FIRST_POINT
        self.notifier.set_guide(HOMOGRAPHY_GUIDE)

    def click(self, p: Vec2) -> Optional[HomographyCalibration]:
        if not self.is_open or not self.surface.contains(p):
            return None
        self._points.append((float(p[0]), float(p[1])))
        self.status = SessionStatus.AWAITING_NEXT_POINT
        n = len(self._points)
        self.notifier.set_guide(f"Point {n}/4 clicked. {self.remaining} remaining.")
        if n < len(POINT_ORDER):
            return None
        return self._complete()

    def _complete(self) -> Optional[HomographyCalibration]:
        try:
            cal, shape = calibrate_homography(self._points, self.lane_width, self.depth)
        except CalibrationRejected as e:
            self._reject(e)
            if e.code == ERROR.CAL_LENGTH_MISSING:
                # Re-clicking cannot fix a missing width.
                self._close(SessionStatus.ABORTED)
            else:
                self._restart()
            return None

        if shape.needs_warning(ratio_warn=self.edge_ratio_warn, angle_warn_deg=self.edge_angle_warn_deg):
            self.notifier.show("Opposite edges differ too much. Proceed with caution.", "warn")

        quality = homography_quality(cal)
        self.state.commit_homography(cal, quality)
        self.notifier.show("Homography set. Grid overlay shown.", "ok")
        self.notifier.log(
            f"Homography set. near={shape.near_edge_px:.1f} far={shape.far_edge_px:.1f} "
            f"angle={shape.angle_deg:.1f}deg quality={quality.value:.2f} ({quality.label.value})"
        )
        self._close(SessionStatus.COMPLETE)
        return cal


class Calibrator:
    """Owns the calibration state and at most one open capture session."""

    def __init__(
        self,
        surface: Surface,
        *,
        state: Optional[CalibrationState] = None,
        notifier: Optional[Notifier] = None,
        units: Units = Units.FEET,
        min_pixel_length: float = MIN_PIXEL_LENGTH,
        default_depth: Length = DEFAULT_DEPTH,
        presets: Optional[Mapping[str, Length]] = None,
        edge_ratio_warn: float = 1.3,
        edge_angle_warn_deg: float = 15.0,
    ) -> None:
        self.surface = surface
        self.state = state if state is not None else CalibrationState()
        self.notifier = notifier if notifier is not None else Notifier()
        self.units = Units(units)
        self.min_pixel_length = min_pixel_length
        self.default_depth = default_depth
        self.presets: dict[str, Length] = dict(presets or {})
        self.edge_ratio_warn = edge_ratio_warn
        self.edge_angle_warn_deg = edge_angle_warn_deg
        self.length: Optional[Length] = None
        self.session: Optional[CaptureSession] = None
        self.notifier.set_guide(IDLE_GUIDE)

    def set_length(self, value: float, units: Optional[Units] = None) -> Length:
        if units is not None:
            self.units = Units(units)
        self.length = Length(value=float(value), units=self.units)
        return self.length

    def set_preset(self, value: float, units: Units = Units.FEET) -> Length:
        length = self.set_length(value, units)
        self.notifier.show(f"Preset applied: {length}", "ok")
        self.notifier.log(f"Preset length set: {length}")
        return length

    def use_preset(self, name: str) -> Length:
        try:
            preset = self.presets[name]
        except KeyError:
            raise KeyError(f"unknown preset {name!r}; known: {sorted(self.presets)}") from None
        return self.set_preset(preset.value, preset.units)

    def _close_open_session(self) -> None:
        if self.session is not None and self.session.is_open:
            self.session.cancel()

    def start_line(self, real_length: Optional[Length] = None) -> LineCaptureSession:
        self._close_open_session()
        session = LineCaptureSession(
            self.state,
            self.notifier,
            self.surface,
            real_length if real_length is not None else self.length,
            min_pixel_length=self.min_pixel_length,
        )
        self.session = session
        session.start()
        return session

    def start_homography(
        self,
        lane_width: Optional[Length] = None,
        depth: Optional[Length] = None,
    ) -> HomographyCaptureSession:
        self._close_open_session()
        session = HomographyCaptureSession(
            self.state,
            self.notifier,
            self.surface,
            lane_width if lane_width is not None else self.length,
            depth if depth is not None else self.default_depth,
            edge_ratio_warn=self.edge_ratio_warn,
            edge_angle_warn_deg=self.edge_angle_warn_deg,
        )
        self.session = session
        session.start()
        return session

    def start(self, mode: CalibrationMode) -> CaptureSession:
        if mode == CalibrationMode.LINE:
            return self.start_line()
        if mode == CalibrationMode.HOMOGRAPHY:
            return self.start_homography()
        raise ValueError(f"cannot start a capture session for mode {mode!r}")

    def cancel(self) -> None:
        self._close_open_session()

    def reset(self) -> None:
        self._close_open_session()
        self.state.reset()
        self.notifier.show("Calibration reset", "warn")
        self.notifier.log("Calibration reset.")

    # Pointer routing for whichever session is open.

    def pointer_down(self, p: Vec2) -> None:
        if isinstance(self.session, LineCaptureSession):
            self.session.pointer_down(p)
        elif isinstance(self.session, HomographyCaptureSession):
            self.session.click(p)

    def pointer_move(self, p: Vec2) -> None:
        if isinstance(self.session, LineCaptureSession):
            self.session.pointer_move(p)

    def pointer_up(self, p: Optional[Vec2] = None) -> None:
        if isinstance(self.session, LineCaptureSession):
            self.session.pointer_up(p)

