"""roadscale.calibration.measure

Pixel measurements -> real-world distance and speed using the active
calibration. Line mode applies the uniform scale; homography mode projects
both points onto the ground plane first.
"""

from __future__ import annotations

from roadscale.calibration.state import CalibrationState
from roadscale.errors import ERROR
from roadscale.geometry.homography import apply_homography
from roadscale.geometry.vectors import Vec2, distance
from roadscale.utils.data_models import FEET_TO_METERS, CalibrationMode, Units

MS_TO_KMH = 3.6
MS_TO_MPH = 2.2369362920544


class NotCalibratedError(RuntimeError):
    def __init__(self, message: str = "No active calibration.") -> None:
        super().__init__(message)
        self.code = ERROR.CAL_NOT_CALIBRATED


def pixel_to_ground(state: CalibrationState, p: Vec2) -> Vec2:
    """Ground-plane meters for one pixel point (homography mode only)."""
    if state.mode != CalibrationMode.HOMOGRAPHY or state.matrix is None:
        raise NotCalibratedError("pixel_to_ground needs a homography calibration.")
    ground = apply_homography(state.matrix, p[0], p[1])
    if ground is None:
        raise ValueError(f"point {p} maps to infinity (above the horizon)")
    return ground


def distance_m(state: CalibrationState, p0: Vec2, p1: Vec2) -> float:
    if state.mode == CalibrationMode.LINE and state.scale_m_per_px is not None:
        return distance(p0, p1) * state.scale_m_per_px
    if state.mode == CalibrationMode.HOMOGRAPHY:
        return distance(pixel_to_ground(state, p0), pixel_to_ground(state, p1))
    raise NotCalibratedError()


def speed_m_s(state: CalibrationState, prev: Vec2, curr: Vec2, elapsed_s: float) -> float:
    return distance_m(state, prev, curr) / max(elapsed_s, 1e-6)


def speed_kmh(state: CalibrationState, prev: Vec2, curr: Vec2, elapsed_s: float) -> float:
    """Speed in km/h between two pixel positions ``elapsed_s`` seconds apart."""
    return speed_m_s(state, prev, curr, elapsed_s) * MS_TO_KMH


def speed_mph(state: CalibrationState, prev: Vec2, curr: Vec2, elapsed_s: float) -> float:
    return speed_m_s(state, prev, curr, elapsed_s) * MS_TO_MPH


def meters_to_units(meters: float, units: Units) -> float:
    return meters / FEET_TO_METERS if Units(units) == Units.FEET else meters
