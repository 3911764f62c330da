"""roadscale.calibration.line

Line mode: one drawn segment of known real-world length gives a uniform
meters-per-pixel scale (no perspective correction).
"""

from __future__ import annotations

import math

from roadscale.calibration.quality import score
from roadscale.errors import ERROR, CalibrationRejected
from roadscale.geometry.vectors import Vec2, normalize, sub
from roadscale.utils.data_models import Length, LineCalibration, QualityScore

MIN_PIXEL_LENGTH = 20.0


def require_length(real_length: Length | None) -> Length:
    if real_length is None or not math.isfinite(real_length.value) or real_length.value <= 0:
        raise CalibrationRejected(
            ERROR.CAL_LENGTH_MISSING,
            "Enter a real-world length or choose a preset.",
        )
    return real_length


def calibrate_line(
    start: Vec2,
    end: Vec2,
    real_length: Length | None,
    *,
    min_pixel_length: float = MIN_PIXEL_LENGTH,
) -> LineCalibration:
    """Derive the scale for a drawn line.

    Raises:
        CalibrationRejected: line shorter than ``min_pixel_length`` or length missing/non-positive
    """
    pixel_length = math.hypot(end[0] - start[0], end[1] - start[1])
    if pixel_length < min_pixel_length:
        raise CalibrationRejected(
            ERROR.CAL_LINE_TOO_SHORT,
            f"Line too short (<{min_pixel_length:g} px). Try again.",
        )
    length = require_length(real_length)

    return LineCalibration(
        start=(float(start[0]), float(start[1])),
        end=(float(end[0]), float(end[1])),
        pixel_length=pixel_length,
        real_length=length,
        scale_m_per_px=length.meters / pixel_length,
        direction=normalize(sub(end, start)),
    )


def line_quality(cal: LineCalibration, *, visually_confirmed: bool = True) -> QualityScore:
    # A single line has no shape-deviation signal.
    return score(cal.real_length.value, cal.real_length.units, 0.0, visually_confirmed)
