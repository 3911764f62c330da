"""roadscale.calibration.homography

Homography mode: four clicked points (near-left, near-right, far-right,
far-left) mapped onto a real-world rectangle of known lane width and depth.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from roadscale.errors import ERROR, CalibrationRejected
from roadscale.geometry.homography import HomographySolveError, max_reprojection_error, solve_homography_4pt
from roadscale.geometry.vectors import (
    Vec2,
    angle_between_deg,
    distance,
    has_collinear_triple,
    is_simple_quad,
    normalize,
    sub,
)
from roadscale.calibration.line import require_length
from roadscale.calibration.quality import score
from roadscale.utils.data_models import HomographyCalibration, Length, QualityScore

POINT_ORDER = ("near-left", "near-right", "far-right", "far-left")

EDGE_RATIO_WARN = 1.3
EDGE_ANGLE_WARN_DEG = 15.0
REPROJECTION_TOLERANCE_M = 1e-6


@dataclass(frozen=True)
class QuadShape:
    near_edge_px: float
    far_edge_px: float
    ratio: float
    angle_deg: float
    near_unit: Vec2

    def needs_warning(
        self,
        *,
        ratio_warn: float = EDGE_RATIO_WARN,
        angle_warn_deg: float = EDGE_ANGLE_WARN_DEG,
    ) -> bool:
        return self.ratio > ratio_warn and self.angle_deg > angle_warn_deg


def quad_shape(points: Sequence[Vec2]) -> QuadShape:
    p1, p2, p3, p4 = points
    near = distance(p1, p2)
    far = distance(p3, p4)
    ratio = max(near, far) / max(1.0, min(near, far))
    v_near = normalize(sub(p2, p1))
    # Far edge runs far-right -> far-left; reverse it so both point the same way.
    v_far = normalize(sub(p3, p4))
    return QuadShape(
        near_edge_px=near,
        far_edge_px=far,
        ratio=ratio,
        angle_deg=angle_between_deg(v_near, v_far),
        near_unit=v_near,
    )


def world_rectangle(width_m: float, depth_m: float) -> list[Vec2]:
    return [(0.0, 0.0), (width_m, 0.0), (width_m, depth_m), (0.0, depth_m)]


def validate_quad(points: Sequence[Vec2]) -> None:
    if len(points) != 4:
        raise CalibrationRejected(ERROR.CAL_QUAD_DEGENERATE, f"Need 4 points, got {len(points)}.")
    if not is_simple_quad(points):
        raise CalibrationRejected(ERROR.CAL_QUAD_SELF_INTERSECTS, "Trapezoid self-intersects. Try again.")
    if has_collinear_triple(points):
        raise CalibrationRejected(ERROR.CAL_QUAD_DEGENERATE, "Three points are collinear. Click again.")


def calibrate_homography(
    points: Sequence[Vec2],
    lane_width: Length | None,
    depth: Length,
    *,
    tolerance_m: float = REPROJECTION_TOLERANCE_M,
) -> tuple[HomographyCalibration, QuadShape]:
    """Solve and verify the pixel -> ground mapping for one clicked quad.

    Raises:
        CalibrationRejected: self-intersecting/degenerate quad, missing width,
            singular system or a matrix that fails to reproduce the corners
    """
    pts = [(float(x), float(y)) for x, y in points]
    validate_quad(pts)
    width = require_length(lane_width)
    depth = require_length(depth)
    shape = quad_shape(pts)

    world = world_rectangle(width.meters, depth.meters)
    try:
        h = solve_homography_4pt(pts, world)
    except HomographySolveError as e:
        raise CalibrationRejected(ERROR.CAL_HOMOGRAPHY_SINGULAR, f"Homography solve failed: {e}. Click again.") from e

    err = max_reprojection_error(h, pts, world)
    if not err <= tolerance_m:
        raise CalibrationRejected(
            ERROR.CAL_HOMOGRAPHY_REPROJECTION,
            f"Homography does not reproduce the clicked corners (error {err:.3g} m). Click again.",
        )

    cal = HomographyCalibration(
        points=pts,
        matrix=h,
        axis_unit=shape.near_unit,
        near_edge_px=shape.near_edge_px,
        far_edge_px=shape.far_edge_px,
        edge_ratio=shape.ratio,
        edge_angle_deg=shape.angle_deg,
        lane_width=width,
        depth=depth,
    )
    return cal, shape


def homography_quality(cal: HomographyCalibration, *, visually_confirmed: bool = True) -> QualityScore:
    return score(cal.lane_width.value, cal.lane_width.units, cal.edge_angle_deg, visually_confirmed)
