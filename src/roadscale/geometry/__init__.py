"""Pure 2D geometry used by both calibration modes."""

from .homography import (
    HomographySolveError,
    apply_homography,
    max_reprojection_error,
    solve_homography_4pt,
)
from .vectors import (
    Vec2,
    angle_between_deg,
    distance,
    dot,
    has_collinear_triple,
    is_simple_quad,
    normalize,
    orientation,
    segments_intersect,
)

__all__ = [
    "HomographySolveError",
    "Vec2",
    "angle_between_deg",
    "apply_homography",
    "distance",
    "dot",
    "has_collinear_triple",
    "is_simple_quad",
    "max_reprojection_error",
    "normalize",
    "orientation",
    "segments_intersect",
    "solve_homography_4pt",
]
