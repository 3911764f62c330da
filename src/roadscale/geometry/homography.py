"""roadscale.geometry.homography

Exact 4-point planar homography (pixel -> ground plane) solved by direct
elimination, plus projection and reprojection helpers.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from .vectors import Vec2, distance

PIVOT_EPS = 1e-12
DENOM_EPS = 1e-12


class HomographySolveError(ValueError):
    pass


def _solve_linear_system(a: list[list[float]], b: list[float]) -> list[float] | None:
    n = len(a)
    if n == 0 or any(len(row) != n for row in a) or len(b) != n:
        return None
    # Gauss-Jordan elimination with partial pivoting.
    m = [row[:] + [b[i]] for i, row in enumerate(a)]
    for col in range(n):
        pivot = max(range(col, n), key=lambda r: abs(m[r][col]))
        if abs(m[pivot][col]) < PIVOT_EPS:
            return None
        if pivot != col:
            m[col], m[pivot] = m[pivot], m[col]
        inv = 1.0 / m[col][col]
        for j in range(col, n + 1):
            m[col][j] *= inv
        for r in range(n):
            if r == col:
                continue
            factor = m[r][col]
            if factor == 0.0:
                continue
            for j in range(col, n + 1):
                m[r][j] -= factor * m[col][j]
    return [m[i][n] for i in range(n)]


def solve_homography_4pt(src: Sequence[Vec2], dst: Sequence[Vec2]) -> np.ndarray:
    """Solve H such that ``dst ~ H @ [src, 1]`` for exactly four pairs.

    The source points are first shifted to their centroid ``(cx, cy)`` and the
    8x8 system is solved there with h33 = 1::

        [x, y, 1, 0, 0, 0, -X*x, -X*y] . h = X
        [0, 0, 0, x, y, 1, -Y*x, -Y*y] . h = Y

    The result is composed with that shift, ``H = H' @ T``. The centroid of a
    convex quad never lies on its vanishing line, so quads whose horizon passes
    through the pixel origin still solve. H is scaled so H[2, 2] = 1 unless
    that entry is itself zero.

    Raises:
        HomographySolveError: if the point count is wrong or the system is singular
    """
    if len(src) != 4 or len(dst) != 4:
        raise HomographySolveError(f"need exactly 4 correspondences, got {len(src)} and {len(dst)}")

    cx = sum(float(p[0]) for p in src) / 4.0
    cy = sum(float(p[1]) for p in src) / 4.0

    a_rows: list[list[float]] = []
    b_vals: list[float] = []
    for (x, y), (gx, gy) in zip(src, dst, strict=True):
        x, y, gx, gy = float(x) - cx, float(y) - cy, float(gx), float(gy)
        a_rows.append([x, y, 1.0, 0.0, 0.0, 0.0, -gx * x, -gx * y])
        b_vals.append(gx)
        a_rows.append([0.0, 0.0, 0.0, x, y, 1.0, -gy * x, -gy * y])
        b_vals.append(gy)

    h = _solve_linear_system(a_rows, b_vals)
    if h is None:
        raise HomographySolveError("homography system is singular (degenerate or collinear points)")
    h11, h12, h13, h21, h22, h23, h31, h32 = h
    centred = np.array(
        [
            [h11, h12, h13],
            [h21, h22, h23],
            [h31, h32, 1.0],
        ],
        dtype=np.float64,
    )
    shift = np.array([[1.0, 0.0, -cx], [0.0, 1.0, -cy], [0.0, 0.0, 1.0]], dtype=np.float64)
    out = centred @ shift
    if abs(out[2, 2]) > DENOM_EPS:
        out = out / out[2, 2]
    return out


def apply_homography(h: np.ndarray, x: float, y: float) -> Vec2 | None:
    """Project one point; ``None`` when it maps to the line at infinity."""
    denom = h[2, 0] * x + h[2, 1] * y + h[2, 2]
    if abs(denom) < DENOM_EPS:
        return None
    gx = (h[0, 0] * x + h[0, 1] * y + h[0, 2]) / denom
    gy = (h[1, 0] * x + h[1, 1] * y + h[1, 2]) / denom
    return (float(gx), float(gy))


def max_reprojection_error(h: np.ndarray, src: Sequence[Vec2], dst: Sequence[Vec2]) -> float:
    worst = 0.0
    for (x, y), target in zip(src, dst, strict=True):
        projected = apply_homography(h, x, y)
        if projected is None:
            return float("inf")
        worst = max(worst, distance(projected, (float(target[0]), float(target[1]))))
    return worst
