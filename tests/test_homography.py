from __future__ import annotations

import cv2
import numpy as np
import pytest

from roadscale.geometry.homography import (
    HomographySolveError,
    apply_homography,
    max_reprojection_error,
    solve_homography_4pt,
)

# Symmetric road trapezoid; its sides meet at (300, 0), so the horizon is y = 0.
SRC = [(100.0, 400.0), (500.0, 400.0), (400.0, 200.0), (200.0, 200.0)]
DST = [(0.0, 0.0), (3.6576, 0.0), (3.6576, 12.192), (0.0, 12.192)]

SKEWED = [(120.0, 410.0), (520.0, 395.0), (410.0, 215.0), (205.0, 190.0)]


def _unit(h: np.ndarray) -> np.ndarray:
    h = h / np.linalg.norm(h)
    return h if h.flat[np.argmax(np.abs(h))] > 0 else -h


def test_solution_maps_every_corner_onto_its_target() -> None:
    h = solve_homography_4pt(SRC, DST)
    for (x, y), target in zip(SRC, DST):
        gx, gy = apply_homography(h, x, y)
        assert gx == pytest.approx(target[0], abs=1e-6)
        assert gy == pytest.approx(target[1], abs=1e-6)
    assert max_reprojection_error(h, SRC, DST) <= 1e-6


def test_horizon_through_pixel_origin_still_solves() -> None:
    h = solve_homography_4pt(SRC, DST)
    # True H has h33 = 0 here, so it is left unnormalized.
    assert abs(h[2, 2]) < 1e-9
    assert apply_homography(h, 300.0, 0.0) is None
    mid = apply_homography(h, 300.0, 300.0)
    assert mid is not None
    assert mid[0] == pytest.approx(3.6576 / 2, abs=1e-6)


def test_solution_is_normalized_and_matches_opencv() -> None:
    h = solve_homography_4pt(SKEWED, DST)
    assert h.shape == (3, 3)
    assert h[2, 2] == pytest.approx(1.0)
    ref = cv2.getPerspectiveTransform(np.float32(SKEWED), np.float32(DST))
    np.testing.assert_allclose(_unit(h), _unit(ref), rtol=1e-4, atol=1e-6)


def test_identity_square() -> None:
    square = [(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0)]
    h = solve_homography_4pt(square, square)
    np.testing.assert_allclose(h, np.eye(3), atol=1e-12)


def test_collinear_source_is_singular() -> None:
    with pytest.raises(HomographySolveError):
        solve_homography_4pt([(0, 0), (1, 0), (2, 0), (3, 0)], DST)


def test_wrong_point_count_raises() -> None:
    with pytest.raises(HomographySolveError):
        solve_homography_4pt(SRC[:3], DST[:3])


def test_point_on_line_at_infinity_returns_none() -> None:
    h = np.array([[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 1.0, -5.0]])
    assert apply_homography(h, 10.0, 5.0) is None
    assert apply_homography(h, 10.0, 6.0) is not None
