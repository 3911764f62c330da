"""
Visualization utilities for calibration overlays.

Draws the active calibration (dashed reference line, or quadrilateral with a
ground grid), a live line preview, clicked points, and the status chip.
Frames are RGB numpy arrays and are modified in place where possible.
"""

from typing import Optional, Sequence

import cv2
import numpy as np

from roadscale.calibration.state import CalibrationState
from roadscale.runtime.tuning import RuntimeTuning
from roadscale.utils.data_models import CalibrationMode, QualityLabel

# RGB
LINE_COLOR = (75, 211, 255)
QUAD_COLOR = (255, 213, 75)
CHIP_BG = (20, 20, 20)
CHIP_FG = (255, 255, 255)

QUALITY_COLORS = {
    QualityLabel.GOOD: (80, 200, 120),
    QualityLabel.FAIR: (255, 200, 60),
    QualityLabel.POOR: (235, 80, 80),
    QualityLabel.NOT_AVAILABLE: (160, 160, 160),
}

GRID_DIVISIONS = 10
GRID_ALPHA = 0.2


def _pt(p: Sequence[float]) -> tuple[int, int]:
    return int(round(p[0])), int(round(p[1]))


def draw_dashed_line(
    frame: np.ndarray,
    p0: Sequence[float],
    p1: Sequence[float],
    color: tuple[int, int, int],
    thickness: int = 2,
    dash_len: float = 6.0,
    gap_len: float = 4.0,
) -> np.ndarray:
    """Draw a dashed segment from p0 to p1."""
    x0, y0 = float(p0[0]), float(p0[1])
    dx, dy = float(p1[0]) - x0, float(p1[1]) - y0
    length = float(np.hypot(dx, dy))
    if length == 0:
        return frame
    ux, uy = dx / length, dy / length
    t = 0.0
    while t < length:
        t_end = min(t + dash_len, length)
        cv2.line(
            frame,
            _pt((x0 + ux * t, y0 + uy * t)),
            _pt((x0 + ux * t_end, y0 + uy * t_end)),
            color,
            thickness,
        )
        t += dash_len + gap_len
    return frame


def draw_points(
    frame: np.ndarray,
    points: Sequence[Sequence[float]],
    color: tuple[int, int, int] = QUAD_COLOR,
    radius: int = 4,
) -> np.ndarray:
    for p in points:
        cv2.circle(frame, _pt(p), radius, color, -1)
    return frame


def grid_segments(points: Sequence[Sequence[float]], divisions: int = GRID_DIVISIONS) -> list[tuple[tuple[float, float], tuple[float, float]]]:
    """Segments joining matching fractions of the near and far edges."""
    p1, p2, p3, p4 = points
    out = []
    for i in range(1, divisions):
        t = i / divisions
        a = (p1[0] + (p2[0] - p1[0]) * t, p1[1] + (p2[1] - p1[1]) * t)
        b = (p4[0] + (p3[0] - p4[0]) * t, p4[1] + (p3[1] - p4[1]) * t)
        out.append((a, b))
    return out


def draw_quad(
    frame: np.ndarray,
    points: Sequence[Sequence[float]],
    color: tuple[int, int, int] = QUAD_COLOR,
    thickness: int = 2,
    grid: bool = True,
) -> np.ndarray:
    """Draw clicked points, the (partial) outline, and the grid once all four exist."""
    if not points:
        return frame
    draw_points(frame, points, color)
    poly = np.array([_pt(p) for p in points], dtype=np.int32).reshape(-1, 1, 2)
    cv2.polylines(frame, [poly], isClosed=len(points) == 4, color=color, thickness=thickness)

    if grid and len(points) == 4:
        overlay = frame.copy()
        for a, b in grid_segments(points):
            cv2.line(overlay, _pt(a), _pt(b), color, thickness)
        cv2.addWeighted(overlay, GRID_ALPHA, frame, 1 - GRID_ALPHA, 0, dst=frame)
    return frame


def draw_calibration(frame: np.ndarray, state: CalibrationState) -> np.ndarray:
    """Draw the active calibration, if any."""
    if state.mode == CalibrationMode.LINE and state.line is not None:
        draw_dashed_line(frame, state.line.start, state.line.end, LINE_COLOR)
    elif state.mode == CalibrationMode.HOMOGRAPHY and state.homography is not None:
        draw_quad(frame, state.homography.points)
    return frame


def draw_line_preview(
    frame: np.ndarray,
    start: Optional[Sequence[float]],
    end: Optional[Sequence[float]],
) -> np.ndarray:
    if start is not None and end is not None:
        draw_dashed_line(frame, start, end, LINE_COLOR)
    return frame


def format_chip(backend: str, tuning: RuntimeTuning, quality_label: QualityLabel) -> str:
    return f"{backend} • {tuning.resolution.label} • k:{tuning.cadence_k} • cal:{quality_label.value}"


def draw_status_chip(
    frame: np.ndarray,
    text: str,
    quality_label: QualityLabel = QualityLabel.NOT_AVAILABLE,
    origin: tuple[int, int] = (8, 8),
) -> np.ndarray:
    """Draw the status chip in the top-left corner."""
    # Hershey fonts are ASCII only
    text = text.replace("•", "|")
    font = cv2.FONT_HERSHEY_SIMPLEX
    font_scale = 0.5
    font_thickness = 1
    (text_width, text_height), baseline = cv2.getTextSize(text, font, font_scale, font_thickness)
    x, y = origin
    cv2.rectangle(frame, (x, y), (x + text_width + 16, y + text_height + baseline + 8), CHIP_BG, -1)
    cv2.circle(frame, (x + 7, y + (text_height + baseline + 8) // 2), 3, QUALITY_COLORS[quality_label], -1)
    cv2.putText(frame, text, (x + 13, y + text_height + 4), font, font_scale, CHIP_FG, font_thickness)
    return frame
