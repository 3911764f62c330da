from __future__ import annotations

from pathlib import Path

import cv2
import numpy as np
import pytest

from roadscale.calibration.session import Calibrator, Surface
from roadscale.interactive import load_still, render
from roadscale.notify import Notifier
from roadscale.utils.data_models import Units
from roadscale.utils.visualization import LINE_COLOR


def test_load_still_returns_rgb(tmp_path: Path) -> None:
    bgr = np.zeros((20, 30, 3), dtype=np.uint8)
    bgr[:, :, 0] = 255  # blue in BGR
    path = tmp_path / "frame.png"
    cv2.imwrite(str(path), bgr)
    rgb = load_still(path)
    assert rgb.shape == (20, 30, 3)
    assert tuple(rgb[0, 0]) == (0, 0, 255)


def test_load_still_missing_image(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_still(tmp_path / "missing.png")


def test_render_shows_line_preview_without_touching_source() -> None:
    image = np.zeros((240, 320, 3), dtype=np.uint8)
    cal = Calibrator(Surface(width=320, height=240), notifier=Notifier(clock=lambda: 0.0))
    cal.set_length(50, Units.FEET)
    cal.start_line()
    cal.pointer_down((40.0, 120.0))
    cal.pointer_move((280.0, 120.0))

    shown = render(image, cal)
    assert tuple(shown[120, 42]) == LINE_COLOR
    assert not image.any()
