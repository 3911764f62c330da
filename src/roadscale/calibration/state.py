"""roadscale.calibration.state

The single active calibration. Only the calibration subsystem writes it;
rendering and measurement read it through the properties.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from roadscale.calibration.quality import label_for
from roadscale.utils.data_models import (
    CalibrationMode,
    HomographyCalibration,
    LineCalibration,
    QualityLabel,
    QualityScore,
)


class CalibrationState:
    """Holds mode, geometry, derived mapping and quality of the active calibration."""

    def __init__(self) -> None:
        self._mode = CalibrationMode.NONE
        self._line: Optional[LineCalibration] = None
        self._homography: Optional[HomographyCalibration] = None
        self._quality: Optional[QualityScore] = None
        self._revision = 0

    def __repr__(self) -> str:
        return f"CalibrationState(mode={self._mode.value}, quality={self.quality_label.value})"

    @property
    def mode(self) -> CalibrationMode:
        return self._mode

    @property
    def line(self) -> Optional[LineCalibration]:
        return self._line

    @property
    def homography(self) -> Optional[HomographyCalibration]:
        return self._homography

    @property
    def quality(self) -> Optional[QualityScore]:
        return self._quality

    @property
    def quality_value(self) -> float:
        return self._quality.value if self._quality else 0.0

    @property
    def quality_label(self) -> QualityLabel:
        return self._quality.label if self._quality else label_for(None)

    @property
    def revision(self) -> int:
        """Bumped on every write; lets readers cache derived overlays."""
        return self._revision

    @property
    def is_calibrated(self) -> bool:
        return self._line is not None or self._homography is not None

    @property
    def scale_m_per_px(self) -> Optional[float]:
        return self._line.scale_m_per_px if self._line else None

    @property
    def matrix(self) -> Optional[np.ndarray]:
        return self._homography.matrix if self._homography else None

    @property
    def axis_unit(self) -> tuple[float, float]:
        if self._line is not None:
            return self._line.direction
        if self._homography is not None:
            return self._homography.axis_unit
        return (1.0, 0.0)

    # Writers. A commit replaces everything from the previous mode.

    def begin(self, mode: CalibrationMode) -> None:
        """Enter ``mode`` for a new capture; the previous calibration is dropped."""
        self._mode = CalibrationMode(mode)
        self._line = None
        self._homography = None
        self._quality = None
        self._revision += 1

    def commit_line(self, line: LineCalibration, quality: QualityScore) -> None:
        self._mode = CalibrationMode.LINE
        self._line = line
        self._homography = None
        self._quality = quality
        self._revision += 1

    def commit_homography(self, homography: HomographyCalibration, quality: QualityScore) -> None:
        self._mode = CalibrationMode.HOMOGRAPHY
        self._line = None
        self._homography = homography
        self._quality = quality
        self._revision += 1

    def reset(self) -> None:
        self._mode = CalibrationMode.NONE
        self._line = None
        self._homography = None
        self._quality = None
        self._revision += 1
