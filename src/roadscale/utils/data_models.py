"""
Pydantic data models for the road calibration system.

Defines structured data types for units, calibrations, quality scores and
detections returned by the inference worker.
"""

from enum import Enum
from typing import Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

FEET_TO_METERS = 0.3048

Point = tuple[float, float]


class Units(str, Enum):
    """Unit tag carried by every user-entered length."""
    FEET = "ft"
    METERS = "m"


class CalibrationMode(str, Enum):
    """Active calibration mode. Exactly one is active at a time."""
    NONE = "none"
    LINE = "line"
    HOMOGRAPHY = "homography"


class QualityLabel(str, Enum):
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"
    NOT_AVAILABLE = "N/A"


class Length(BaseModel):
    """A real-world length as entered by the operator."""
    value: float
    units: Units = Units.FEET

    model_config = ConfigDict(frozen=True)

    @property
    def meters(self) -> float:
        if self.units == Units.FEET:
            return self.value * FEET_TO_METERS
        return self.value

    def __str__(self) -> str:
        return f"{self.value:g} {self.units.value}"


class QualityScore(BaseModel):
    """Trust rating of a completed calibration."""
    value: float = Field(ge=0.0, le=1.0)
    label: QualityLabel

    model_config = ConfigDict(frozen=True)


class LineCalibration(BaseModel):
    """Uniform pixel -> meters scale derived from one drawn line."""
    start: Point
    end: Point
    pixel_length: float
    real_length: Length
    scale_m_per_px: float
    direction: Point  # unit vector start -> end

    model_config = ConfigDict(frozen=True)


class HomographyCalibration(BaseModel):
    """Pixel -> ground-plane projective mapping from four clicked points.

    Points are ordered near-left, near-right, far-right, far-left. The world
    rectangle is ``(0, 0), (W, 0), (W, D), (0, D)`` in meters, with W the lane
    width and D the depth along the road.
    """
    points: list[Point] = Field(min_length=4, max_length=4)
    matrix: np.ndarray  # 3x3, pixel -> ground meters
    axis_unit: Point  # near-edge direction, orients overlays
    near_edge_px: float
    far_edge_px: float
    edge_ratio: float
    edge_angle_deg: float
    lane_width: Length
    depth: Length

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


class BoundingBox(BaseModel):
    """Bounding box in pixel coordinates."""
    x1: float
    y1: float
    x2: float
    y2: float
    confidence: float = 1.0

    @property
    def center(self) -> tuple[float, float]:
        """Get center point of bbox."""
        return ((self.x1 + self.x2) / 2, (self.y1 + self.y2) / 2)

    @property
    def bottom_center(self) -> tuple[float, float]:
        """Ground contact point estimate."""
        return ((self.x1 + self.x2) / 2, self.y2)


class Detection(BaseModel):
    """Single detection returned by the inference worker."""
    frame_idx: int
    bbox: BoundingBox
    class_id: int = 0
    class_name: Optional[str] = None
