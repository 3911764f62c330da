"""Geometric calibration engine: line and homography modes, scoring, state and capture sessions."""

__all__ = [
    "homography",
    "line",
    "measure",
    "quality",
    "session",
    "state",
    "storage",
]
