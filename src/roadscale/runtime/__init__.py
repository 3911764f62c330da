"""Adaptive performance control: telemetry, runtime tuning and the inference worker seam."""

from .adaptive import AdaptiveConfig, AdaptiveController, Mitigation
from .telemetry import FrameRateMeter, TelemetrySnapshot
from .tuning import ResolutionTier, RuntimeTuning

__all__ = [
    "AdaptiveConfig",
    "AdaptiveController",
    "FrameRateMeter",
    "Mitigation",
    "ResolutionTier",
    "RuntimeTuning",
    "TelemetrySnapshot",
]
