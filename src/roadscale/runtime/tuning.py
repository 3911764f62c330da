"""roadscale.runtime.tuning

Shared tunables read by the capture/inference loop. Only the adaptive
controller produces new values; everyone else sees frozen snapshots.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Optional


class ResolutionTier(IntEnum):
    """Target processing height in pixels, ascending."""
    P480 = 480
    P640 = 640
    P720 = 720

    @classmethod
    def lowest(cls) -> "ResolutionTier":
        return min(cls)

    def step_down(self) -> "ResolutionTier":
        lower = [t for t in ResolutionTier if t < self]
        return max(lower) if lower else self

    @property
    def label(self) -> str:
        return f"{int(self)}p"


@dataclass(frozen=True)
class RuntimeTuning:
    """Current tier and cadence, with the time each last changed."""
    resolution: ResolutionTier = ResolutionTier.P480
    cadence_k: int = 2
    resolution_changed_ms: Optional[float] = None
    cadence_changed_ms: Optional[float] = None

    def __post_init__(self) -> None:
        if int(self.cadence_k) < 1:
            raise ValueError(f"cadence_k must be >= 1, got {self.cadence_k}")

    def with_resolution(self, tier: ResolutionTier, now_ms: float) -> "RuntimeTuning":
        return replace(self, resolution=ResolutionTier(tier), resolution_changed_ms=now_ms)

    def with_cadence(self, k: int, now_ms: float) -> "RuntimeTuning":
        return replace(self, cadence_k=int(k), cadence_changed_ms=now_ms)

    def selects_frame(self, frame_counter: int) -> bool:
        """Inference runs on every k-th frame."""
        return frame_counter % self.cadence_k == 0
