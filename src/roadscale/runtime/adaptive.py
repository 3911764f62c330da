"""roadscale.runtime.adaptive

Feedback loop that sheds workload when frame throughput drops. One
mitigation per evaluation tick, in priority order:

1. FPS below the forced-downshift threshold: snap to the lowest tier.
2. Tier above the mid tier: step down one tier.
3. Cadence below its ceiling: run inference on one frame fewer.

The controller only ever moves downward. At the lowest tier with the
maximum cadence a low-FPS tick changes nothing. Nothing is applied within
one period of the last tuning change, manual or automatic.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Mapping, Optional

from roadscale.notify import Notifier
from roadscale.runtime.telemetry import TelemetrySnapshot
from roadscale.runtime.tuning import ResolutionTier, RuntimeTuning

MitigationKind = Literal["force_lowest", "step_down", "cadence_up", "manual_resolution"]


@dataclass(frozen=True)
class AdaptiveConfig:
    low_fps: float = 12.0
    force_downshift_fps: float = 10.0
    period_ms: float = 2000.0
    mid_tier: ResolutionTier = ResolutionTier.P640
    max_cadence: int = 3
    initial_resolution: ResolutionTier = ResolutionTier.P480
    initial_cadence: int = 2

    def __post_init__(self) -> None:
        if self.force_downshift_fps > self.low_fps:
            raise ValueError("force_downshift_fps must not exceed low_fps")
        if self.max_cadence < 1 or self.initial_cadence < 1:
            raise ValueError("cadence values must be >= 1")

    @classmethod
    def from_config(cls, cfg: Mapping[str, Any]) -> "AdaptiveConfig":
        defaults = cls()
        return cls(
            low_fps=float(cfg.get("low_fps", defaults.low_fps)),
            force_downshift_fps=float(cfg.get("force_downshift_fps", defaults.force_downshift_fps)),
            period_ms=float(cfg.get("period_ms", defaults.period_ms)),
            mid_tier=ResolutionTier(int(cfg.get("mid_tier", defaults.mid_tier))),
            max_cadence=int(cfg.get("max_cadence", defaults.max_cadence)),
            initial_resolution=ResolutionTier(int(cfg.get("initial_resolution", defaults.initial_resolution))),
            initial_cadence=int(cfg.get("initial_cadence", defaults.initial_cadence)),
        )


@dataclass(frozen=True)
class Mitigation:
    kind: MitigationKind
    before: RuntimeTuning
    after: RuntimeTuning
    fps: Optional[float]
    message: str
    t_ms: float = 0.0


class AdaptiveController:
    """Single writer of ``RuntimeTuning``."""

    def __init__(
        self,
        config: Optional[AdaptiveConfig] = None,
        *,
        notifier: Optional[Notifier] = None,
        tuning: Optional[RuntimeTuning] = None,
    ) -> None:
        self.config = config or AdaptiveConfig()
        self.notifier = notifier
        self._tuning = tuning or RuntimeTuning(
            resolution=self.config.initial_resolution,
            cadence_k=self.config.initial_cadence,
        )
        self._last_check_ms = 0.0
        self.history: list[Mitigation] = []

    @property
    def tuning(self) -> RuntimeTuning:
        return self._tuning

    def settling(self, now_ms: float) -> bool:
        """True while the last tuning change is younger than one period."""
        changes = [t for t in (self._tuning.resolution_changed_ms, self._tuning.cadence_changed_ms) if t is not None]
        return bool(changes) and now_ms - max(changes) < self.config.period_ms

    @property
    def at_floor(self) -> bool:
        return (
            self._tuning.resolution == ResolutionTier.lowest()
            and self._tuning.cadence_k >= self.config.max_cadence
        )

    def tick(self, snapshot: TelemetrySnapshot, now_ms: float) -> Optional[Mitigation]:
        """Timer entry point: evaluates at most once per ``period_ms``."""
        if now_ms - self._last_check_ms <= self.config.period_ms:
            return None
        self._last_check_ms = now_ms
        return self.evaluate(snapshot.fps if snapshot.has_measurement else None, now_ms)

    def evaluate(self, fps: Optional[float], now_ms: float) -> Optional[Mitigation]:
        """Apply at most one mitigation for the given FPS measurement."""
        cfg = self.config
        # No measurement yet counts as "not low".
        if not fps or fps >= cfg.low_fps:
            return None
        # A fresh change, manual or automatic, holds for one period.
        if self.settling(now_ms):
            return None

        before = self._tuning
        lowest = ResolutionTier.lowest()
        if fps < cfg.force_downshift_fps and before.resolution > lowest:
            after = before.with_resolution(lowest, now_ms)
            return self._apply(
                "force_lowest",
                before,
                after,
                fps,
                now_ms,
                f"Low performance → forcing {lowest.label}",
                f"Adapt: force {lowest.label} due to FPS {fps:g} < {cfg.force_downshift_fps:g}.",
            )
        if before.resolution > cfg.mid_tier:
            lower = before.resolution.step_down()
            after = before.with_resolution(lower, now_ms)
            return self._apply(
                "step_down",
                before,
                after,
                fps,
                now_ms,
                f"Adaptive: {before.resolution.label} → {lower.label}",
                f"Adapt: downscale {before.resolution.label}→{lower.label} due to FPS dip ({fps:g}).",
            )
        if before.cadence_k < cfg.max_cadence:
            k = before.cadence_k + 1
            after = before.with_cadence(k, now_ms)
            return self._apply(
                "cadence_up",
                before,
                after,
                fps,
                now_ms,
                f"Adaptive: cadence k {before.cadence_k}→{k}",
                f"Adapt: cadence increased to k={k}.",
            )
        return None

    def select_resolution(self, tier: ResolutionTier, now_ms: float) -> Optional[Mitigation]:
        """Operator override of the resolution tier."""
        tier = ResolutionTier(tier)
        before = self._tuning
        if tier == before.resolution:
            return None
        after = before.with_resolution(tier, now_ms)
        return self._apply(
            "manual_resolution",
            before,
            after,
            None,
            now_ms,
            f"Resolution → {tier.label}",
            f"Resolution selected: {before.resolution.label}→{tier.label}.",
        )

    def _apply(
        self,
        kind: MitigationKind,
        before: RuntimeTuning,
        after: RuntimeTuning,
        fps: Optional[float],
        now_ms: float,
        notice: str,
        log_line: str,
    ) -> Mitigation:
        self._tuning = after
        mitigation = Mitigation(kind=kind, before=before, after=after, fps=fps, message=notice, t_ms=now_ms)
        self.history.append(mitigation)
        if self.notifier is not None:
            self.notifier.show(notice, "warn")
            self.notifier.log(log_line)
        return mitigation
