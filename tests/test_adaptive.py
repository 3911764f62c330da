from __future__ import annotations

import pytest

from roadscale.notify import Notifier
from roadscale.runtime import AdaptiveConfig, AdaptiveController, ResolutionTier, RuntimeTuning, TelemetrySnapshot


def _controller(resolution: ResolutionTier, k: int, notifier: Notifier | None = None) -> AdaptiveController:
    return AdaptiveController(notifier=notifier, tuning=RuntimeTuning(resolution=resolution, cadence_k=k))


def test_fps_eight_from_720_forces_lowest_then_raises_cadence_then_stops() -> None:
    notifier = Notifier(clock=lambda: 0.0)
    ctl = _controller(ResolutionTier.P720, 2, notifier)

    first = ctl.evaluate(8, now_ms=3000)
    assert first.kind == "force_lowest"
    assert ctl.tuning.resolution == ResolutionTier.P480
    assert ctl.tuning.cadence_k == 2
    assert notifier.current.message == "Low performance → forcing 480p"
    assert notifier.current.severity == "warn"

    second = ctl.evaluate(8, now_ms=5000)
    assert second.kind == "cadence_up"
    assert ctl.tuning.cadence_k == 3
    assert notifier.current.message == "Adaptive: cadence k 2→3"

    assert ctl.evaluate(8, now_ms=7000) is None
    assert ctl.at_floor
    assert len(ctl.history) == 2


def test_fps_between_thresholds_steps_down_one_tier() -> None:
    notifier = Notifier(clock=lambda: 0.0)
    ctl = _controller(ResolutionTier.P720, 2, notifier)
    m = ctl.evaluate(11, now_ms=3000)
    assert m.kind == "step_down"
    assert ctl.tuning.resolution == ResolutionTier.P640
    assert notifier.current.message == "Adaptive: 720p → 640p"

    # 640 is the mid tier: next mitigation is cadence, not another downscale
    m = ctl.evaluate(11, now_ms=5000)
    assert m.kind == "cadence_up"
    assert ctl.tuning.resolution == ResolutionTier.P640


@pytest.mark.parametrize("fps", [None, 0, 12, 30])
def test_no_mitigation_without_low_measurement(fps: float | None) -> None:
    ctl = _controller(ResolutionTier.P720, 2)
    assert ctl.evaluate(fps, now_ms=3000) is None
    assert ctl.tuning == RuntimeTuning(resolution=ResolutionTier.P720, cadence_k=2)


def test_tick_is_gated_by_period() -> None:
    ctl = _controller(ResolutionTier.P720, 1)
    low = TelemetrySnapshot(fps=5)
    assert ctl.tick(low, now_ms=1000) is None
    assert ctl.tick(low, now_ms=2000) is None
    assert ctl.tick(low, now_ms=2001).kind == "force_lowest"
    assert ctl.tick(low, now_ms=3000) is None
    assert ctl.tick(low, now_ms=4002).kind == "cadence_up"


def test_changes_are_timestamped() -> None:
    ctl = _controller(ResolutionTier.P720, 2)
    m = ctl.evaluate(8, now_ms=3000)
    assert m.t_ms == 3000
    assert ctl.tuning.resolution_changed_ms == 3000
    assert ctl.tuning.cadence_changed_ms is None


def test_recent_change_holds_for_one_period() -> None:
    ctl = _controller(ResolutionTier.P720, 2)
    ctl.evaluate(8, now_ms=3000)
    assert ctl.settling(4999)
    assert ctl.evaluate(8, now_ms=4999) is None
    assert not ctl.settling(5000)
    assert ctl.evaluate(8, now_ms=5000).kind == "cadence_up"


def test_manual_selection_is_not_overridden_within_a_period() -> None:
    ctl = _controller(ResolutionTier.P480, 2)
    ctl.select_resolution(ResolutionTier.P720, now_ms=100)
    assert ctl.evaluate(5, now_ms=1000) is None
    assert ctl.tuning.resolution == ResolutionTier.P720
    assert ctl.evaluate(5, now_ms=2100).kind == "force_lowest"


def test_tick_ignores_snapshot_without_measurement() -> None:
    ctl = _controller(ResolutionTier.P720, 2)
    assert ctl.tick(TelemetrySnapshot(fps=0.0), now_ms=3000) is None
    assert ctl.tuning.resolution == ResolutionTier.P720


def test_select_resolution_is_an_operator_override() -> None:
    notifier = Notifier(clock=lambda: 0.0)
    ctl = _controller(ResolutionTier.P480, 2, notifier)
    m = ctl.select_resolution(ResolutionTier.P720, now_ms=100)
    assert m.kind == "manual_resolution"
    assert ctl.tuning.resolution == ResolutionTier.P720
    assert notifier.current.message == "Resolution → 720p"
    assert ctl.select_resolution(ResolutionTier.P720, now_ms=200) is None


def test_config_from_mapping() -> None:
    cfg = AdaptiveConfig.from_config({"low_fps": 15, "mid_tier": 480, "initial_resolution": 720})
    assert cfg.low_fps == 15.0
    assert cfg.force_downshift_fps == 10.0
    assert cfg.mid_tier == ResolutionTier.P480
    ctl = AdaptiveController(cfg)
    assert ctl.tuning.resolution == ResolutionTier.P720


def test_config_rejects_inverted_thresholds() -> None:
    with pytest.raises(ValueError):
        AdaptiveConfig(low_fps=8, force_downshift_fps=10)
