from __future__ import annotations

import dataclasses
from pathlib import Path

import pytest

from roadscale.runtime import AdaptiveConfig
from roadscale.settings import CalibrationConfig, build_calibrator, deep_merge, load_config, parse_length
from roadscale.utils.data_models import Length, Units


def test_deep_merge_overrides_nested_keys_only() -> None:
    base = {"a": {"b": 1, "c": 2}, "d": 3}
    merged = deep_merge(base, {"a": {"c": 20}, "e": 5})
    assert merged == {"a": {"b": 1, "c": 20}, "d": 3, "e": 5}
    assert base == {"a": {"b": 1, "c": 2}, "d": 3}


def test_default_config_has_every_section() -> None:
    config = load_config()
    assert {"calibration", "adaptive", "telemetry", "processing"} <= set(config)
    assert config["adaptive"]["low_fps"] == 12


def test_adaptive_section_matches_controller_config() -> None:
    config = load_config()
    assert set(config["adaptive"]) == {f.name for f in dataclasses.fields(AdaptiveConfig)}
    assert AdaptiveConfig.from_config(config["adaptive"]) == AdaptiveConfig()


def test_user_config_is_merged(tmp_path: Path) -> None:
    user = tmp_path / "user.yaml"
    user.write_text("calibration:\n  units: m\nadaptive:\n  period_ms: 500\n", encoding="utf8")
    config = load_config(user)
    assert config["calibration"]["units"] == "m"
    assert config["calibration"]["min_line_px"] == 20
    assert config["adaptive"]["period_ms"] == 500


def test_non_mapping_config_is_rejected(tmp_path: Path) -> None:
    user = tmp_path / "list.yaml"
    user.write_text("- 1\n- 2\n", encoding="utf8")
    with pytest.raises(ValueError):
        load_config(user)


def test_calibration_config_presets() -> None:
    cfg = CalibrationConfig.from_config(load_config())
    assert cfg.units == Units.FEET
    assert cfg.default_depth == Length(value=40, units=Units.FEET)
    assert cfg.presets["lane_width_us"] == Length(value=12, units=Units.FEET)
    assert cfg.presets["lane_width_eu"] == Length(value=3.5, units=Units.METERS)


def test_parse_length_defaults_to_feet() -> None:
    assert parse_length({"value": 10}) == Length(value=10, units=Units.FEET)


def test_build_calibrator_uses_config() -> None:
    cal = build_calibrator(load_config(), 1280, 720)
    assert cal.surface.width == 1280
    assert cal.min_pixel_length == 20.0
    assert "dash_cycle_us" in cal.presets
