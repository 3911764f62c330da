"""
Configuration loading.

The packaged ``config/default.yaml`` is always loaded first; an optional user
YAML file is deep-merged on top of it.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from roadscale.calibration.session import Calibrator, Surface
from roadscale.notify import Notifier
from roadscale.utils.data_models import Length, Units

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config" / "default.yaml"


def load_config(config_path: Path | None = None) -> dict:
    """Load configuration file, optionally merged with a custom config."""
    with open(DEFAULT_CONFIG_PATH, encoding="utf8") as f:
        config = yaml.safe_load(f)

    if config_path:
        with open(config_path, encoding="utf8") as f:
            custom_config = yaml.safe_load(f) or {}
        if not isinstance(custom_config, dict):
            raise ValueError(f"config file must contain a mapping: {config_path}")
        config = deep_merge(config, custom_config)

    return config


def deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override dict into base dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def parse_length(obj: Mapping[str, Any]) -> Length:
    return Length(value=float(obj["value"]), units=Units(obj.get("units", "ft")))


@dataclass(frozen=True)
class CalibrationConfig:
    units: Units
    min_line_px: float
    default_depth: Length
    edge_ratio_warn: float
    edge_angle_warn_deg: float
    presets: dict[str, Length]

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "CalibrationConfig":
        cfg = config.get("calibration", {})
        h_cfg = cfg.get("homography", {})
        return cls(
            units=Units(cfg.get("units", "ft")),
            min_line_px=float(cfg.get("min_line_px", 20)),
            default_depth=parse_length(h_cfg.get("default_depth", {"value": 40, "units": "ft"})),
            edge_ratio_warn=float(h_cfg.get("edge_ratio_warn", 1.3)),
            edge_angle_warn_deg=float(h_cfg.get("edge_angle_warn_deg", 15)),
            presets={name: parse_length(p) for name, p in (cfg.get("presets") or {}).items()},
        )


def build_calibrator(
    config: Mapping[str, Any],
    width: float,
    height: float,
    notifier: Optional[Notifier] = None,
) -> Calibrator:
    """Calibrator for a ``width`` x ``height`` surface, configured from ``config``."""
    cal_cfg = CalibrationConfig.from_config(config)
    return Calibrator(
        Surface(width=width, height=height),
        notifier=notifier,
        units=cal_cfg.units,
        min_pixel_length=cal_cfg.min_line_px,
        default_depth=cal_cfg.default_depth,
        presets=cal_cfg.presets,
        edge_ratio_warn=cal_cfg.edge_ratio_warn,
        edge_angle_warn_deg=cal_cfg.edge_angle_warn_deg,
    )
