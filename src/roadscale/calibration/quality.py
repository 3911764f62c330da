"""roadscale.calibration.quality

Trust score for a completed calibration, built from three independent
signals: length plausibility, shape consistency and visual confirmation.
"""

from __future__ import annotations

from dataclasses import dataclass

from roadscale.geometry.vectors import clamp
from roadscale.utils.data_models import QualityLabel, QualityScore, Units

WEIGHT_LENGTH = 0.4
WEIGHT_SHAPE = 0.3
WEIGHT_VISUAL = 0.3

SHAPE_ZERO_DEG = 40.0

GOOD_MIN = 0.75
FAIR_MIN = 0.5


@dataclass(frozen=True)
class PlausibleRange:
    """Trapezoid: zero at/below ``zero_lo``, full credit on ``[full_lo, full_hi]``, zero at/above ``zero_hi``."""

    zero_lo: float
    full_lo: float
    full_hi: float
    zero_hi: float

    def score(self, value: float) -> float:
        if value < self.full_lo:
            return clamp((value - self.zero_lo) / (self.full_lo - self.zero_lo), 0.0, 1.0)
        if value > self.full_hi:
            return clamp((self.zero_hi - value) / (self.zero_hi - self.full_hi), 0.0, 1.0)
        return 1.0


PLAUSIBLE_LENGTHS = {
    Units.FEET: PlausibleRange(zero_lo=5.0, full_lo=10.0, full_hi=120.0, zero_hi=200.0),
    Units.METERS: PlausibleRange(zero_lo=1.0, full_lo=3.0, full_hi=40.0, zero_hi=60.0),
}


def length_plausibility(length_value: float, units: Units) -> float:
    return PLAUSIBLE_LENGTHS[Units(units)].score(float(length_value))


def shape_consistency(shape_deviation_deg: float) -> float:
    return clamp(1.0 - float(shape_deviation_deg) / SHAPE_ZERO_DEG, 0.0, 1.0)


def quality(
    length_value: float,
    units: Units,
    shape_deviation_deg: float,
    visually_confirmed: bool,
) -> float:
    """Weighted score in [0, 1].

    ``length_value`` is in the operator's units (the plausibility curve is
    defined per unit system). ``shape_deviation_deg`` is 0 for line mode.
    """
    value = (
        WEIGHT_LENGTH * length_plausibility(length_value, units)
        + WEIGHT_SHAPE * shape_consistency(shape_deviation_deg)
        + WEIGHT_VISUAL * (1.0 if visually_confirmed else 0.0)
    )
    return clamp(value, 0.0, 1.0)


def label_for(value: float | None) -> QualityLabel:
    if value is None:
        return QualityLabel.NOT_AVAILABLE
    if value >= GOOD_MIN:
        return QualityLabel.GOOD
    if value >= FAIR_MIN:
        return QualityLabel.FAIR
    return QualityLabel.POOR


def score(
    length_value: float,
    units: Units,
    shape_deviation_deg: float,
    visually_confirmed: bool = True,
) -> QualityScore:
    value = quality(length_value, units, shape_deviation_deg, visually_confirmed)
    return QualityScore(value=value, label=label_for(value))
