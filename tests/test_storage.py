from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pytest

from roadscale.calibration.homography import calibrate_homography, homography_quality
from roadscale.calibration.line import calibrate_line, line_quality
from roadscale.calibration.state import CalibrationState
from roadscale.calibration.storage import (
    load_calibration,
    load_into_state,
    save_calibration,
    to_record,
    validate_calibration_file_v1,
)
from roadscale.errors import ERROR
from roadscale.utils.data_models import CalibrationMode, Length, Units

TRAPEZOID = [(100.0, 400.0), (500.0, 400.0), (400.0, 200.0), (200.0, 200.0)]


def _line_state() -> CalibrationState:
    state = CalibrationState()
    cal = calibrate_line((0.0, 0.0), (100.0, 0.0), Length(value=50, units=Units.FEET))
    state.commit_line(cal, line_quality(cal))
    return state


def _homography_state() -> CalibrationState:
    state = CalibrationState()
    cal, _ = calibrate_homography(
        TRAPEZOID,
        Length(value=3.5, units=Units.METERS),
        Length(value=12, units=Units.METERS),
    )
    state.commit_homography(cal, homography_quality(cal))
    return state


def test_line_calibration_survives_save_and_load(tmp_path: Path) -> None:
    path = save_calibration(_line_state(), tmp_path / "cal" / "line.json")
    restored = CalibrationState()
    assert load_into_state(path, restored) == []
    assert restored.mode == CalibrationMode.LINE
    assert restored.scale_m_per_px == pytest.approx(0.1524)
    assert restored.quality_label.value == "Good"


def test_homography_calibration_survives_save_and_load(tmp_path: Path) -> None:
    original = _homography_state()
    path = save_calibration(original, tmp_path / "homography.json")
    restored = CalibrationState()
    assert load_into_state(path, restored) == []
    assert restored.mode == CalibrationMode.HOMOGRAPHY
    np.testing.assert_allclose(restored.matrix, original.matrix)


def test_record_shape() -> None:
    rec = to_record(_homography_state())
    assert rec["schema_version"] == 1
    assert rec["mode"] == "homography"
    assert rec["homography"]["lane_width"] == {"value": 3.5, "units": "m"}
    assert len(rec["homography"]["homography_px_to_ground_3x3"]) == 3
    assert "line" not in rec


def test_stored_matrix_is_recomputed_not_trusted(tmp_path: Path) -> None:
    rec = to_record(_homography_state())
    rec["homography"]["homography_px_to_ground_3x3"] = [[9.0, 0.0, 0.0], [0.0, 9.0, 0.0], [0.0, 0.0, 1.0]]
    path = tmp_path / "edited.json"
    path.write_text(json.dumps(rec), encoding="utf8")

    restored = CalibrationState()
    assert load_into_state(path, restored) == []
    assert restored.matrix[0, 0] != 9.0


def test_missing_file(tmp_path: Path) -> None:
    record, errors = load_calibration(tmp_path / "nope.json")
    assert record is None
    assert errors[0]["code"] == ERROR.CAL_FILE_MISSING


def test_invalid_json(tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf8")
    _, errors = load_calibration(path)
    assert errors[0]["code"] == ERROR.CAL_FILE_INVALID_JSON


def test_validation_reports_each_bad_field() -> None:
    errors = validate_calibration_file_v1(
        {
            "schema_version": 1,
            "mode": "homography",
            "homography": {
                "points_xy_px": [[0, 0], [1, 0], [1, "x"], [0, 1]],
                "lane_width": {"value": 12, "units": "yards"},
                "depth": {"value": 40, "units": "ft"},
            },
        }
    )
    fields = sorted(e["field"] for e in errors)
    assert fields == ["homography.lane_width", "homography.points_xy_px[]"]
    assert all(e["code"] == ERROR.CAL_FILE_INVALID for e in errors)


def test_validation_rejects_unknown_mode_and_version() -> None:
    errors = validate_calibration_file_v1({"schema_version": 2, "mode": "affine"})
    assert {e["field"] for e in errors} == {"schema_version", "mode"}


def test_rejected_inputs_leave_state_untouched(tmp_path: Path) -> None:
    rec = to_record(_line_state())
    rec["line"]["end_xy_px"] = [5.0, 0.0]
    path = tmp_path / "short.json"
    path.write_text(json.dumps(rec), encoding="utf8")

    state = _homography_state()
    errors = load_into_state(path, state)
    assert errors[0]["code"] == ERROR.CAL_LINE_TOO_SHORT
    assert errors[0]["path"] == str(path)
    assert state.mode == CalibrationMode.HOMOGRAPHY


def test_mode_none_resets(tmp_path: Path) -> None:
    path = save_calibration(CalibrationState(), tmp_path / "empty.json")
    state = _line_state()
    assert load_into_state(path, state) == []
    assert state.mode == CalibrationMode.NONE


def test_missing_file_leaves_state_untouched(tmp_path: Path) -> None:
    state = _line_state()
    errors = load_into_state(tmp_path / "nope.json", state)
    assert errors[0]["code"] == ERROR.CAL_FILE_MISSING
    assert state.mode == CalibrationMode.LINE
    assert state.is_calibrated


def test_begun_but_uncommitted_state_saves_as_none() -> None:
    state = _line_state()
    state.begin(CalibrationMode.HOMOGRAPHY)
    rec = to_record(state)
    assert rec["mode"] == "none"
    assert "line" not in rec
    assert validate_calibration_file_v1(rec) == []
