"""roadscale.calibration.storage

Persist the active calibration to JSON and restore it. Only the operator
inputs are trusted on load: derived values (scale, matrix, quality) are
recomputed so a hand-edited file cannot smuggle in an inconsistent mapping.
"""

from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any, Literal, NotRequired, TypedDict

from roadscale.calibration.homography import calibrate_homography, homography_quality
from roadscale.calibration.line import calibrate_line, line_quality
from roadscale.calibration.state import CalibrationState
from roadscale.errors import ERROR, CalibrationRejected, ValidationError, make_error
from roadscale.utils.data_models import CalibrationMode, Length, Units

CALIBRATION_FILE_SCHEMA_VERSION = 1


class LengthV1(TypedDict):
    value: float
    units: Literal["ft", "m"]


class LineRecordV1(TypedDict):
    start_xy_px: list[float]
    end_xy_px: list[float]
    real_length: LengthV1
    scale_m_per_px: NotRequired[float]


class HomographyRecordV1(TypedDict):
    points_xy_px: list[list[float]]
    lane_width: LengthV1
    depth: LengthV1
    homography_px_to_ground_3x3: NotRequired[list[list[float]]]


class CalibrationFileV1(TypedDict):
    schema_version: Literal[1]
    mode: Literal["none", "line", "homography"]
    line: NotRequired[LineRecordV1]
    homography: NotRequired[HomographyRecordV1]
    quality: NotRequired[dict[str, Any]]


def _is_finite_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(float(value))


def _validate_xy(value: object) -> bool:
    if not isinstance(value, list) or len(value) != 2:
        return False
    return all(_is_finite_number(v) for v in value)


def _validate_length(value: object) -> bool:
    if not isinstance(value, dict):
        return False
    return _is_finite_number(value.get("value")) and value.get("units") in ("ft", "m")


def _length_record(length: Length) -> LengthV1:
    return {"value": float(length.value), "units": length.units.value}


def _length_from_record(rec: LengthV1) -> Length:
    return Length(value=float(rec["value"]), units=Units(rec["units"]))


def to_record(state: CalibrationState) -> CalibrationFileV1:
    mode = state.mode if state.is_calibrated else CalibrationMode.NONE
    out: CalibrationFileV1 = {"schema_version": 1, "mode": mode.value}
    if state.line is not None:
        line = state.line
        out["line"] = {
            "start_xy_px": [line.start[0], line.start[1]],
            "end_xy_px": [line.end[0], line.end[1]],
            "real_length": _length_record(line.real_length),
            "scale_m_per_px": line.scale_m_per_px,
        }
    if state.homography is not None:
        homo = state.homography
        out["homography"] = {
            "points_xy_px": [[x, y] for x, y in homo.points],
            "lane_width": _length_record(homo.lane_width),
            "depth": _length_record(homo.depth),
            "homography_px_to_ground_3x3": [[float(v) for v in row] for row in homo.matrix.tolist()],
        }
    if state.quality is not None:
        out["quality"] = {"value": state.quality.value, "label": state.quality.label.value}
    return out


def save_calibration(state: CalibrationState, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(to_record(state), indent=2, sort_keys=True) + "\n", encoding="utf8")
    return path


def validate_calibration_file_v1(obj: object, *, path: str | None = None) -> list[ValidationError]:
    errors: list[ValidationError] = []
    if not isinstance(obj, dict):
        return [make_error(ERROR.CAL_FILE_INVALID, "calibration file must be a JSON object", path=path)]

    if obj.get("schema_version") != CALIBRATION_FILE_SCHEMA_VERSION:
        errors.append(
            make_error(
                ERROR.CAL_FILE_INVALID,
                f"calibration.schema_version must be {CALIBRATION_FILE_SCHEMA_VERSION}",
                path=path,
                field="schema_version",
                value=obj.get("schema_version"),
            )
        )

    mode = obj.get("mode")
    if mode not in ("none", "line", "homography"):
        errors.append(
            make_error(
                ERROR.CAL_FILE_INVALID,
                "calibration.mode must be one of none, line, homography",
                path=path,
                field="mode",
                value=mode,
            )
        )
        return errors

    if mode == "line":
        line = obj.get("line")
        if not isinstance(line, dict):
            return errors + [
                make_error(ERROR.CAL_FILE_INVALID, "calibration.line must be an object", path=path, field="line")
            ]
        for key in ("start_xy_px", "end_xy_px"):
            if not _validate_xy(line.get(key)):
                errors.append(
                    make_error(
                        ERROR.CAL_FILE_INVALID,
                        f"calibration.line.{key} must be [x, y] finite numbers",
                        path=path,
                        field=f"line.{key}",
                        value=line.get(key),
                    )
                )
        if not _validate_length(line.get("real_length")):
            errors.append(
                make_error(
                    ERROR.CAL_FILE_INVALID,
                    "calibration.line.real_length must be {value, units: ft|m}",
                    path=path,
                    field="line.real_length",
                    value=line.get("real_length"),
                )
            )

    if mode == "homography":
        homo = obj.get("homography")
        if not isinstance(homo, dict):
            return errors + [
                make_error(
                    ERROR.CAL_FILE_INVALID,
                    "calibration.homography must be an object",
                    path=path,
                    field="homography",
                )
            ]
        pts = homo.get("points_xy_px")
        if not isinstance(pts, list) or len(pts) != 4:
            errors.append(
                make_error(
                    ERROR.CAL_FILE_INVALID,
                    "calibration.homography.points_xy_px must be a list of 4 points",
                    path=path,
                    field="homography.points_xy_px",
                    value=pts,
                )
            )
        else:
            for idx, p in enumerate(pts):
                if not _validate_xy(p):
                    errors.append(
                        make_error(
                            ERROR.CAL_FILE_INVALID,
                            "homography.points_xy_px[] must be [x, y] finite numbers",
                            path=path,
                            index=idx,
                            field="homography.points_xy_px[]",
                            value=p,
                        )
                    )
        for key in ("lane_width", "depth"):
            if not _validate_length(homo.get(key)):
                errors.append(
                    make_error(
                        ERROR.CAL_FILE_INVALID,
                        f"calibration.homography.{key} must be {{value, units: ft|m}}",
                        path=path,
                        field=f"homography.{key}",
                        value=homo.get(key),
                    )
                )

    return errors


def load_calibration(path: Path) -> tuple[CalibrationFileV1 | None, list[ValidationError]]:
    try:
        obj = json.loads(Path(path).read_text(encoding="utf8"))
    except FileNotFoundError:
        return None, [make_error(ERROR.CAL_FILE_MISSING, f"missing calibration file: {path}", path=str(path))]
    except json.JSONDecodeError as e:
        return None, [make_error(ERROR.CAL_FILE_INVALID_JSON, f"invalid JSON: {e}", path=str(path))]

    errors = validate_calibration_file_v1(obj, path=str(path))
    if errors:
        return None, errors
    return obj, []


def restore_calibration(record: CalibrationFileV1, state: CalibrationState) -> CalibrationMode:
    """Recompute a validated record into ``state``.

    Raises:
        CalibrationRejected: the stored inputs no longer form a valid calibration
    """
    mode = CalibrationMode(record["mode"])
    if mode == CalibrationMode.LINE:
        rec = record["line"]
        line = calibrate_line(
            (float(rec["start_xy_px"][0]), float(rec["start_xy_px"][1])),
            (float(rec["end_xy_px"][0]), float(rec["end_xy_px"][1])),
            _length_from_record(rec["real_length"]),
        )
        state.commit_line(line, line_quality(line))
    elif mode == CalibrationMode.HOMOGRAPHY:
        rec = record["homography"]
        homo, _ = calibrate_homography(
            [(float(x), float(y)) for x, y in rec["points_xy_px"]],
            _length_from_record(rec["lane_width"]),
            _length_from_record(rec["depth"]),
        )
        state.commit_homography(homo, homography_quality(homo))
    else:
        state.reset()
    return mode


def load_into_state(path: Path, state: CalibrationState) -> list[ValidationError]:
    record, errors = load_calibration(path)
    if record is None:
        return errors
    try:
        restore_calibration(record, state)
    except CalibrationRejected as e:
        err = e.to_error()
        err["path"] = str(path)
        return [err]
    return []
