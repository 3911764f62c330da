"""roadscale.errors

Stable, machine-readable error codes, a small JSON-safe error shape, and the
exception raised when a calibration capture has to be discarded.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypedDict


class ValidationError(TypedDict, total=False):
    code: str
    message: str
    path: str
    index: int
    field: str
    value: Any


@dataclass(frozen=True)
class ErrorCodes:
    # Line capture
    CAL_LINE_TOO_SHORT: str = "E_CAL_LINE_TOO_SHORT"
    CAL_LENGTH_MISSING: str = "E_CAL_LENGTH_MISSING"

    # Homography capture
    CAL_QUAD_SELF_INTERSECTS: str = "E_CAL_QUAD_SELF_INTERSECTS"
    CAL_QUAD_DEGENERATE: str = "E_CAL_QUAD_DEGENERATE"
    CAL_HOMOGRAPHY_SINGULAR: str = "E_CAL_HOMOGRAPHY_SINGULAR"
    CAL_HOMOGRAPHY_REPROJECTION: str = "E_CAL_HOMOGRAPHY_REPROJECTION"

    # Measurement
    CAL_NOT_CALIBRATED: str = "E_CAL_NOT_CALIBRATED"

    # Persisted calibration files
    CAL_FILE_MISSING: str = "E_CAL_FILE_MISSING"
    CAL_FILE_INVALID_JSON: str = "E_CAL_FILE_INVALID_JSON"
    CAL_FILE_INVALID: str = "E_CAL_FILE_INVALID"

    # Configuration
    CONFIG_INVALID: str = "E_CONFIG_INVALID"

    # Capture
    VIDEO_OPEN_FAILED: str = "E_VIDEO_OPEN_FAILED"


ERROR = ErrorCodes()


def make_error(code: str, message: str, **context: Any) -> ValidationError:
    err: ValidationError = {"code": code, "message": message}
    for k, v in context.items():
        if v is None:
            continue
        err[k] = v
    return err


class CalibrationRejected(ValueError):
    """A capture was invalid; the offending input is discarded and may be retried."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def to_error(self) -> ValidationError:
        return make_error(self.code, self.message)
