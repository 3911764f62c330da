"""
Road calibration CLI.

Usage:
    python -m roadscale line X1 Y1 X2 Y2 --length 10 --units ft -o cal.json
    python -m roadscale homography -p 100,400 -p 500,400 -p 400,200 -p 200,200 --width 12
    python -m roadscale pick frame.png --mode homography --length 12
    python -m roadscale run clip.mp4 --calibration cal.json -o annotated.mp4
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

import click
import yaml

from roadscale import __version__
from roadscale.calibration.measure import NotCalibratedError, distance_m, meters_to_units, speed_kmh, speed_mph
from roadscale.calibration.session import Calibrator, Surface
from roadscale.calibration.state import CalibrationState
from roadscale.calibration.storage import load_into_state, save_calibration, to_record
from roadscale.errors import ERROR, make_error
from roadscale.notify import Notifier
from roadscale.runtime.tuning import ResolutionTier
from roadscale.settings import build_calibrator, load_config
from roadscale.utils.data_models import CalibrationMode, Length, Units

EXIT_INVALID_INPUT = 2
EXIT_CALIBRATION_REJECTED = 3

VIDEO_SUFFIXES = {".mp4", ".mov", ".mkv", ".avi", ".webm", ".m4v"}


def configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _emit(payload: dict[str, Any]) -> None:
    click.echo(json.dumps(payload, indent=2, sort_keys=True))


def _parse_point(text: str) -> tuple[float, float]:
    try:
        x, y = (float(v) for v in text.split(","))
    except ValueError:
        raise click.BadParameter(f"expected X,Y, got {text!r}") from None
    return (x, y)


def _parse_surface(text: Optional[str]) -> Surface:
    if not text:
        return Surface(width=float("inf"), height=float("inf"))
    try:
        w, h = (float(v) for v in text.lower().split("x"))
    except ValueError:
        raise click.BadParameter(f"expected WIDTHxHEIGHT, got {text!r}") from None
    return Surface(width=w, height=h)


def _calibrator(ctx: click.Context, surface: Surface) -> Calibrator:
    return build_calibrator(ctx.obj["config"], surface.width, surface.height, notifier=Notifier())


def _apply_length(calibrator: Calibrator, preset: Optional[str], length: Optional[float], units: Optional[str]) -> None:
    if preset:
        try:
            calibrator.use_preset(preset)
        except KeyError as e:
            raise click.BadParameter(e.args[0], param_hint="--preset") from None
    if length is not None:
        calibrator.set_length(length, Units(units) if units else None)
    elif units:
        calibrator.units = Units(units)


def _finish_calibration(calibrator: Calibrator, out: Optional[str]) -> None:
    state = calibrator.state
    notices = [{"message": n.message, "severity": n.severity} for n in calibrator.notifier.notices]
    ok = state.is_calibrated
    payload: dict[str, Any] = {"ok": ok, "notices": notices}
    if ok:
        payload["calibration"] = to_record(state)
        if out:
            payload["path"] = str(save_calibration(state, Path(out)))
    _emit(payload)
    if not ok:
        sys.exit(EXIT_CALIBRATION_REJECTED)


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", type=click.Path(exists=True, dir_okay=False), help="Custom config file")
@click.option("--verbose", "-v", count=True, help="Increase log verbosity (-v info, -vv debug)")
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], verbose: int) -> None:
    """Road calibration: convert pixel measurements into real-world distances and speeds."""
    configure_logging(verbose)
    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = load_config(Path(config) if config else None)
    except (ValueError, yaml.YAMLError) as e:
        _emit({"ok": False, "errors": [make_error(ERROR.CONFIG_INVALID, str(e), path=config)]})
        sys.exit(EXIT_INVALID_INPUT)


@cli.command()
@click.argument("x1", type=float)
@click.argument("y1", type=float)
@click.argument("x2", type=float)
@click.argument("y2", type=float)
@click.option("--length", "-l", type=float, default=None, help="Real-world length of the line")
@click.option("--preset", type=str, default=None, help="Named length preset from config")
@click.option("--units", "-u", type=click.Choice([u.value for u in Units]), default=None)
@click.option("--surface", type=str, default=None, help="Surface bounds WIDTHxHEIGHT; points outside are ignored")
@click.option("--out", "-o", type=click.Path(dir_okay=False), default=None, help="Write calibration JSON")
@click.pass_context
def line(ctx, x1, y1, x2, y2, length, preset, units, surface, out):
    """Calibrate a uniform scale from the line (X1,Y1)-(X2,Y2)."""
    calibrator = _calibrator(ctx, _parse_surface(surface))
    _apply_length(calibrator, preset, length, units)

    calibrator.start_line()
    calibrator.pointer_down((x1, y1))
    calibrator.pointer_move((x2, y2))
    calibrator.pointer_up((x2, y2))
    _finish_calibration(calibrator, out)


@cli.command()
@click.option("--point", "-p", "points", multiple=True, required=True,
              help="X,Y in order near-left, near-right, far-right, far-left (repeat 4 times)")
@click.option("--width", "-w", type=float, default=None, help="Lane width (near edge real length)")
@click.option("--preset", type=str, default=None, help="Named lane-width preset from config")
@click.option("--depth", "-d", type=float, default=None, help="Distance between near and far edges")
@click.option("--units", "-u", type=click.Choice([u.value for u in Units]), default=None)
@click.option("--surface", type=str, default=None, help="Surface bounds WIDTHxHEIGHT; points outside are ignored")
@click.option("--out", "-o", type=click.Path(dir_okay=False), default=None, help="Write calibration JSON")
@click.pass_context
def homography(ctx, points, width, preset, depth, units, surface, out):
    """Calibrate a pixel -> ground-plane homography from four clicked points."""
    if len(points) != 4:
        raise click.UsageError(f"exactly 4 --point values required, got {len(points)}")
    calibrator = _calibrator(ctx, _parse_surface(surface))
    _apply_length(calibrator, preset, width, units)
    depth_length = Length(value=depth, units=calibrator.units) if depth is not None else None

    session = calibrator.start_homography(depth=depth_length)
    for text in points:
        session.click(_parse_point(text))
    _finish_calibration(calibrator, out)


@cli.command()
@click.argument("calibration_path", type=click.Path(dir_okay=False))
def validate(calibration_path):
    """Validate a calibration JSON file and recompute its quality."""
    state = CalibrationState()
    errors = load_into_state(Path(calibration_path), state)
    payload: dict[str, Any] = {"ok": not errors, "errors": errors}
    if not errors:
        payload["mode"] = state.mode.value
        payload["quality"] = {"value": state.quality_value, "label": state.quality_label.value}
    _emit(payload)
    if errors:
        sys.exit(EXIT_INVALID_INPUT)


@cli.command()
@click.argument("calibration_path", type=click.Path(dir_okay=False))
@click.argument("x1", type=float)
@click.argument("y1", type=float)
@click.argument("x2", type=float)
@click.argument("y2", type=float)
@click.option("--dt", type=float, default=None, help="Seconds between the two positions (prints speed)")
def measure(calibration_path, x1, y1, x2, y2, dt):
    """Real-world distance (and speed) between two pixel positions."""
    state = CalibrationState()
    errors = load_into_state(Path(calibration_path), state)
    if errors:
        _emit({"ok": False, "errors": errors})
        sys.exit(EXIT_INVALID_INPUT)
    try:
        meters = distance_m(state, (x1, y1), (x2, y2))
    except (NotCalibratedError, ValueError) as e:
        _emit({"ok": False, "errors": [{"code": getattr(e, "code", "E_MEASURE"), "message": str(e)}]})
        sys.exit(EXIT_INVALID_INPUT)
    payload: dict[str, Any] = {
        "ok": True,
        "mode": state.mode.value,
        "distance_m": meters,
        "distance_ft": meters_to_units(meters, Units.FEET),
        "quality": state.quality_label.value,
    }
    if dt is not None:
        payload["speed_kmh"] = speed_kmh(state, (x1, y1), (x2, y2), dt)
        payload["speed_mph"] = speed_mph(state, (x1, y1), (x2, y2), dt)
    _emit(payload)


@cli.command()
@click.argument("image_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--mode", "-m", type=click.Choice(["line", "homography"]), default="line")
@click.option("--length", "-l", type=float, default=None, help="Line length or lane width")
@click.option("--preset", type=str, default=None, help="Named length preset from config")
@click.option("--depth", "-d", type=float, default=None, help="Homography rectangle depth")
@click.option("--units", "-u", type=click.Choice([u.value for u in Units]), default=None)
@click.option("--frame", "frame_number", type=int, default=0, help="Frame to show when IMAGE is a video")
@click.option("--out", "-o", type=click.Path(dir_okay=False), default=None, help="Write calibration JSON")
@click.pass_context
def pick(ctx, image_path, mode, length, preset, depth, units, frame_number, out):
    """Interactive calibration in an OpenCV window (ESC cancels, R restarts)."""
    from roadscale.interactive import load_still, run_picker

    image = load_still(Path(image_path), frame_number, video_suffixes=VIDEO_SUFFIXES)
    h, w = image.shape[:2]
    calibrator = build_calibrator(ctx.obj["config"], w, h, notifier=Notifier())
    _apply_length(calibrator, preset, length, units)
    depth_length = Length(value=depth, units=calibrator.units) if depth is not None else None

    run_picker(image, calibrator, CalibrationMode(mode), depth=depth_length)
    _finish_calibration(calibrator, out)


@cli.command()
@click.argument("video_path", type=click.Path(exists=True, dir_okay=False), required=False)
@click.option("--camera", type=int, default=None, help="Use camera device N instead of a file")
@click.option("--calibration", "calibration_path", type=click.Path(exists=True, dir_okay=False), default=None)
@click.option("--output", "-o", type=click.Path(dir_okay=False), default=None, help="Annotated output video")
@click.option("--start-frame", type=int, default=0, help="Start processing from frame N")
@click.option("--end-frame", type=int, default=None, help="Stop processing at frame N")
@click.option(
    "--resolution",
    type=click.Choice([str(int(t)) for t in ResolutionTier]),
    default=None,
    help="Starting processing tier",
)
@click.pass_context
def run(ctx, video_path, camera, calibration_path, output, start_frame, end_frame, resolution):
    """Run the processing loop with overlays and adaptive performance control."""
    from roadscale.pipeline import Pipeline
    from roadscale.utils.video_io import CameraReader, VideoOpenError, VideoReader

    if (video_path is None) == (camera is None):
        raise click.UsageError("give exactly one of VIDEO_PATH or --camera")

    state = CalibrationState()
    if calibration_path:
        errors = load_into_state(Path(calibration_path), state)
        if errors:
            _emit({"ok": False, "errors": errors})
            sys.exit(EXIT_INVALID_INPUT)

    try:
        source = VideoReader(video_path) if video_path else CameraReader(camera)
    except (FileNotFoundError, VideoOpenError) as e:
        _emit({"ok": False, "errors": [make_error(ERROR.VIDEO_OPEN_FAILED, str(e))]})
        sys.exit(EXIT_INVALID_INPUT)
    click.echo(f"Source: {source}")
    click.echo(f"Calibration: {state.mode.value} ({state.quality_label.value})")

    pipeline = Pipeline(ctx.obj["config"], state)
    summary = pipeline.run(
        source,
        start_frame=start_frame,
        end_frame=end_frame,
        output_path=Path(output) if output else None,
        resolution=ResolutionTier(int(resolution)) if resolution else None,
    )

    click.echo(f"Frames: {summary.frames}")
    click.echo(f"Inference: {summary.inference_submitted} submitted, {summary.inference_skipped_busy} skipped (busy)")
    for m in summary.mitigations:
        click.echo(f"  {m.message}")
    click.echo(f"Final: {pipeline.chip_text}")
    click.echo("Processing complete!")


@cli.command()
def info():
    """Show version and library information."""
    import av
    import cv2
    import numpy as np
    import pydantic

    click.echo(f"roadscale v{__version__}")
    click.echo("-" * 40)
    click.echo(f"numpy version: {np.__version__}")
    click.echo(f"OpenCV version: {cv2.__version__}")
    click.echo(f"PyAV version: {av.__version__}")
    click.echo(f"pydantic version: {pydantic.VERSION}")


def main(argv: list[str] | None = None) -> int:
    try:
        cli.main(args=argv, prog_name="roadscale", standalone_mode=False)
    except click.exceptions.Exit as e:
        return int(e.exit_code)
    except click.ClickException as e:
        e.show()
        return e.exit_code
    except SystemExit as e:
        return int(e.code or 0)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
