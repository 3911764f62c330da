"""
Frame sources and sinks.

Video files are decoded and encoded with PyAV one frame at a time; live
cameras go through OpenCV. Every source yields ``(frame_index, rgb_array)``.
"""

from dataclasses import dataclass
from fractions import Fraction
from pathlib import Path
from typing import Iterator, Optional

import av
import cv2
import numpy as np


class VideoOpenError(RuntimeError):
    """Capture source could not be opened (missing file, device access denied)."""


@dataclass(frozen=True)
class VideoInfo:
    width: int
    height: int
    fps: float
    total_frames: Optional[int]
    codec: str


def probe_video(video_path: Path) -> VideoInfo:
    """Read stream metadata without decoding any frames."""
    try:
        container = av.open(str(video_path))
    except av.error.FFmpegError as e:
        raise VideoOpenError(f"Could not open video {video_path}: {e}") from e
    try:
        stream = container.streams.video[0]
        return VideoInfo(
            width=stream.width,
            height=stream.height,
            fps=float(stream.average_rate) if stream.average_rate else 30.0,
            total_frames=stream.frames or None,
            codec=stream.codec_context.name,
        )
    finally:
        container.close()


class VideoReader:
    """Streams RGB frames from a video file."""

    def __init__(self, video_path: Path | str):
        self.video_path = Path(video_path)
        if not self.video_path.exists():
            raise FileNotFoundError(f"Video not found: {self.video_path}")
        info = probe_video(self.video_path)
        self.width = info.width
        self.height = info.height
        self.fps = info.fps
        self.total_frames = info.total_frames
        self.codec = info.codec

    def __repr__(self) -> str:
        return f"VideoReader({self.video_path.name}, {self.width}x{self.height}, {self.fps:.2f}fps, {self.total_frames} frames)"

    def frames(self, start_frame: int = 0, end_frame: Optional[int] = None) -> Iterator[tuple[int, np.ndarray]]:
        """
        Yield ``(index, rgb)`` for frames in ``[start_frame, end_frame)``.

        Indices come from presentation timestamps, so a seek that lands early
        is skipped forward rather than mislabelled.
        """
        container = av.open(str(self.video_path))
        try:
            stream = container.streams.video[0]
            if start_frame > 0:
                container.seek(int(start_frame / self.fps / stream.time_base), stream=stream)

            idx = 0
            for frame in container.decode(stream):
                if frame.pts is not None:
                    idx = int(round(frame.pts * stream.time_base * self.fps))
                if idx >= start_frame:
                    if end_frame is not None and idx >= end_frame:
                        return
                    yield idx, frame.to_ndarray(format="rgb24")
                idx += 1
        finally:
            container.close()

    def get_frame(self, frame_number: int) -> np.ndarray:
        for _, frame in self.frames(start_frame=frame_number, end_frame=frame_number + 1):
            return frame
        raise ValueError(f"Frame {frame_number} not found in {self.video_path}")


class CameraReader:
    """Live camera source via OpenCV; frames are converted to RGB."""

    def __init__(self, device_index: int = 0):
        self.device_index = int(device_index)
        cap = cv2.VideoCapture(self.device_index)
        if not cap.isOpened():
            raise VideoOpenError(f"Camera {self.device_index} failed. Check permissions.")
        self.width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        self.fps = float(cap.get(cv2.CAP_PROP_FPS) or 30.0)
        self.total_frames = None
        self._cap = cap

    def __repr__(self) -> str:
        return f"CameraReader({self.device_index}, {self.width}x{self.height})"

    def frames(self, start_frame: int = 0, end_frame: Optional[int] = None) -> Iterator[tuple[int, np.ndarray]]:
        idx = 0
        try:
            while end_frame is None or idx < end_frame:
                ok, bgr = self._cap.read()
                if not ok:
                    break
                if idx >= start_frame:
                    yield idx, cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)
                idx += 1
        finally:
            self._cap.release()


class VideoWriter:
    """
    Encodes annotated RGB frames with PyAV.

    yuv420p needs even dimensions, so odd source sizes lose their last
    row/column; ``write_frame`` crops larger frames to fit.
    """

    def __init__(
        self,
        output_path: Path | str,
        width: int,
        height: int,
        fps: float = 30.0,
        codec: str = "h264",
        crf: int = 23,
    ):
        self.output_path = Path(output_path)
        self.width = int(width) - int(width) % 2
        self.height = int(height) - int(height) % 2
        self.output_path.parent.mkdir(parents=True, exist_ok=True)

        self.container = av.open(str(self.output_path), mode="w")
        self.stream = self.container.add_stream(codec, rate=Fraction(fps).limit_denominator(10000))
        self.stream.width = self.width
        self.stream.height = self.height
        self.stream.pix_fmt = "yuv420p"
        self.stream.options = {"crf": str(crf)}

    def write_frame(self, frame: np.ndarray) -> None:
        h, w = frame.shape[:2]
        if h < self.height or w < self.width:
            raise ValueError(f"Frame {w}x{h} is smaller than the output {self.width}x{self.height}")
        rgb = np.ascontiguousarray(frame[: self.height, : self.width])
        for packet in self.stream.encode(av.VideoFrame.from_ndarray(rgb, format="rgb24")):
            self.container.mux(packet)

    def close(self) -> None:
        for packet in self.stream.encode():
            self.container.mux(packet)
        self.container.close()

    def __enter__(self) -> "VideoWriter":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def fit_to_tier(frame: np.ndarray, target_height: int) -> np.ndarray:
    """Downscale ``frame`` so its height is at most ``target_height``, keeping aspect."""
    h, w = frame.shape[:2]
    if h <= target_height:
        return frame
    new_w = int(round(w * target_height / h))
    return cv2.resize(frame, (new_w, int(target_height)), interpolation=cv2.INTER_AREA)
