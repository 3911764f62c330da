"""roadscale.runtime.worker

Inference runs in an isolated worker thread reached only by one-way
messages. The processing loop posts ``init``/``frame``/``dispose`` and drains
``result``/``error``/``dispose_ack`` whenever it likes; there is no
cancellation of a request in flight.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Any, Literal, Optional, Protocol, TypedDict

import numpy as np

from roadscale.utils.data_models import Detection

logger = logging.getLogger(__name__)


class InitMsg(TypedDict):
    type: Literal["init"]
    backend: str
    model: str
    resolution: int


class FrameMsg(TypedDict):
    type: Literal["frame"]
    frame_idx: int
    data: np.ndarray
    ts: float


class DisposeMsg(TypedDict):
    type: Literal["dispose"]


class ResultMsg(TypedDict):
    type: Literal["result"]
    frame_idx: int
    detections: list[Detection]
    infer_ms: float


class ErrorMsg(TypedDict):
    type: Literal["error"]
    message: str


class DisposeAckMsg(TypedDict):
    type: Literal["dispose_ack"]


class WorkerMsg:
    @staticmethod
    def init(backend: str, model: str, resolution: int) -> InitMsg:
        return {"type": "init", "backend": backend, "model": model, "resolution": int(resolution)}

    @staticmethod
    def frame(frame_idx: int, data: np.ndarray, ts: float) -> FrameMsg:
        return {"type": "frame", "frame_idx": int(frame_idx), "data": data, "ts": float(ts)}

    @staticmethod
    def result(frame_idx: int, detections: list[Detection], infer_ms: float) -> ResultMsg:
        return {"type": "result", "frame_idx": int(frame_idx), "detections": detections, "infer_ms": float(infer_ms)}

    @staticmethod
    def error(message: str) -> ErrorMsg:
        return {"type": "error", "message": message}

    @staticmethod
    def dispose() -> DisposeMsg:
        return {"type": "dispose"}


class Detector(Protocol):
    def load(self, backend: str, model: str, resolution: int) -> None: ...

    def infer(self, frame_idx: int, frame: np.ndarray) -> list[Detection]: ...

    def close(self) -> None: ...


class NullDetector:
    """Placeholder engine: accepts frames and reports no detections."""

    def load(self, backend: str, model: str, resolution: int) -> None:
        logger.info("null detector loaded (backend=%s model=%s res=%s)", backend, model, resolution)

    def infer(self, frame_idx: int, frame: np.ndarray) -> list[Detection]:
        return []

    def close(self) -> None:
        pass


class InferenceWorker:
    """Background thread owning one detector.

    ``submit_frame`` refuses a new frame while a previous one is outstanding,
    so the loop never queues work behind a slow detector.
    """

    def __init__(self, detector: Optional[Detector] = None) -> None:
        self.detector: Detector = detector if detector is not None else NullDetector()
        self._inbox: "queue.Queue[dict[str, Any]]" = queue.Queue()
        self._outbox: "queue.Queue[dict[str, Any]]" = queue.Queue()
        self._outstanding = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def busy(self) -> bool:
        return self._outstanding.is_set()

    def start(self, backend: str, model: str, resolution: int) -> None:
        if self.running:
            raise RuntimeError("worker already running")
        self._thread = threading.Thread(target=self._run, name="roadscale-inference", daemon=True)
        self._thread.start()
        self.post(WorkerMsg.init(backend, model, resolution))

    def post(self, msg: dict[str, Any]) -> None:
        self._inbox.put(msg)

    def submit_frame(self, frame_idx: int, frame: np.ndarray, ts: float) -> bool:
        if not self.running or self._outstanding.is_set():
            return False
        self._outstanding.set()
        self.post(WorkerMsg.frame(frame_idx, frame, ts))
        return True

    def drain(self) -> list[dict[str, Any]]:
        out: list[dict[str, Any]] = []
        while True:
            try:
                out.append(self._outbox.get_nowait())
            except queue.Empty:
                return out

    def dispose(self, timeout_s: float = 0.5) -> None:
        thread = self._thread
        if thread is None or not thread.is_alive():
            return
        self.post(WorkerMsg.dispose())
        thread.join(timeout=timeout_s)

    def _run(self) -> None:
        while True:
            msg = self._inbox.get()
            kind = msg.get("type")
            if kind == "init":
                try:
                    self.detector.load(msg["backend"], msg["model"], msg["resolution"])
                    self._outbox.put(WorkerMsg.result(-1, [], 0.0))
                except Exception as e:  # reported to the loop, which decides what to show
                    self._outbox.put(WorkerMsg.error(f"Detector init failed: {e}"))
            elif kind == "frame":
                t0 = time.perf_counter()
                reply: dict[str, Any]
                try:
                    detections = self.detector.infer(msg["frame_idx"], msg["data"])
                except Exception as e:
                    reply = WorkerMsg.error(f"Inference failed on frame {msg['frame_idx']}: {e}")
                else:
                    reply = WorkerMsg.result(msg["frame_idx"], detections, (time.perf_counter() - t0) * 1000.0)
                # A drained reply implies the worker is idle.
                self._outstanding.clear()
                self._outbox.put(reply)
            elif kind == "dispose":
                self.detector.close()
                self._outbox.put({"type": "dispose_ack"})
                return
            else:
                self._outbox.put(WorkerMsg.error(f"unknown message type: {kind!r}"))
