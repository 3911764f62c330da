"""roadscale.notify

Display-only status reporting: one transient banner message with a severity,
a guide line telling the operator what input is expected next, and a rolling
timestamped debug log. Every entry is mirrored into ``logging``.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Literal

logger = logging.getLogger(__name__)

Severity = Literal["ok", "warn", "bad"]

_LEVELS: dict[str, int] = {
    "ok": logging.INFO,
    "warn": logging.WARNING,
    "bad": logging.ERROR,
}

MAX_LOG_LINES = 50
MAX_NOTICES = 200


@dataclass(frozen=True)
class Notice:
    message: str
    severity: Severity
    t_s: float


class Notifier:
    def __init__(
        self,
        *,
        max_log_lines: int = MAX_LOG_LINES,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._clock = clock
        self._log: Deque[str] = deque(maxlen=max(1, int(max_log_lines)))
        self._notices: Deque[Notice] = deque(maxlen=MAX_NOTICES)
        self.current: Notice | None = None
        self.guide: str = ""

    def show(self, message: str, severity: Severity = "ok") -> Notice:
        if severity not in _LEVELS:
            raise ValueError(f"unknown severity: {severity!r}")
        notice = Notice(message=message, severity=severity, t_s=self._clock())
        self.current = notice
        self._notices.append(notice)
        logger.log(_LEVELS[severity], message)
        return notice

    def log(self, message: str) -> str:
        stamp = time.strftime("%H:%M:%S", time.localtime(self._clock()))
        line = f"[{stamp}] {message}"
        self._log.append(line)
        logger.debug(message)
        return line

    def set_guide(self, text: str) -> None:
        self.guide = text

    @property
    def log_lines(self) -> list[str]:
        return list(self._log)

    @property
    def notices(self) -> list[Notice]:
        return list(self._notices)

    def notices_of(self, severity: Severity) -> list[Notice]:
        return [n for n in self._notices if n.severity == severity]
