from __future__ import annotations

import logging

import pytest

from roadscale.notify import Notifier


def test_show_sets_current_and_logs_at_severity(caplog: pytest.LogCaptureFixture) -> None:
    notifier = Notifier(clock=lambda: 0.0)
    with caplog.at_level(logging.INFO, logger="roadscale.notify"):
        notifier.show("Homography set. Grid overlay shown.", "ok")
        notifier.show("Opposite edges differ too much. Proceed with caution.", "warn")
    assert notifier.current.severity == "warn"
    assert [r.levelno for r in caplog.records] == [logging.INFO, logging.WARNING]


def test_unknown_severity_rejected() -> None:
    with pytest.raises(ValueError):
        Notifier().show("hello", "info")


def test_log_is_timestamped_and_bounded() -> None:
    notifier = Notifier(max_log_lines=3, clock=lambda: 0.0)
    for i in range(5):
        notifier.log(f"line {i}")
    lines = notifier.log_lines
    assert len(lines) == 3
    assert lines[-1].endswith("] line 4")
    assert lines[0].startswith("[") and lines[0][9] == "]"


def test_notices_filtered_by_severity() -> None:
    notifier = Notifier()
    notifier.show("a", "ok")
    notifier.show("b", "bad")
    notifier.show("c", "bad")
    assert [n.message for n in notifier.notices_of("bad")] == ["b", "c"]
