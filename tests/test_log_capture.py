"""Tests for per-run log capture (utils/log_capture.py)."""

from __future__ import annotations

import logging
import re

import pytest

from branchgap.utils.log_capture import LogCapture, NullLogCapture

_LINE_RE = re.compile(r"^\[\d{4}-\d{2}-\d{2}T[\d:.]+\+00:00\] \[(\w+)\] (.*)$")


def test_captures_branchgap_records() -> None:
    log = logging.getLogger("branchgap.tests.capture")

    with LogCapture() as capture:
        log.info("cloning %s", "demo")
        log.debug("details")
        log.warning("careful")

    matches = [_LINE_RE.match(line) for line in capture.transcript.splitlines()]
    assert all(matches)
    assert [(m.group(1), m.group(2)) for m in matches if m] == [
        ("INFO", "cloning demo"),
        ("DEBUG", "details"),
        ("WARNING", "careful"),
    ]


def test_ignores_other_loggers() -> None:
    with LogCapture() as capture:
        logging.getLogger("someone.else").warning("not ours")

    assert capture.transcript == ""


def test_handler_removed_and_level_restored_on_failure() -> None:
    root = logging.getLogger("branchgap")
    root.setLevel(logging.WARNING)
    handlers_before = list(root.handlers)

    try:
        with pytest.raises(RuntimeError), LogCapture() as capture:
            logging.getLogger("branchgap.tests").error("failing")
            raise RuntimeError("boom")

        assert root.handlers == handlers_before
        assert root.level == logging.WARNING
        assert len(capture.transcript.splitlines()) == 1
    finally:
        root.setLevel(logging.NOTSET)


def test_runs_are_disjoint() -> None:
    log = logging.getLogger("branchgap.tests.runs")

    with LogCapture() as first:
        log.info("first run")
    log.info("between runs")
    with LogCapture() as second:
        log.info("second run")

    assert first.transcript.endswith("first run")
    assert len(second.transcript.splitlines()) == 1
    assert second.transcript.endswith("second run")


def test_add_appends_raw_line() -> None:
    with LogCapture() as capture:
        capture.add("raw line")

    assert capture.transcript.splitlines() == ["raw line"]


def test_null_capture_records_nothing() -> None:
    with NullLogCapture() as capture:
        logging.getLogger("branchgap.tests").info("ignored")
        capture.add("ignored")

    assert capture.transcript == ""
