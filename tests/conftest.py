"""Shared pytest fixtures for the full mangadl test suite."""

from __future__ import annotations

import io

import pytest

from mangadl.telemetry.logger import RunLogger


@pytest.fixture
def log_sink() -> io.StringIO:
    """Collect structured log lines emitted during a test."""

    return io.StringIO()


@pytest.fixture
def run_logger(log_sink: io.StringIO) -> RunLogger:
    """Provide a run logger writing into `log_sink`."""

    return RunLogger(sink=log_sink, level="DEBUG")
