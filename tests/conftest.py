"""Shared test fixtures for rtsp_relay tests."""

from __future__ import annotations

import os
from collections.abc import Iterator
from typing import Any

os.environ.setdefault("RTSP_RELAY_SKIP_DEFAULT_LOGGING", "1")

import pytest
from loguru import logger

from fakes import FakeClock, FakeHandleFactory, FakeTimerFactory, ManualDetectorFactory


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(start=1000.0)


@pytest.fixture
def handle_factory() -> FakeHandleFactory:
    return FakeHandleFactory()


@pytest.fixture
def timer_factory() -> FakeTimerFactory:
    return FakeTimerFactory()


@pytest.fixture
def detector_factory(clock: FakeClock) -> ManualDetectorFactory:
    return ManualDetectorFactory(clock=clock)


@pytest.fixture
def log_records() -> Iterator[list[dict[str, Any]]]:
    """Capture loguru records emitted during the test."""
    records: list[dict[str, Any]] = []
    sink_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    logger.remove(sink_id)
