# Shared test fixtures
# SPDX-License-Identifier: AGPL-3.0

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from alignment_memory import ConstraintStore, EventLog, MoodTracker


class FakeClock:
    """Deterministic clock; tests move time forward explicitly."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def data_dir():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def log_path(data_dir):
    return data_dir / "memory_event_log.jsonl"


@pytest.fixture
def event_log(log_path, clock):
    return EventLog(log_path, clock=clock)


@pytest.fixture
def store(event_log, clock):
    return ConstraintStore(event_log, clock=clock)


@pytest.fixture
def tracker(event_log, clock):
    return MoodTracker(event_log, clock=clock)
