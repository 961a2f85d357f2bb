"""Pytest fixtures for tcgen tests."""

import json
import os
import tempfile
from datetime import datetime
from pathlib import Path

import pytest

from tcgen.clock import FixtureClock
from tcgen.context import RecordContext, RecordMode, clear_context, set_context, set_default_mode
from tcgen.recorder import FixtureRecorder, RecordSink


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def clock():
    """A clock frozen at noon on a fixed day."""
    return FixtureClock(frozen_time=datetime(2024, 3, 14, 12, 0, 0))


@pytest.fixture
def recorder(temp_dir, clock):
    """A FixtureRecorder writing below temp_dir."""
    rec = FixtureRecorder(temp_dir / "fixtures", "models/calc.py", "models_calc", clock=clock)
    yield rec
    rec.close()


class ListSink(RecordSink):
    """Keeps logged invocations in memory."""

    def __init__(self):
        self.records = []
        self.closed = False

    def log(self, method, construct, receiver, payload, output, kwargs=None):
        self.records.append({
            "require": receiver,
            "request": {"payload": payload, "construct": construct, "method": method},
            "kwargs": kwargs,
            "output": output,
        })

    def flush(self):
        pass

    def close(self):
        self.closed = True


@pytest.fixture
def sink():
    return ListSink()


@pytest.fixture(autouse=True)
def record_context():
    """Each test records into a fresh context."""
    ctx = RecordContext(mode=RecordMode.RECORD, run_id="test-run")
    set_context(ctx)
    yield ctx
    clear_context()
    set_default_mode(None)


@pytest.fixture(autouse=True)
def reset_env():
    """Reset environment variables after each test."""
    original_env = os.environ.copy()
    yield
    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def read_fixture():
    """Parse a closed fixture file."""
    def _read(path: Path) -> dict:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    return _read
