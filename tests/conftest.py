"""Shared pytest fixtures for TimesheetTimer tests."""

import asyncio
import sys
import pytest

from PyQt6.QtCore import QCoreApplication

from timesheettimer.database.db import configure_engine, init_db
from timesheettimer.database.state_store import WorkspaceStateStore
from timesheettimer.timer.engine import TimerEngine

from helpers import FakeBackend, FakeClock


@pytest.fixture(scope="session")
def qapp():
    """A single QCoreApplication instance shared across the entire test run."""
    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    yield app


@pytest.fixture(autouse=True)
def test_db():
    """Point every test at a fresh in-memory SQLite database."""
    configure_engine("sqlite:///:memory:")
    init_db()
    yield


@pytest.fixture
def run():
    """Run a coroutine to completion on a loop private to the test."""
    loop = asyncio.new_event_loop()
    yield loop.run_until_complete
    loop.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def backend(clock):
    return FakeBackend(clock)


@pytest.fixture
def store():
    return WorkspaceStateStore("/home/dev/project")


@pytest.fixture
def engine(qapp, backend, store, clock):
    """Fresh TimerEngine on the fake backend, persisting to ``store``."""
    eng = TimerEngine(backend, store, owner_id=42, clock=clock)
    yield eng
    eng.dispose()


@pytest.fixture
def engine_no_store(qapp, backend, clock):
    """Fresh TimerEngine without persistence (pure state-machine tests)."""
    eng = TimerEngine(backend, None, clock=clock)
    yield eng
    eng.dispose()
