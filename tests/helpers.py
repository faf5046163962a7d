"""Shared test helpers for TimesheetTimer."""

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from timesheettimer.backend.base import (
    BackendError, RemoteRecord, RunningTimer, TimerBackend,
)
from timesheettimer.timer.errors import PersistenceFailure


class SignalCollector:
    """Utility to capture pyqtSignal emissions into a list."""

    def __init__(self):
        self.items: list = []

    def slot(self, *args):
        self.items.append(args if len(args) > 1 else args[0] if args else None)

    def __call__(self, *args):
        self.slot(*args)

    def __len__(self):
        return len(self.items)

    def __getitem__(self, idx):
        return self.items[idx]

    @property
    def last(self):
        return self.items[-1] if self.items else None

    def clear(self):
        self.items.clear()


class FakeClock:
    """Settable UTC clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeBackend(TimerBackend):
    """In-memory timesheet server.

    ``fail`` maps a method name to the exception that method raises next
    time it is called (and every time after, until removed).  Set
    ``booked_hours`` to make ``stop_timer`` book a fixed amount instead of
    the measured time.
    """

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.records: dict[int, RemoteRecord] = {}
        self.running_id: int | None = None
        self.running_since: datetime | None = None
        self.fail: dict[str, Exception] = {}
        self.calls: list[tuple] = []
        self.booked_hours: float | None = None
        self.start_result = True
        self._next_id = 1

    async def _enter(self, name: str, *args) -> None:
        self.calls.append((name, *args))
        await asyncio.sleep(0)
        if name in self.fail:
            raise self.fail[name]

    def call_names(self) -> list[str]:
        return [c[0] for c in self.calls]

    # ── seeding ───────────────────────────────────────────────────────

    def seed_running(
        self,
        description="Remote work",
        project_id=None,
        task_id=None,
        *,
        record_id=None,
        accumulated_hours=0.0,
        since: datetime | None = None,
    ) -> int:
        record_id = record_id or self._next_id
        self._next_id = max(self._next_id, record_id) + 1
        self.records[record_id] = RemoteRecord(
            id=record_id,
            description=description,
            accumulated_hours=accumulated_hours,
            project_id=project_id,
            task_id=task_id,
        )
        self.running_id = record_id
        self.running_since = since or self.clock()
        return record_id

    def stop_remotely(self) -> None:
        self.running_id = None
        self.running_since = None

    # ── TimerBackend ──────────────────────────────────────────────────

    async def create_record(self, description, project_id, task_id=None, owner_id=None):
        await self._enter("create_record", description, project_id, task_id, owner_id)
        record_id = self._next_id
        self._next_id += 1
        self.records[record_id] = RemoteRecord(
            id=record_id,
            description=description,
            project_id=project_id,
            task_id=task_id,
            user_id=owner_id,
        )
        return record_id

    async def start_timer(self, record_id):
        await self._enter("start_timer", record_id)
        if self.start_result:
            self.running_id = record_id
            self.running_since = self.clock()
        return self.start_result

    async def stop_timer(self, record_id, try_to_match=False):
        await self._enter("stop_timer", record_id, try_to_match)
        if self.running_id != record_id:
            return False
        record = self.records[record_id]
        if self.booked_hours is not None:
            hours = self.booked_hours
        else:
            hours = (self.clock() - self.running_since).total_seconds() / 3600
        self.records[record_id] = replace(
            record, accumulated_hours=record.accumulated_hours + hours
        )
        self.stop_remotely()
        return True

    async def read_record(self, record_id):
        await self._enter("read_record", record_id)
        if record_id not in self.records:
            raise BackendError(f"record {record_id} not found")
        return self.records[record_id]

    async def query_running_timer(self):
        await self._enter("query_running_timer")
        if self.running_id is None:
            return None
        record = self.records[self.running_id]
        running = (self.clock() - self.running_since).total_seconds()
        return RunningTimer(
            record_id=record.id,
            elapsed_seconds=running + record.accumulated_hours * 3600,
            accumulated_hours=record.accumulated_hours,
            project_id=record.project_id,
            task_id=record.task_id,
            description=record.description,
        )


class BrokenStore:
    """State store whose every call fails."""

    def get(self, key, default=None):
        raise PersistenceFailure("disk on fire")

    def set(self, key, value):
        raise PersistenceFailure("disk on fire")

    def delete(self, key):
        raise PersistenceFailure("disk on fire")


class MemoryStore:
    """Plain dict store; anything with get/set/delete will do."""

    def __init__(self):
        self.values = {}

    def get(self, key, default=None):
        return self.values.get(key, default)

    def set(self, key, value):
        self.values[key] = value

    def delete(self, key):
        self.values.pop(key, None)
