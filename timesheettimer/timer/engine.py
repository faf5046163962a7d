"""Timer reconciliation engine for TimesheetTimer.

States
------
STOPPED   No timer tracked (initial).
RUNNING   Tracking one remote timesheet record since ``start_time``.

Transitions
-----------
STOPPED → RUNNING       start(description, project_id, task_id)
RUNNING → STOPPED       stop()
any     → server truth  reconcile()
STOPPED → RUNNING       load()  (only if the server confirms the snapshot)

The server is authoritative.  The workspace snapshot is only a hint that
lets ``load()`` keep the exact local start time across a restart; it is
always checked against the server's running timer before use.

All four operations are coroutines serialized behind one gate, so a
``stop()`` and a ``reconcile()`` in flight at the same time run one after
the other instead of interleaving at their awaits.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Protocol

from PyQt6.QtCore import QObject, QTimer, pyqtSignal

from ..backend.base import RunningTimer, TimerBackend
from .errors import (
    AlreadyRunning, BackendUnavailable, EngineDisposed, NotRunning, PersistenceFailure,
)

log = logging.getLogger(__name__)


# ── constants ─────────────────────────────────────────────────────────────

DISCREPANCY_TOLERANCE_HOURS = 0.1
TICK_INTERVAL_MS = 1000
SNAPSHOT_KEY = "timer_snapshot"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_millis(value: datetime) -> int:
    return round(value.timestamp() * 1000)


def _from_millis(millis: int) -> datetime:
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)


def _truncate_millis(value: datetime) -> datetime:
    return _from_millis(_to_millis(value))


# ── value types ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class TimesheetEntry:
    """Descriptive fields of the tracked record."""

    description: str
    project_id: int | None = None
    task_id: int | None = None
    user_id: int | None = None
    id: int | None = None


@dataclass(frozen=True)
class TimerState:
    """Immutable view of the timer.

    ``is_running`` is true exactly when ``start_time``, ``entry_id`` and
    ``entry`` are all set; a stopped state carries none of them.
    """

    is_running: bool = False
    start_time: datetime | None = None
    entry_id: int | None = None
    entry: TimesheetEntry | None = None

    def __post_init__(self) -> None:
        fields_set = (
            self.start_time is not None,
            self.entry_id is not None,
            self.entry is not None,
        )
        if self.is_running and not all(fields_set):
            raise ValueError("A running timer needs start_time, entry_id and entry")
        if not self.is_running and any(fields_set):
            raise ValueError("A stopped timer carries no start_time, entry_id or entry")

    @classmethod
    def stopped(cls) -> "TimerState":
        return cls()

    @classmethod
    def running(
        cls, entry_id: int, start_time: datetime, entry: TimesheetEntry
    ) -> "TimerState":
        return cls(True, start_time, entry_id, entry)


@dataclass(frozen=True)
class PersistedSnapshot:
    """What survives a restart: enough to rebuild RUNNING without the server
    having to tell us when the user pressed start."""

    entry_id: int
    start_time_ms: int
    project_id: int | None = None
    task_id: int | None = None
    description: str = ""

    @classmethod
    def from_state(cls, state: TimerState) -> "PersistedSnapshot":
        return cls(
            entry_id=state.entry_id,
            start_time_ms=_to_millis(state.start_time),
            project_id=state.entry.project_id,
            task_id=state.entry.task_id,
            description=state.entry.description,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PersistedSnapshot":
        return cls(
            entry_id=int(data["entry_id"]),
            start_time_ms=int(data["start_time_ms"]),
            project_id=data.get("project_id"),
            task_id=data.get("task_id"),
            description=data.get("description") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "start_time_ms": self.start_time_ms,
            "project_id": self.project_id,
            "task_id": self.task_id,
            "description": self.description,
        }

    @property
    def start_time(self) -> datetime:
        return _from_millis(self.start_time_ms)


@dataclass(frozen=True)
class StopResult:
    """Outcome of ``stop()``.

    ``duration_hours`` is what the server booked; ``elapsed_hours`` is what
    was measured locally.  ``note`` is set when they differ by more than
    the tolerance (server minimum duration or rounding).
    """

    entry_id: int
    description: str
    duration_hours: float
    elapsed_hours: float
    note: str | None = None

    @property
    def summary(self) -> str:
        message = (
            f"Timer stopped: {self.description or 'Timer'} "
            f"({self.duration_hours:.2f} hours)"
        )
        if self.note:
            message += f"\n{self.note}"
        return message


class LoadStatus(Enum):
    RESTORED = "restored"
    NOTHING_TO_RESTORE = "nothing_to_restore"
    FAILED = "failed"


@dataclass(frozen=True)
class LoadResult:
    status: LoadStatus
    reason: str | None = None

    @property
    def restored(self) -> bool:
        return self.status is LoadStatus.RESTORED


class StateStore(Protocol):
    """Workspace-scoped persistence, e.g. ``WorkspaceStateStore``."""

    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


# ── engine ────────────────────────────────────────────────────────────────


class TimerEngine(QObject):
    """Owns the one timer of the process and keeps it in line with the
    server.

    Signals
    -------
    state_changed(state: TimerState)
        Emitted after every transition, every reconcile, and every tick
        while running.  Callbacks registered with ``subscribe()`` run
        first; one that raises is logged and skipped.
    timer_stopped(result: StopResult)
        Emitted after ``stop()`` completes.
    backend_failed(message: str)
        Emitted when ``reconcile()`` or ``load()`` swallows a backend
        failure.
    """

    state_changed = pyqtSignal(object)
    timer_stopped = pyqtSignal(object)
    backend_failed = pyqtSignal(str)

    def __init__(
        self,
        backend: TimerBackend,
        store: StateStore | None = None,
        parent: QObject | None = None,
        *,
        owner_id: int | None = None,
        clock: Callable[[], datetime] | None = None,
        tick_interval_ms: int = TICK_INTERVAL_MS,
        discrepancy_tolerance: float = DISCREPANCY_TOLERANCE_HOURS,
    ) -> None:
        super().__init__(parent)

        self._backend = backend
        self._store = store
        self._owner_id = owner_id
        self._clock: Callable[[], datetime] = clock or _utcnow
        self._tolerance = discrepancy_tolerance

        self._state: TimerState = TimerState.stopped()
        self._subscribers: list[Callable[[TimerState], None]] = []
        self._gate = asyncio.Lock()
        self._disposed = False

        self._qt_timer = QTimer(self)
        self._qt_timer.setInterval(tick_interval_ms)
        self._qt_timer.timeout.connect(self._on_tick)

    # ══════════════════════════════════════════════════════════════════
    #  OBSERVERS
    # ══════════════════════════════════════════════════════════════════

    def subscribe(self, callback: Callable[[TimerState], None]) -> Callable[[], None]:
        """Call ``callback(state)`` on every publish.  Returns an
        unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def get_state(self) -> TimerState:
        return self._state

    @property
    def state(self) -> TimerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state.is_running

    @property
    def tick_active(self) -> bool:
        return self._qt_timer.isActive()

    def elapsed_hours(self) -> float:
        """Hours since ``start_time``, computed from the clock each call."""
        if not self._state.is_running:
            return 0.0
        elapsed = self._clock() - self._state.start_time
        return max(0.0, elapsed.total_seconds() / 3600)

    def format_elapsed(self) -> str:
        total = int(self.elapsed_hours() * 3600)
        h, rest = divmod(total, 3600)
        m, s = divmod(rest, 60)
        if h > 0:
            return f"{h}h {m}m {s}s"
        if m > 0:
            return f"{m}m {s}s"
        return f"{s}s"

    # ══════════════════════════════════════════════════════════════════
    #  OPERATIONS
    # ══════════════════════════════════════════════════════════════════

    async def start(
        self,
        description: str,
        project_id: int | None,
        task_id: int | None = None,
    ) -> TimerState:
        """Create a remote record, start its timer, and track it.

        Raises ``AlreadyRunning`` when a timer is tracked and
        ``BackendUnavailable`` when either remote call fails.  If the
        record was created but its timer could not be started, the record
        stays on the server untracked (logged).
        """
        async with self._gate:
            self._ensure_alive()
            if self._state.is_running:
                raise AlreadyRunning(self._state.entry_id)

            entry_id = await self._call_backend(
                "create record",
                self._backend.create_record(
                    description, project_id, task_id, self._owner_id
                ),
            )
            try:
                started = await self._call_backend(
                    "start timer", self._backend.start_timer(entry_id)
                )
                if started is False:
                    raise BackendUnavailable("start timer")
            except BackendUnavailable:
                log.warning(
                    "Record %s was created but its timer did not start; "
                    "it is left on the server untracked", entry_id,
                )
                raise

            entry = TimesheetEntry(
                description=description,
                project_id=project_id,
                task_id=task_id,
                user_id=self._owner_id,
                id=entry_id,
            )
            self._enter_running(entry_id, _truncate_millis(self._clock()), entry)
            log.info("Started timer on entry %s (%r)", entry_id, description)
            self._publish()
            return self._state

    async def stop(self) -> StopResult:
        """Stop the server timer and read back what it booked.

        Raises ``NotRunning`` when nothing is tracked and
        ``BackendUnavailable`` when the stop or the read-back fails; in
        both cases the local state is unchanged.
        """
        async with self._gate:
            self._ensure_alive()
            if not self._state.is_running:
                raise NotRunning()

            entry_id = self._state.entry_id
            await self._call_backend(
                "stop timer", self._backend.stop_timer(entry_id, False)
            )
            record = await self._call_backend(
                "read record", self._backend.read_record(entry_id)
            )

            elapsed = self.elapsed_hours()
            duration = record.accumulated_hours or 0.0
            note = None
            if duration > 0 and elapsed > 0 and abs(duration - elapsed) > self._tolerance:
                note = (
                    f"Note: server minimum duration or rounding applied "
                    f"(actual: {elapsed:.2f}h)"
                )
            result = StopResult(
                entry_id=entry_id,
                description=self._state.entry.description,
                duration_hours=duration,
                elapsed_hours=elapsed,
                note=note,
            )

            self._enter_stopped()
            log.info(
                "Stopped timer on entry %s: %.2fh booked, %.2fh measured",
                entry_id, duration, elapsed,
            )
            self._publish()
            self.timer_stopped.emit(result)
            return result

    async def reconcile(self) -> bool:
        """Make local state match the server's running timer.

        Always publishes once on success, even when nothing changed.
        Returns ``False`` if the server could not be asked; the state is
        then left exactly as it was.
        """
        async with self._gate:
            self._ensure_alive()
            try:
                running = await self._call_backend(
                    "query running timer", self._backend.query_running_timer()
                )
            except BackendUnavailable as exc:
                log.warning("Reconcile skipped: %s", exc)
                self.backend_failed.emit(str(exc))
                return False

            if running is not None:
                self._enter_running(
                    running.record_id,
                    self._start_time_from(running),
                    TimesheetEntry(
                        description=running.description,
                        project_id=running.project_id,
                        task_id=running.task_id,
                        user_id=self._owner_id,
                        id=running.record_id,
                    ),
                )
                log.info("Reconciled: entry %s is running", running.record_id)
            elif self._state.is_running:
                log.info(
                    "Reconciled: entry %s no longer running on the server",
                    self._state.entry_id,
                )
                self._enter_stopped()

            self._publish()
            return True

    async def load(self) -> LoadResult:
        """Restore RUNNING from the workspace snapshot after a restart.

        The snapshot is used only if the server reports the same entry as
        running; its start time is then kept as persisted.  A snapshot that
        cannot be confirmed is deleted and ``FAILED`` is returned, so the
        caller can fall back to ``reconcile()``.
        """
        async with self._gate:
            self._ensure_alive()
            if self._state.is_running:
                return LoadResult(LoadStatus.NOTHING_TO_RESTORE, "timer already tracked")

            snapshot = self._read_snapshot()
            if snapshot is None:
                return LoadResult(LoadStatus.NOTHING_TO_RESTORE)

            try:
                running = await self._call_backend(
                    "query running timer", self._backend.query_running_timer()
                )
            except BackendUnavailable as exc:
                log.warning("Could not confirm snapshot: %s", exc)
                self.backend_failed.emit(str(exc))
                self._clear_snapshot()
                return LoadResult(LoadStatus.FAILED, str(exc))

            if running is None or running.record_id != snapshot.entry_id:
                reason = f"entry {snapshot.entry_id} is no longer running on the server"
                log.info("Discarding snapshot: %s", reason)
                self._clear_snapshot()
                return LoadResult(LoadStatus.FAILED, reason)

            entry = TimesheetEntry(
                description=snapshot.description,
                project_id=snapshot.project_id,
                task_id=snapshot.task_id,
                user_id=self._owner_id,
                id=snapshot.entry_id,
            )
            self._enter_running(snapshot.entry_id, snapshot.start_time, entry)
            log.info("Restored timer on entry %s", snapshot.entry_id)
            self._publish()
            return LoadResult(LoadStatus.RESTORED)

    def dispose(self) -> None:
        """Stop ticking and drop every subscriber.

        Operations still waiting on the backend finish their state change
        but no longer tick or publish; new operations raise
        ``EngineDisposed``.
        """
        self._disposed = True
        self._qt_timer.stop()
        self._subscribers.clear()

    # ══════════════════════════════════════════════════════════════════
    #  INTERNAL — state transitions
    # ══════════════════════════════════════════════════════════════════

    def _enter_running(
        self, entry_id: int, start_time: datetime, entry: TimesheetEntry
    ) -> None:
        self._state = TimerState.running(entry_id, start_time, entry)
        self._write_snapshot()
        self._qt_timer.stop()
        if not self._disposed:
            self._qt_timer.start()

    def _enter_stopped(self) -> None:
        self._qt_timer.stop()
        self._state = TimerState.stopped()
        self._clear_snapshot()

    def _start_time_from(self, running: RunningTimer) -> datetime:
        # The server counts from the record's first start; hours already
        # booked on the record are not part of this run.
        seconds = running.elapsed_seconds - running.accumulated_hours * 3600
        return _truncate_millis(self._clock() - timedelta(seconds=seconds))

    def _on_tick(self) -> None:
        if self._disposed or not self._state.is_running:
            self._qt_timer.stop()
            log.debug("Tick after stop; timer cancelled")
            return
        self._publish()

    def _publish(self) -> None:
        if self._disposed:
            return
        state = self._state
        for callback in list(self._subscribers):
            try:
                callback(state)
            except Exception:
                log.exception("Subscriber %r failed", callback)
        self.state_changed.emit(state)

    def _ensure_alive(self) -> None:
        if self._disposed:
            raise EngineDisposed()

    async def _call_backend(self, action: str, call: Awaitable[Any]) -> Any:
        try:
            return await call
        except Exception as exc:
            raise BackendUnavailable(action, exc) from exc

    # ══════════════════════════════════════════════════════════════════
    #  INTERNAL — workspace snapshot
    # ══════════════════════════════════════════════════════════════════

    def _read_snapshot(self) -> PersistedSnapshot | None:
        if self._store is None:
            return None
        try:
            data = self._store.get(SNAPSHOT_KEY)
        except PersistenceFailure as exc:
            log.warning("Discarding unreadable timer snapshot: %s", exc)
            self._clear_snapshot()
            return None
        if data is None:
            return None
        try:
            return PersistedSnapshot.from_dict(data)
        except (KeyError, TypeError, ValueError):
            log.warning("Discarding malformed timer snapshot: %r", data)
            self._clear_snapshot()
            return None

    def _write_snapshot(self) -> None:
        if self._store is None:
            return
        try:
            self._store.set(SNAPSHOT_KEY, PersistedSnapshot.from_state(self._state).to_dict())
        except PersistenceFailure as exc:
            log.warning("Could not save timer snapshot: %s", exc)

    def _clear_snapshot(self) -> None:
        if self._store is None:
            return
        try:
            self._store.delete(SNAPSHOT_KEY)
        except PersistenceFailure as exc:
            log.warning("Could not clear timer snapshot: %s", exc)
