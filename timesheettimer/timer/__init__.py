"""Timer package."""

from .engine import (
    TimerEngine,
    TimerState,
    TimesheetEntry,
    PersistedSnapshot,
    StopResult,
    LoadResult,
    LoadStatus,
    DISCREPANCY_TOLERANCE_HOURS,
    TICK_INTERVAL_MS,
    SNAPSHOT_KEY,
)
from .errors import (
    TimerError,
    AlreadyRunning,
    NotRunning,
    EngineDisposed,
    BackendUnavailable,
    PersistenceFailure,
)

__all__ = [
    "TimerEngine",
    "TimerState",
    "TimesheetEntry",
    "PersistedSnapshot",
    "StopResult",
    "LoadResult",
    "LoadStatus",
    "DISCREPANCY_TOLERANCE_HOURS",
    "TICK_INTERVAL_MS",
    "SNAPSHOT_KEY",
    "TimerError",
    "AlreadyRunning",
    "NotRunning",
    "EngineDisposed",
    "BackendUnavailable",
    "PersistenceFailure",
]
