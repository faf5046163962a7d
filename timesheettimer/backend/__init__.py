"""Backend package."""

from .base import BackendError, RemoteRecord, RunningTimer, TimerBackend
from .local import LocalTimesheetBackend

__all__ = [
    "BackendError",
    "RemoteRecord",
    "RunningTimer",
    "TimerBackend",
    "LocalTimesheetBackend",
]
