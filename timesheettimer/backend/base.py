"""Abstract remote timer backend.

The engine only needs five operations from whatever keeps the timesheet
records.  All of them are coroutines and all of them may raise; the engine
treats every exception the same way.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


class BackendError(Exception):
    """Raised by backends for network, auth, or record errors."""


@dataclass(frozen=True)
class RemoteRecord:
    """A timesheet record as read back from the backend."""

    id: int
    description: str
    accumulated_hours: float = 0.0
    project_id: int | None = None
    task_id: int | None = None
    user_id: int | None = None


@dataclass(frozen=True)
class RunningTimer:
    """The backend's report of the timer currently running, if any.

    ``elapsed_seconds`` counts from the record's original start and so
    includes ``accumulated_hours`` already booked on the record.
    """

    record_id: int
    elapsed_seconds: float
    accumulated_hours: float = 0.0
    project_id: int | None = None
    task_id: int | None = None
    description: str = ""


class TimerBackend(ABC):
    """Capability the engine uses to talk to the timesheet server."""

    @abstractmethod
    async def create_record(
        self,
        description: str,
        project_id: int | None,
        task_id: int | None = None,
        owner_id: int | None = None,
    ) -> int:
        """Create a record with zero duration and return its id."""

    @abstractmethod
    async def start_timer(self, record_id: int) -> bool:
        ...

    @abstractmethod
    async def stop_timer(self, record_id: int, try_to_match: bool = False) -> bool:
        ...

    @abstractmethod
    async def read_record(self, record_id: int) -> RemoteRecord:
        ...

    @abstractmethod
    async def query_running_timer(self) -> RunningTimer | None:
        """Return the server's running timer, independent of local state."""
