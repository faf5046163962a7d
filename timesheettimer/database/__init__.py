"""Database package."""

from .db import configure_engine, get_session, init_db
from .models import Project, Task, TimesheetLine, WorkspaceState
from .state_store import WorkspaceStateStore

__all__ = [
    "configure_engine",
    "get_session",
    "init_db",
    "Project",
    "Task",
    "TimesheetLine",
    "WorkspaceState",
    "WorkspaceStateStore",
]
