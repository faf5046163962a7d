"""Error taxonomy for the timer engine."""

from __future__ import annotations


class TimerError(Exception):
    """Base class for everything the engine raises."""


class AlreadyRunning(TimerError):
    """``start()`` was called while a timer is being tracked."""

    def __init__(self, entry_id: int | None = None) -> None:
        self.entry_id = entry_id
        super().__init__(f"Timer is already running (entry {entry_id})")


class NotRunning(TimerError):
    """``stop()`` was called while no timer is being tracked."""

    def __init__(self) -> None:
        super().__init__("No timer is running")


class BackendUnavailable(TimerError):
    """Any failure of a remote call, collapsed into one kind.

    ``action`` names the backend call that failed; the original exception
    is kept as ``cause`` and chained as ``__cause__``.
    """

    def __init__(self, action: str, cause: BaseException | None = None) -> None:
        self.action = action
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Backend call '{action}' failed{detail}")


class EngineDisposed(TimerError):
    """An operation was started after ``dispose()``."""

    def __init__(self) -> None:
        super().__init__("Timer engine has been disposed")


class PersistenceFailure(TimerError):
    """The workspace state store could not be read or written."""
