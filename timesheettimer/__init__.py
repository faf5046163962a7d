"""TimesheetTimer: a single work timer bound to a remote timesheet record."""

__version__ = "0.1.0"
