"""SQLAlchemy ORM models for TimesheetTimer."""

from datetime import datetime, date
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Date, Float, Text,
    ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class Project(Base):
    """A project timesheet lines can be booked against."""

    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    allow_timesheets = Column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Project id={self.id} name={self.name!r}>"


class Task(Base):
    """A task inside a project."""

    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False)
    allow_timesheets = Column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Task id={self.id} project={self.project_id} name={self.name!r}>"


class TimesheetLine(Base):
    """One timesheet record.  ``timer_start`` is set while its timer runs."""

    __tablename__ = "timesheet_lines"

    id = Column(Integer, primary_key=True, autoincrement=True)
    description = Column(String(255), nullable=False, default="")
    date = Column(Date, nullable=False, default=date.today)
    unit_amount = Column(Float, nullable=False, default=0.0)  # hours
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=True)
    user_id = Column(Integer, nullable=True)
    timer_start = Column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<TimesheetLine id={self.id} hours={self.unit_amount} "
            f"running={self.timer_start is not None}>"
        )


class WorkspaceState(Base):
    """Key/value pairs scoped to a workspace (JSON-encoded values)."""

    __tablename__ = "workspace_state"
    __table_args__ = (UniqueConstraint("workspace", "key"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    workspace = Column(String(512), nullable=False)
    key = Column(String(128), nullable=False)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<WorkspaceState workspace={self.workspace!r} key={self.key!r}>"
