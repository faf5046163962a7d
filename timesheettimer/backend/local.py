"""Timesheet backend kept in the local SQLAlchemy database.

Behaves like the timesheet server the engine is written against:

- starting a timer stops any other timer the same user has running;
- stopping books ``max(minimum, minutes)`` rounded up to a multiple of
  ``rounding`` minutes onto the record, so the booked amount can differ
  from the wall-clock time the user saw;
- the running-timer report counts seconds from the record's original
  start, i.e. it includes hours already booked on the record.
"""

from __future__ import annotations

import logging
import math
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError

from ..database.db import get_session
from ..database.models import Project, Task, TimesheetLine
from .base import BackendError, RemoteRecord, RunningTimer, TimerBackend

log = logging.getLogger(__name__)

MIN_DURATION_MINUTES = 15
ROUNDING_MINUTES = 15


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def round_minutes(minutes: float, minimum: int, rounding: int) -> float:
    """Apply the server's minimum-duration and round-up policy."""
    minutes = max(minimum, minutes)
    if rounding and math.ceil(minutes % rounding) > 0:
        minutes = math.ceil(minutes / rounding) * rounding
    return minutes


class LocalTimesheetBackend(TimerBackend):

    def __init__(
        self,
        *,
        user_id: int | None = None,
        clock: Callable[[], datetime] | None = None,
        min_duration_minutes: int = MIN_DURATION_MINUTES,
        rounding_minutes: int = ROUNDING_MINUTES,
    ) -> None:
        self.user_id = user_id
        self._clock = clock or _utcnow
        self.min_duration_minutes = min_duration_minutes
        self.rounding_minutes = rounding_minutes

    # ══════════════════════════════════════════════════════════════════
    #  TIMER BACKEND
    # ══════════════════════════════════════════════════════════════════

    async def create_record(
        self,
        description: str,
        project_id: int | None,
        task_id: int | None = None,
        owner_id: int | None = None,
    ) -> int:
        with self._db() as db:
            if project_id is not None and db.get(Project, project_id) is None:
                raise BackendError(f"Project {project_id} does not exist")
            if task_id is not None:
                task = db.get(Task, task_id)
                if task is None:
                    raise BackendError(f"Task {task_id} does not exist")
                if project_id is not None and task.project_id != project_id:
                    raise BackendError(
                        f"Task {task_id} does not belong to project {project_id}"
                    )
            line = TimesheetLine(
                description=description,
                date=self._now().date(),
                unit_amount=0.0,
                project_id=project_id,
                task_id=task_id,
                user_id=owner_id if owner_id is not None else self.user_id,
            )
            db.add(line)
            db.flush()
            record_id = line.id
        log.info("Created timesheet line %s (%r)", record_id, description)
        return record_id

    async def start_timer(self, record_id: int) -> bool:
        now = self._now()
        with self._db() as db:
            line = self._get_line(db, record_id)
            if line.timer_start is not None:
                return True
            others = (
                db.query(TimesheetLine)
                .filter(
                    TimesheetLine.timer_start.isnot(None),
                    TimesheetLine.user_id == line.user_id,
                    TimesheetLine.id != record_id,
                )
                .all()
            )
            for other in others:
                log.info("Stopping timer on line %s to start %s", other.id, record_id)
                self._book(other, now)
            line.timer_start = now.replace(tzinfo=None)
        return True

    async def stop_timer(self, record_id: int, try_to_match: bool = False) -> bool:
        with self._db() as db:
            line = self._get_line(db, record_id)
            if line.timer_start is None:
                return False
            self._book(line, self._now())
            if try_to_match:
                self._merge_into_match(db, line)
        return True

    async def read_record(self, record_id: int) -> RemoteRecord:
        with self._db() as db:
            return self._to_record(self._get_line(db, record_id))

    async def query_running_timer(self) -> RunningTimer | None:
        with self._db() as db:
            query = db.query(TimesheetLine).filter(TimesheetLine.timer_start.isnot(None))
            if self.user_id is not None:
                query = query.filter(TimesheetLine.user_id == self.user_id)
            line = query.order_by(TimesheetLine.timer_start.desc()).first()
            if line is None:
                return None
            running = (self._now() - self._aware(line.timer_start)).total_seconds()
            return RunningTimer(
                record_id=line.id,
                elapsed_seconds=running + line.unit_amount * 3600,
                accumulated_hours=line.unit_amount,
                project_id=line.project_id,
                task_id=line.task_id,
                description=line.description,
            )

    # ══════════════════════════════════════════════════════════════════
    #  CATALOGUE
    # ══════════════════════════════════════════════════════════════════

    def add_project(self, name: str, *, allow_timesheets: bool = True) -> int:
        with self._db() as db:
            project = Project(name=name, allow_timesheets=allow_timesheets)
            db.add(project)
            db.flush()
            return project.id

    def add_task(self, project_id: int, name: str, *, allow_timesheets: bool = True) -> int:
        with self._db() as db:
            if db.get(Project, project_id) is None:
                raise BackendError(f"Project {project_id} does not exist")
            task = Task(name=name, project_id=project_id, allow_timesheets=allow_timesheets)
            db.add(task)
            db.flush()
            return task.id

    def list_projects(self, limit: int = 100) -> list[tuple[int, str]]:
        """Projects that accept timesheets, as ``(id, name)`` pairs."""
        with self._db() as db:
            rows = (
                db.query(Project)
                .filter(Project.allow_timesheets.is_(True))
                .order_by(Project.name)
                .limit(limit)
                .all()
            )
            return [(p.id, p.name) for p in rows]

    def list_tasks(
        self, project_id: int | None = None, limit: int = 100
    ) -> list[tuple[int, str, int]]:
        """Tasks that accept timesheets, as ``(id, name, project_id)``."""
        with self._db() as db:
            query = db.query(Task).filter(Task.allow_timesheets.is_(True))
            if project_id is not None:
                query = query.filter(Task.project_id == project_id)
            rows = query.order_by(Task.name).limit(limit).all()
            return [(t.id, t.name, t.project_id) for t in rows]

    def today_entries(self, user_id: int | None = None) -> list[RemoteRecord]:
        today = self._now().date()
        with self._db() as db:
            query = db.query(TimesheetLine).filter(TimesheetLine.date == today)
            if user_id is not None:
                query = query.filter(TimesheetLine.user_id == user_id)
            return [self._to_record(line) for line in query.order_by(TimesheetLine.id)]

    # ══════════════════════════════════════════════════════════════════
    #  INTERNAL
    # ══════════════════════════════════════════════════════════════════

    @contextmanager
    def _db(self):
        """``get_session()`` that reports database errors as ``BackendError``."""
        try:
            with get_session() as db:
                yield db
        except SQLAlchemyError as exc:
            raise BackendError(f"Database error: {exc}") from exc

    def _now(self) -> datetime:
        return self._aware(self._clock())

    @staticmethod
    def _aware(value: datetime) -> datetime:
        # SQLite hands back naive datetimes; everything stored is UTC.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @staticmethod
    def _get_line(db, record_id: int) -> TimesheetLine:
        line = db.get(TimesheetLine, record_id)
        if line is None:
            raise BackendError(f"Timesheet line {record_id} does not exist")
        return line

    def _book(self, line: TimesheetLine, now: datetime) -> None:
        minutes = (now - self._aware(line.timer_start)).total_seconds() / 60
        booked = round_minutes(minutes, self.min_duration_minutes, self.rounding_minutes)
        line.unit_amount = (line.unit_amount or 0.0) + booked / 60
        line.timer_start = None
        log.info(
            "Booked %.0f min on line %s (%.1f min measured)", booked, line.id, minutes
        )

    @staticmethod
    def _merge_into_match(db, line: TimesheetLine) -> None:
        match = (
            db.query(TimesheetLine)
            .filter(
                TimesheetLine.id != line.id,
                TimesheetLine.date == line.date,
                TimesheetLine.description == line.description,
                TimesheetLine.project_id == line.project_id,
                TimesheetLine.task_id == line.task_id,
                TimesheetLine.user_id == line.user_id,
                TimesheetLine.timer_start.is_(None),
            )
            .order_by(TimesheetLine.id)
            .first()
        )
        if match is None:
            return
        match.unit_amount += line.unit_amount
        db.delete(line)
        log.info("Merged line %s into matching line %s", line.id, match.id)

    @staticmethod
    def _to_record(line: TimesheetLine) -> RemoteRecord:
        return RemoteRecord(
            id=line.id,
            description=line.description,
            accumulated_hours=line.unit_amount,
            project_id=line.project_id,
            task_id=line.task_id,
            user_id=line.user_id,
        )
