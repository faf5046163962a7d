"""Command line front end: python -m timesheettimer <command>.

Every invocation is a fresh process, so each one goes through the restart
sequence first: restore from the workspace snapshot, and if that does not
confirm a running timer, reconcile against the backend.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from PyQt6.QtCore import QCoreApplication

from .backend.base import BackendError
from .backend.local import LocalTimesheetBackend
from .database.db import init_db
from .database.state_store import WorkspaceStateStore
from .logger import setup_logging
from .settings import load_settings
from .timer.engine import TimerEngine
from .timer.errors import TimerError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="timesheettimer",
        description="Track one work timer against a timesheet record.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="show the running timer")

    start = sub.add_parser("start", help="start a timer")
    start.add_argument("description")
    start.add_argument("--project", type=int, required=True)
    start.add_argument("--task", type=int, default=None)

    sub.add_parser("stop", help="stop the running timer")

    sub.add_parser("projects", help="list projects")
    tasks = sub.add_parser("tasks", help="list tasks")
    tasks.add_argument("--project", type=int, default=None)

    add_project = sub.add_parser("add-project", help="create a project")
    add_project.add_argument("name")
    add_task = sub.add_parser("add-task", help="create a task")
    add_task.add_argument("project", type=int)
    add_task.add_argument("name")

    sub.add_parser("today", help="list today's timesheet lines")
    return parser


async def _run_timer_command(engine: TimerEngine, args) -> str:
    result = await engine.load()
    if not result.restored:
        await engine.reconcile()

    if args.command == "start":
        state = await engine.start(args.description, args.project, args.task)
        return f"Started: {state.entry.description} (entry {state.entry_id})"
    if args.command == "stop":
        return (await engine.stop()).summary

    state = engine.get_state()
    if not state.is_running:
        return "No timer running"
    return (
        f"Running: {state.entry.description or 'Timer'} "
        f"(entry {state.entry_id}) {engine.format_elapsed()}"
    )


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings()
    setup_logging(settings.log_level, console=settings.log_to_console)
    init_db()

    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    app.setApplicationName("TimesheetTimer")

    backend = LocalTimesheetBackend(
        user_id=settings.user_id,
        min_duration_minutes=settings.min_duration_minutes,
        rounding_minutes=settings.rounding_minutes,
    )

    try:
        if args.command == "projects":
            for project_id, name in backend.list_projects():
                print(f"{project_id:>5}  {name}")
        elif args.command == "tasks":
            for task_id, name, project_id in backend.list_tasks(args.project):
                print(f"{task_id:>5}  {name}  (project {project_id})")
        elif args.command == "add-project":
            print(backend.add_project(args.name))
        elif args.command == "add-task":
            print(backend.add_task(args.project, args.name))
        elif args.command == "today":
            for record in backend.today_entries(settings.user_id):
                print(f"{record.id:>5}  {record.accumulated_hours:5.2f}h  {record.description}")
        else:
            engine = TimerEngine(
                backend,
                WorkspaceStateStore(settings.workspace),
                owner_id=settings.user_id,
                tick_interval_ms=settings.tick_interval_ms,
                discrepancy_tolerance=settings.discrepancy_tolerance_hours,
            )
            try:
                print(asyncio.run(_run_timer_command(engine, args)))
            finally:
                engine.dispose()
    except (TimerError, BackendError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
