"""Workspace-scoped key/value store.

Values are JSON-encoded into the ``workspace_state`` table, so they survive
a process restart but go away with ``drop_workspace``.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from ..timer.errors import PersistenceFailure
from .db import get_session
from .models import WorkspaceState

log = logging.getLogger(__name__)


class WorkspaceStateStore:
    """``get`` / ``set`` / ``delete`` for one workspace."""

    def __init__(self, workspace: str) -> None:
        self.workspace = workspace

    def get(self, key: str, default: Any = None) -> Any:
        try:
            with get_session() as db:
                row = self._row(db, key)
                if row is None:
                    return default
                raw = row.value
        except SQLAlchemyError as exc:
            raise PersistenceFailure(f"Could not read '{key}': {exc}") from exc
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise PersistenceFailure(f"Stored value for '{key}' is not JSON") from exc

    def set(self, key: str, value: Any) -> None:
        encoded = json.dumps(value)
        try:
            with get_session() as db:
                row = self._row(db, key)
                if row is None:
                    db.add(WorkspaceState(
                        workspace=self.workspace, key=key, value=encoded,
                    ))
                else:
                    row.value = encoded
                    row.updated_at = datetime.utcnow()
        except SQLAlchemyError as exc:
            raise PersistenceFailure(f"Could not write '{key}': {exc}") from exc
        log.debug("Stored %s for workspace %s", key, self.workspace)

    def delete(self, key: str) -> None:
        try:
            with get_session() as db:
                row = self._row(db, key)
                if row is not None:
                    db.delete(row)
        except SQLAlchemyError as exc:
            raise PersistenceFailure(f"Could not delete '{key}': {exc}") from exc

    def drop_workspace(self) -> int:
        """Forget every key of this workspace.  Returns the number removed."""
        try:
            with get_session() as db:
                return (
                    db.query(WorkspaceState)
                    .filter(WorkspaceState.workspace == self.workspace)
                    .delete()
                )
        except SQLAlchemyError as exc:
            raise PersistenceFailure(f"Could not drop workspace: {exc}") from exc

    def _row(self, db, key: str) -> WorkspaceState | None:
        return (
            db.query(WorkspaceState)
            .filter(
                WorkspaceState.workspace == self.workspace,
                WorkspaceState.key == key,
            )
            .first()
        )
