# src/daily_planner/storage/remote_backend.py

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from ..core.errors import PersistenceError, Unauthenticated
from ..core.ports import Row, RowStore
from ..tasks.task_models import NewTask, Priority, Task, TaskId

logger = logging.getLogger(__name__)

COLUMNS = ("id", "user_id", "text", "completed", "date", "created_at", "priority", "notes")

_FIELD_TO_COLUMN = {
    "text": "text",
    "notes": "notes",
    "priority": "priority",
    "completed": "completed",
    "date": "date",
}


def row_to_task(row: Row) -> Task:
    try:
        return Task(
            id=row["id"],
            text=str(row["text"]),
            date=str(row["date"]),
            created_at=str(row.get("created_at") or ""),
            completed=bool(row.get("completed", False)),
            priority=Priority.parse(row.get("priority")),
            notes=row.get("notes") or None,
            owner_id=row.get("user_id"),
        )
    except KeyError as e:
        raise PersistenceError(f"Task row is missing column {e.args[0]!r}.") from e


class RemoteTaskBackend:
    """Task backend over a remote row store, scoped to the signed-in owner."""

    def __init__(self, rows: RowStore) -> None:
        self._rows = rows

    @staticmethod
    def _require_owner(owner_id: str | None) -> str:
        if not owner_id:
            raise Unauthenticated("Sign in to sync tasks.")
        return owner_id

    def load(self, owner_id: str | None) -> list[Task]:
        owner = self._require_owner(owner_id)
        rows = self._rows.select(
            COLUMNS,
            filters={"user_id": owner},
            order_by=[("date", True), ("created_at", True)],
        )
        logger.info("Remote tasks loaded owner=%s total=%d", owner, len(rows))
        return [row_to_task(r) for r in rows]

    def insert(self, new_task: NewTask) -> Task:
        owner = self._require_owner(new_task.owner_id)
        row = self._rows.insert(
            {
                "user_id": owner,
                "text": new_task.text,
                "completed": False,
                "date": new_task.date,
                "priority": new_task.priority.value,
                "notes": new_task.notes,
            }
        )
        return row_to_task(row)

    def update(self, task_id: TaskId, patch: dict[str, Any], *, owner_id: str | None) -> Task:
        owner = self._require_owner(owner_id)
        body: Row = {}
        for name, value in patch.items():
            column = _FIELD_TO_COLUMN.get(name)
            if column is None:
                raise PersistenceError(f"Cannot update field {name!r}.")
            body[column] = value.value if isinstance(value, Priority) else value
        return row_to_task(self._rows.update(body, match_id=task_id, filters={"user_id": owner}))

    def delete(self, task_ids: Sequence[TaskId], *, owner_id: str | None) -> None:
        owner = self._require_owner(owner_id)
        self._rows.delete(task_ids, filters={"user_id": owner})

    def close(self) -> None:
        close = getattr(self._rows, "close", None)
        if callable(close):
            close()
