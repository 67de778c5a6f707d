# src/daily_planner/storage/local_backend.py

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

from ..core.errors import CorruptStoreError, PersistenceError, TaskNotFound
from ..core.ports import BlobStore
from ..tasks.dates import is_valid_iso_date
from ..tasks.task_models import NewTask, Priority, Task, TaskId

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "todos-by-date-v3"

_PATCHABLE = {"text", "notes", "priority", "completed", "date"}


def _iso_timestamp(ts: float) -> str:
    dt = datetime.fromtimestamp(ts, tz=UTC)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def task_to_record(task: Task) -> dict[str, Any]:
    rec: dict[str, Any] = {
        "id": task.id,
        "text": task.text,
        "completed": task.completed,
        "date": task.date,
        "createdAt": task.created_at,
        "priority": task.priority.value,
    }
    if task.notes:
        rec["notes"] = task.notes
    if task.owner_id is not None:
        rec["ownerId"] = task.owner_id
    return rec


def record_to_task(rec: Any) -> Task | None:
    """Return None for records that break the Task invariants."""
    if not isinstance(rec, dict):
        return None
    tid = rec.get("id")
    if isinstance(tid, bool) or not isinstance(tid, (int, str)):
        return None
    text = rec.get("text")
    if not isinstance(text, str) or not text.strip():
        return None
    date = rec.get("date")
    if not is_valid_iso_date(date):
        return None
    notes = rec.get("notes")
    owner = rec.get("ownerId")
    return Task(
        id=tid,
        text=text.strip(),
        date=str(date),
        created_at=str(rec.get("createdAt") or ""),
        completed=bool(rec.get("completed", False)),
        priority=Priority.parse(rec.get("priority")),
        notes=notes if isinstance(notes, str) and notes.strip() else None,
        owner_id=owner if isinstance(owner, str) else None,
    )


class LocalTaskBackend:
    """
    Task backend over a single JSON blob.

    - the blob is read once, on first use
    - every successful mutation rewrites the whole array synchronously
    - in-memory state only moves forward after the write succeeded
    """

    def __init__(
        self,
        store: BlobStore,
        *,
        key: str = DEFAULT_STORAGE_KEY,
        strict: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._key = key
        self._strict = strict
        self._clock = clock
        self._tasks: list[Task] | None = None
        self._last_id = 0

    # ---- loading ----

    def _quarantine(self, raw: str, reason: str) -> None:
        backup_key = f"{self._key}.corrupt.{int(self._clock())}"
        if self._strict:
            raise CorruptStoreError(f"Stored tasks under {self._key!r} are unreadable ({reason}).")
        logger.warning(
            "Stored tasks under key=%s are unreadable (%s); copied to key=%s and starting empty.",
            self._key,
            reason,
            backup_key,
        )
        self._store.set(backup_key, raw)

    def _read_all(self) -> list[Task]:
        raw = self._store.get(self._key)
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            self._quarantine(raw, f"invalid JSON: {e.msg}")
            return []
        if not isinstance(data, list):
            self._quarantine(raw, f"expected a list, got {type(data).__name__}")
            return []

        out: list[Task] = []
        seen: set[TaskId] = set()
        for i, rec in enumerate(data):
            task = record_to_task(rec)
            if task is None or task.id in seen:
                logger.warning("Skipping invalid stored task #%d under key=%s", i, self._key)
                continue
            seen.add(task.id)
            out.append(task)
        return out

    def _all(self) -> list[Task]:
        if self._tasks is None:
            self._tasks = self._read_all()
            int_ids = [t.id for t in self._tasks if isinstance(t.id, int)]
            self._last_id = max(int_ids, default=0)
            logger.info("Local tasks loaded key=%s total=%d", self._key, len(self._tasks))
        return self._tasks

    def _write(self, tasks: list[Task]) -> None:
        payload = json.dumps([task_to_record(t) for t in tasks], ensure_ascii=False)
        self._store.set(self._key, payload)
        self._tasks = tasks

    def _next_id(self) -> int:
        candidate = int(self._clock() * 1000)
        if candidate <= self._last_id:
            candidate = self._last_id + 1
        self._last_id = candidate
        return candidate

    def _index_of(self, task_id: TaskId, owner_id: str | None) -> int:
        for i, t in enumerate(self._all()):
            if t.id == task_id and t.owner_id == owner_id:
                return i
        raise TaskNotFound(task_id)

    # ---- TaskBackend ----

    def load(self, owner_id: str | None) -> list[Task]:
        return [replace(t) for t in self._all() if t.owner_id == owner_id]

    def insert(self, new_task: NewTask) -> Task:
        current = self._all()
        task = Task(
            id=self._next_id(),
            text=new_task.text,
            date=new_task.date,
            created_at=_iso_timestamp(self._clock()),
            completed=False,
            priority=new_task.priority,
            notes=new_task.notes,
            owner_id=new_task.owner_id,
        )
        self._write([task, *current])
        logger.debug("Local task added id=%s date=%s", task.id, task.date)
        return replace(task)

    def update(self, task_id: TaskId, patch: dict[str, Any], *, owner_id: str | None) -> Task:
        unknown = set(patch) - _PATCHABLE
        if unknown:
            raise PersistenceError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        current = self._all()
        idx = self._index_of(task_id, owner_id)
        updated = replace(current[idx], **patch)
        tasks = list(current)
        tasks[idx] = updated
        self._write(tasks)
        logger.debug("Local task updated id=%s fields=%s", task_id, sorted(patch))
        return replace(updated)

    def delete(self, task_ids: Sequence[TaskId], *, owner_id: str | None) -> None:
        targets = set(task_ids)
        if not targets:
            return
        current = self._all()
        tasks = [t for t in current if not (t.id in targets and t.owner_id == owner_id)]
        self._write(tasks)
        logger.debug("Local tasks deleted n=%d", len(current) - len(tasks))
