# src/daily_planner/tasks/controller.py

from __future__ import annotations

import contextlib
import logging
import threading
from collections.abc import Callable, Iterable, Iterator
from dataclasses import replace
from typing import Any

from ..core.errors import PersistenceError, RecordBusy, TaskNotFound, Unauthenticated, ValidationError
from ..core.ports import TaskBackend
from . import views
from .dates import add_days, parse_iso_date, today_iso
from .task_models import DateGroup, NewTask, Priority, Task, TaskFilter, TaskId, ViewState

logger = logging.getLogger(__name__)


def _parse_priority(value: Priority | str) -> Priority:
    try:
        return Priority(str(value).strip().lower())
    except ValueError as e:
        raise ValidationError(f"Unknown priority {value!r}; use low, medium or high.") from e


def _clean_notes(notes: str | None) -> str | None:
    notes = (notes or "").strip()
    return notes or None


class TaskListController:
    """
    Owns the task collection of the current owner plus the view state.

    Every mutation goes through the backend. After any failure the collection
    is either back in its pre-operation state or in the state the backend
    confirmed; an optimistic intermediate state never survives an error.

    Operations on the same task are serialized: while one is waiting for the
    backend, a second one raises RecordBusy. Different tasks do not block
    each other.
    """

    def __init__(
        self,
        backend: TaskBackend,
        *,
        require_owner: bool = False,
        today: Callable[[], str] = today_iso,
    ) -> None:
        self._backend = backend
        self._require_owner = require_owner
        self._today = today

        self._tasks: list[Task] = []
        self._owner_id: str | None = None
        self._pending: set[TaskId] = set()
        self._pending_lock = threading.Lock()

        now = today()
        self.view = ViewState(selected_date=now, week_anchor=now)

    # ---- collection access ----

    @property
    def tasks(self) -> list[Task]:
        return list(self._tasks)

    @property
    def owner_id(self) -> str | None:
        return self._owner_id

    def today(self) -> str:
        return self._today()

    def get(self, task_id: TaskId) -> Task:
        return self._tasks[self._index(task_id)]

    def _index(self, task_id: TaskId) -> int:
        for i, t in enumerate(self._tasks):
            if t.id == task_id:
                return i
        raise TaskNotFound(task_id)

    def _check_owner(self) -> None:
        if self._require_owner and not self._owner_id:
            raise Unauthenticated("Please sign in to manage your tasks.")

    @contextlib.contextmanager
    def _claim(self, task_ids: Iterable[TaskId]) -> Iterator[None]:
        ids = set(task_ids)
        with self._pending_lock:
            busy = ids & self._pending
            if busy:
                raise RecordBusy(next(iter(busy)))
            self._pending |= ids
        try:
            yield
        finally:
            with self._pending_lock:
                self._pending -= ids

    def is_pending(self, task_id: TaskId) -> bool:
        return task_id in self._pending

    # ---- session wiring ----

    def set_owner(self, owner_id: str | None) -> None:
        """
        Switch to another owner's collection.

        Signing out (owner None with owner required) discards the collection
        without touching the backend.
        """
        self._owner_id = owner_id
        self._tasks = []
        self.view.editing_id = None
        self.view.clear_draft()
        if self._require_owner and owner_id is None:
            logger.info("Signed out; task list cleared.")
            return
        self.load()

    def load(self) -> list[Task]:
        self._check_owner()
        loaded = self._backend.load(self._owner_id)
        self._tasks = list(loaded)
        logger.info("Loaded %d task(s) owner=%s", len(self._tasks), self._owner_id)
        return self.tasks

    # ---- mutations ----

    def add(
        self,
        text: str | None = None,
        date: str | None = None,
        priority: Priority | str | None = None,
        notes: str | None = None,
    ) -> Task | None:
        """
        Create a task.

        Arguments left as None come from the draft fields / selected date.
        Empty text is a silent no-op (returns None).
        """
        text = (self.view.draft_text if text is None else text).strip()
        if not text:
            return None
        self._check_owner()

        date = parse_iso_date(date or self.view.selected_date or self._today()).isoformat()
        prio = _parse_priority(priority) if priority is not None else self.view.draft_priority
        notes = self.view.draft_notes if notes is None else notes

        created = self._backend.insert(
            NewTask(
                text=text,
                date=date,
                priority=prio,
                notes=_clean_notes(notes),
                owner_id=self._owner_id,
            )
        )
        self._tasks.insert(0, created)
        self.view.clear_draft()
        logger.debug("Task added id=%s date=%s", created.id, created.date)
        return created

    def _patch(self, task_id: TaskId, patch: dict[str, Any]) -> Task:
        """Optimistic single-record update with restore on failure."""
        self._check_owner()
        with self._claim([task_id]):
            idx = self._index(task_id)
            before = self._tasks[idx]
            self._tasks[idx] = replace(before, **patch)
            try:
                confirmed = self._backend.update(task_id, patch, owner_id=self._owner_id)
            except Exception:
                self._tasks[self._index(task_id)] = before
                logger.info("Update failed id=%s fields=%s; restored.", task_id, sorted(patch))
                raise
            self._tasks[self._index(task_id)] = confirmed
            return confirmed

    def toggle_complete(self, task_id: TaskId) -> Task:
        current = self.get(task_id)
        return self._patch(task_id, {"completed": not current.completed})

    def move(self, task_id: TaskId, new_date: str) -> Task:
        new_date = parse_iso_date(new_date).isoformat()
        self.get(task_id)
        return self._patch(task_id, {"date": new_date})

    def begin_edit(self, task_id: TaskId) -> Task:
        task = self.get(task_id)
        self.view.editing_id = task_id
        return task

    def cancel_edit(self) -> None:
        self.view.editing_id = None

    def edit(
        self,
        task_id: TaskId,
        text: str,
        notes: str | None = None,
        priority: Priority | str | None = None,
    ) -> Task:
        text = (text or "").strip()
        if not text:
            raise ValidationError("Task text cannot be empty.")
        self._check_owner()
        current = self.get(task_id)
        patch: dict[str, Any] = {
            "text": text,
            "notes": _clean_notes(notes),
            "priority": _parse_priority(priority) if priority is not None else current.priority,
        }
        with self._claim([task_id]):
            try:
                confirmed = self._backend.update(task_id, patch, owner_id=self._owner_id)
            except PersistenceError:
                logger.info("Edit failed id=%s; keeping previous values.", task_id)
                raise
            self._tasks[self._index(task_id)] = confirmed
        if self.view.editing_id == task_id:
            self.view.editing_id = None
        return confirmed

    def remove(self, task_id: TaskId) -> None:
        self._check_owner()
        with self._claim([task_id]):
            idx = self._index(task_id)
            removed = self._tasks.pop(idx)
            try:
                self._backend.delete([task_id], owner_id=self._owner_id)
            except Exception:
                self._tasks.insert(min(idx, len(self._tasks)), removed)
                logger.info("Delete failed id=%s; reinstated.", task_id)
                raise
        if self.view.editing_id == task_id:
            self.view.editing_id = None

    def clear_completed(self) -> int:
        """Delete every completed task in one backend call. Returns how many."""
        self._check_owner()
        ids = [t.id for t in self._tasks if t.completed]
        if not ids:
            return 0
        with self._claim(ids):
            snapshot = list(self._tasks)
            done = set(ids)
            self._tasks = [t for t in self._tasks if t.id not in done]
            try:
                self._backend.delete(ids, owner_id=self._owner_id)
            except Exception:
                self._tasks = snapshot
                logger.info("Clear completed failed (n=%d); reinstated.", len(ids))
                raise
        logger.debug("Cleared %d completed task(s)", len(ids))
        return len(ids)

    # ---- view state ----

    def select_date(self, iso: str | None) -> str:
        iso = parse_iso_date((iso or "").strip() or self._today()).isoformat()
        self.view.selected_date = iso
        return iso

    def set_filter(self, value: TaskFilter | str) -> TaskFilter:
        try:
            self.view.filter = TaskFilter(value)
        except ValueError as e:
            raise ValidationError(f"Unknown filter {value!r}; use all, active or completed.") from e
        return self.view.filter

    def set_draft(
        self,
        *,
        text: str | None = None,
        notes: str | None = None,
        priority: Priority | str | None = None,
    ) -> None:
        if text is not None:
            self.view.draft_text = text
        if notes is not None:
            self.view.draft_notes = notes
        if priority is not None:
            self.view.draft_priority = _parse_priority(priority)

    def shift_week(self, weeks: int) -> list[str]:
        self.view.week_anchor = add_days(self.view.week_anchor, 7 * int(weeks))
        return self.week_strip()

    # ---- derived views ----

    def remaining_count(self, selected_date: str | None = None) -> int:
        return views.remaining_count(self._tasks, selected_date or self.view.selected_date)

    def grouped_by_date(self) -> list[DateGroup]:
        return views.grouped_by_date(self._tasks, self.view)

    def week_strip(self, anchor: str | None = None) -> list[str]:
        return views.week_strip(anchor or self.view.week_anchor)

    def has_completed(self) -> bool:
        return views.has_completed(self._tasks)
