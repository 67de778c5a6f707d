# src/daily_planner/tasks/task_models.py

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import StrEnum
from typing import Any

TaskId = int | str


class Priority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, raw: str | None) -> Priority:
        """Lenient parse for stored data: unknown values fall back to medium."""
        if not raw:
            return cls.MEDIUM
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return cls.MEDIUM

    @property
    def label(self) -> str:
        return self.value.capitalize()


class TaskFilter(StrEnum):
    ALL = "all"
    ACTIVE = "active"
    COMPLETED = "completed"

    def matches(self, task: Task) -> bool:
        if self is TaskFilter.ACTIVE:
            return not task.completed
        if self is TaskFilter.COMPLETED:
            return task.completed
        return True


@dataclass(slots=True)
class Task:
    id: TaskId
    text: str
    date: str  # YYYY-MM-DD, local calendar date
    created_at: str  # ISO-8601 timestamp, never changes after creation

    completed: bool = False
    priority: Priority = Priority.MEDIUM
    notes: str | None = None
    owner_id: str | None = None


@dataclass(slots=True)
class NewTask:
    """Task fields known before the backend assigns id/created_at."""

    text: str
    date: str
    priority: Priority = Priority.MEDIUM
    notes: str | None = None
    owner_id: str | None = None


@dataclass(slots=True)
class ViewState:
    """
    Everything the UI shows besides the tasks themselves.

    Derived views take this as an argument; nothing reads it as ambient state.
    """

    selected_date: str
    week_anchor: str
    filter: TaskFilter = TaskFilter.ALL

    draft_text: str = ""
    draft_notes: str = ""
    draft_priority: Priority = Priority.MEDIUM

    editing_id: TaskId | None = None

    def clear_draft(self) -> None:
        self.draft_text = ""
        self.draft_notes = ""

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["filter"] = self.filter.value
        data["draft_priority"] = self.draft_priority.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ViewState:
        return cls(
            selected_date=str(data["selected_date"]),
            week_anchor=str(data.get("week_anchor") or data["selected_date"]),
            filter=TaskFilter(data.get("filter", TaskFilter.ALL)),
            draft_text=str(data.get("draft_text", "")),
            draft_notes=str(data.get("draft_notes", "")),
            draft_priority=Priority.parse(data.get("draft_priority")),
            editing_id=data.get("editing_id"),
        )


@dataclass(slots=True)
class DateGroup:
    date: str
    items: list[Task] = field(default_factory=list)  # visible under the active filter
    completed_count: int = 0  # over all members, filter ignored
    total: int = 0
