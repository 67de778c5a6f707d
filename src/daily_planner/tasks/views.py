# src/daily_planner/tasks/views.py

"""
Derived views over the task collection.

Pure functions of (tasks, view state). The controller never caches their
results; callers recompute them after every change.
"""

from __future__ import annotations

from collections.abc import Iterable

from .dates import week_strip as _week_strip
from .task_models import DateGroup, Task, TaskFilter, ViewState


def remaining_count(tasks: Iterable[Task], selected_date: str) -> int:
    return sum(1 for t in tasks if t.date == selected_date and not t.completed)


def has_completed(tasks: Iterable[Task]) -> bool:
    return any(t.completed for t in tasks)


def grouped_by_date(
    tasks: Iterable[Task],
    view: ViewState | None = None,
    *,
    newest_first: bool = True,
) -> list[DateGroup]:
    """
    Partition tasks by their date.

    - groups are ordered by date (newest first by default)
    - inside a group tasks are ordered by created_at, newest first
    - the active filter narrows each group's visible items; counts stay over
      all members, and a group left with no visible items is dropped
    """
    flt = view.filter if view is not None else TaskFilter.ALL

    by_date: dict[str, list[Task]] = {}
    for t in tasks:
        by_date.setdefault(t.date, []).append(t)

    groups: list[DateGroup] = []
    for d in sorted(by_date, reverse=newest_first):
        members = by_date[d]
        visible = sorted(
            (t for t in members if flt.matches(t)),
            key=lambda t: t.created_at,
            reverse=True,
        )
        if not visible and flt is not TaskFilter.ALL:
            continue
        groups.append(
            DateGroup(
                date=d,
                items=visible,
                completed_count=sum(1 for t in members if t.completed),
                total=len(members),
            )
        )
    return groups


def week_strip(anchor: str) -> list[str]:
    """The 7 consecutive calendar dates starting at anchor."""
    return _week_strip(anchor, 7)
