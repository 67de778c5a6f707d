# tests/test_dates_and_views.py

from __future__ import annotations

import pytest

from daily_planner.core.errors import ValidationError
from daily_planner.tasks.dates import add_days, format_display_date, parse_iso_date, quick_dates, week_strip
from daily_planner.tasks.task_models import Task, TaskFilter, ViewState
from daily_planner.tasks.views import grouped_by_date, remaining_count


def _task(tid: int, date: str, *, completed: bool = False, created: str = "2026-02-05T10:00:00Z") -> Task:
    return Task(id=tid, text=f"t{tid}", date=date, created_at=created, completed=completed)


def test_add_days_rolls_over_month_year_and_leap_day() -> None:
    assert add_days("2026-01-30", 3) == "2026-02-02"
    assert add_days("2024-02-28", 1) == "2024-02-29"
    assert add_days("2025-12-31", 1) == "2026-01-01"
    assert add_days("2026-03-01", -1) == "2026-02-28"


def test_week_strip_is_seven_consecutive_days() -> None:
    strip = week_strip("2026-12-28")
    assert strip == [
        "2026-12-28",
        "2026-12-29",
        "2026-12-30",
        "2026-12-31",
        "2027-01-01",
        "2027-01-02",
        "2027-01-03",
    ]


@pytest.mark.parametrize("raw", ["2026-02-30", "2026-2-5", "20260205", "", "tomorrow"])
def test_parse_iso_date_rejects_bad_input(raw: str) -> None:
    with pytest.raises(ValidationError):
        parse_iso_date(raw)


def test_display_helpers() -> None:
    assert format_display_date("2026-02-05") == "Thu, Feb 5"
    assert quick_dates("2026-02-05") == [
        ("Today", "2026-02-05"),
        ("Tomorrow", "2026-02-06"),
        ("+1 Week", "2026-02-12"),
    ]


def test_remaining_count_scenario() -> None:
    tasks = [
        _task(1, "2026-02-05"),
        _task(2, "2026-02-05", completed=True),
        _task(3, "2026-02-05"),
        _task(4, "2026-02-06"),
    ]
    assert remaining_count(tasks, "2026-02-05") == 2
    assert remaining_count(tasks, "2026-02-07") == 0


def test_grouped_by_date_partitions_every_task_once() -> None:
    tasks = [
        _task(1, "2026-02-05", created="2026-02-05T09:00:00Z"),
        _task(2, "2026-02-07"),
        _task(3, "2026-02-05", created="2026-02-05T11:00:00Z", completed=True),
        _task(4, "2026-02-06"),
    ]
    groups = grouped_by_date(tasks)

    assert [g.date for g in groups] == ["2026-02-07", "2026-02-06", "2026-02-05"]
    members = [t.id for g in groups for t in g.items]
    assert sorted(members) == [1, 2, 3, 4]
    for g in groups:
        assert all(t.date == g.date for t in g.items)

    feb5 = groups[-1]
    assert [t.id for t in feb5.items] == [3, 1]  # newest first
    assert (feb5.completed_count, feb5.total) == (1, 2)

    ascending = grouped_by_date(tasks, newest_first=False)
    assert [g.date for g in ascending] == ["2026-02-05", "2026-02-06", "2026-02-07"]


def test_grouped_by_date_applies_filter_to_members() -> None:
    tasks = [
        _task(1, "2026-02-05"),
        _task(2, "2026-02-05", completed=True),
        _task(3, "2026-02-06", completed=True),
    ]
    view = ViewState(selected_date="2026-02-05", week_anchor="2026-02-05", filter=TaskFilter.ACTIVE)
    groups = grouped_by_date(tasks, view)
    assert [g.date for g in groups] == ["2026-02-05"]
    assert [t.id for t in groups[0].items] == [1]
    assert groups[0].total == 2

    view.filter = TaskFilter.COMPLETED
    assert sorted(t.id for g in grouped_by_date(tasks, view) for t in g.items) == [2, 3]


def test_view_state_roundtrips_through_dict() -> None:
    view = ViewState(selected_date="2026-02-05", week_anchor="2026-02-01", filter=TaskFilter.ACTIVE)
    view.draft_text = "call mom"
    data = view.to_dict()
    assert data["filter"] == "active"
    assert ViewState.from_dict(data) == view
