# src/daily_planner/tasks/dates.py

"""
Calendar helpers for YYYY-MM-DD strings.

All arithmetic is done on datetime.date (pure calendar days), so month/year
rollover and leap years behave like a local wall calendar and never shift
through UTC.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta

from ..core.errors import ValidationError

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def today_iso(now: datetime | None = None) -> str:
    """Current local calendar date."""
    now = now or datetime.now()
    return now.date().isoformat()


def parse_iso_date(raw: str) -> date:
    s = (raw or "").strip()
    if not _ISO_DATE_RE.match(s):
        raise ValidationError(f"Invalid date {raw!r}; expected YYYY-MM-DD.")
    try:
        return date.fromisoformat(s)
    except ValueError as e:
        raise ValidationError(f"Invalid date {raw!r}: {e}.") from e


def is_valid_iso_date(raw: object) -> bool:
    if not isinstance(raw, str):
        return False
    try:
        parse_iso_date(raw)
    except ValidationError:
        return False
    return True


def add_days(base: str, offset: int) -> str:
    return (parse_iso_date(base) + timedelta(days=int(offset))).isoformat()


def week_strip(anchor: str, days: int = 7) -> list[str]:
    return [add_days(anchor, i) for i in range(days)]


def quick_dates(today: str) -> list[tuple[str, str]]:
    return [
        ("Today", today),
        ("Tomorrow", add_days(today, 1)),
        ("+1 Week", add_days(today, 7)),
    ]


def format_display_date(iso: str) -> str:
    """'2026-02-05' -> 'Thu, Feb 5'."""
    d = parse_iso_date(iso)
    return f"{d.strftime('%a')}, {d.strftime('%b')} {d.day}"
