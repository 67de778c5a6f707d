# src/daily_planner/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..auth.session import SessionManager
from ..tasks.controller import TaskListController


@dataclass
class AppState:
    # Settings object (real Settings or a test namespace with the same attributes).
    settings: Any

    controller: TaskListController
    session: SessionManager | None = None

    # Extra resources to close on shutdown (HTTP clients).
    closeables: list[Any] = field(default_factory=list)
