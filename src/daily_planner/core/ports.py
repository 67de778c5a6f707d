# src/daily_planner/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The controller and the session manager depend on Protocols instead of concrete
implementations. This keeps the local/remote backends swappable and makes
testing easier.
"""

from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any, Protocol

from ..auth.auth_models import AuthListener, AuthSession, AuthUser, OtpType
from ..tasks.task_models import NewTask, Task, TaskId

Row = dict[str, Any]


class BlobStore(Protocol):
    """String-keyed blob persistence (browser localStorage equivalent)."""

    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str) -> None: ...


class RowStore(Protocol):
    """
    Generic operations over one remote table.

    Mutating calls return the row(s) as stored by the backend, never the
    locally built value. `filters` are extra column equalities every matched
    row must satisfy.
    """

    def select(
            self,
            columns: Sequence[str] | None = None,
            *,
            filters: Mapping[str, Any] | None = None,
            order_by: Sequence[tuple[str, bool]] = (),
    ) -> list[Row]: ...

    def insert(self, row: Row) -> Row: ...
    def update(self, patch: Row, *, match_id: Any, filters: Mapping[str, Any] | None = None) -> Row: ...
    def delete(self, match_ids: Iterable[Any], *, filters: Mapping[str, Any] | None = None) -> None: ...


class TaskBackend(Protocol):
    """
    What the task controller needs from persistence.

    Every method raises PersistenceError on failure and returns the
    backend-confirmed record(s) on success.
    """

    def load(self, owner_id: str | None) -> list[Task]: ...
    def insert(self, new_task: NewTask) -> Task: ...
    def update(self, task_id: TaskId, patch: dict[str, Any], *, owner_id: str | None) -> Task: ...
    def delete(self, task_ids: Sequence[TaskId], *, owner_id: str | None) -> None: ...


class IdentityService(Protocol):
    """Remote identity provider (email/password, one-time links, recovery)."""

    def sign_in_with_password(self, email: str, password: str) -> AuthSession: ...
    def sign_up(
            self,
            email: str,
            password: str,
            *,
            display_name: str | None = None,
            redirect_to: str | None = None,
    ) -> AuthSession | None: ...
    def sign_in_with_otp(self, email: str, *, redirect_to: str | None = None) -> None: ...
    def verify_otp(self, email: str, token: str, otp_type: OtpType) -> AuthSession: ...
    def reset_password_for_email(self, email: str, *, redirect_to: str | None = None) -> None: ...
    def update_password(self, new_password: str) -> AuthUser: ...
    def refresh_session(self) -> AuthSession: ...
    def sign_out(self) -> None: ...
    def get_current_user(self) -> AuthUser | None: ...
    def access_token(self) -> str | None: ...
    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]: ...
