# src/daily_planner/core/errors.py

"""
Error taxonomy shared by the session manager, the task controller and the backends.

Every error is terminal for the operation that raised it: nothing is retried,
and the caller (console connector) reports it once.
"""

from __future__ import annotations


class PlannerError(Exception):
    """Base class for all user-reportable planner errors."""


class ValidationError(PlannerError):
    """Locally detected bad input (empty text, short password, malformed email/date)."""


class Unauthenticated(PlannerError):
    """A mutating action was attempted without an owner identity."""


class PersistenceError(PlannerError):
    """The backend rejected a read/write or could not be reached."""


class CorruptStoreError(PersistenceError):
    """Locally stored data could not be parsed (strict mode only)."""


class DeliveryError(PlannerError):
    """An authentication email (sign-in link, password reset) could not be sent."""


class InvalidCredentials(PlannerError):
    """The identity service rejected the email/password pair."""


class InvalidSession(PlannerError):
    """The operation needs an active (e.g. recovery) session and there is none."""


class AuthServiceError(PlannerError):
    """The identity service could not be reached or failed server-side."""


class TaskNotFound(PlannerError):
    def __init__(self, task_id: object) -> None:
        super().__init__(f"No task with id {task_id}.")
        self.task_id = task_id


class RecordBusy(PlannerError):
    """Another operation on the same task is still waiting for the backend."""

    def __init__(self, task_id: object) -> None:
        super().__init__(f"Task {task_id} is still being saved; try again in a moment.")
        self.task_id = task_id
