# src/daily_planner/auth/auth_models.py

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class AuthChangeEvent(StrEnum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    PASSWORD_RECOVERY = "PASSWORD_RECOVERY"
    USER_UPDATED = "USER_UPDATED"


class SessionState(StrEnum):
    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    ERROR = "error"


class OtpType(StrEnum):
    MAGIC_LINK = "magiclink"
    RECOVERY = "recovery"
    SIGNUP = "signup"
    EMAIL = "email"


@dataclass(slots=True)
class AuthUser:
    id: str
    email: str | None = None
    display_name: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class AuthSession:
    access_token: str
    user: AuthUser
    refresh_token: str | None = None
    expires_at: float | None = None


AuthListener = Callable[[AuthChangeEvent, AuthSession | None], None]
