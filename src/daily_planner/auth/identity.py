# src/daily_planner/auth/identity.py

"""
Identity service adapters.

- SupabaseIdentityService: GoTrue REST API (`/auth/v1`) over httpx
- DevIdentityService: development bypass, accepts any well-formed credentials

Both keep the current session in memory and notify subscribers on every
session transition (sign-in, refresh, recovery, sign-out).
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from typing import Any

import httpx

from .auth_models import AuthChangeEvent, AuthListener, AuthSession, AuthUser, OtpType

logger = logging.getLogger(__name__)


class IdentityRejected(Exception):
    """The identity service answered with a 4xx (bad credentials, bad token, ...)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class IdentityUnavailable(Exception):
    """The identity service could not be reached or failed server-side."""


class _SessionHolder:
    """Current-session bookkeeping + auth state listeners."""

    def __init__(self) -> None:
        self._session: AuthSession | None = None
        self._listeners: list[AuthListener] = []

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _emit(self, event: AuthChangeEvent, session: AuthSession | None) -> None:
        logger.debug("Auth event %s user=%s", event, session.user.id if session else None)
        for listener in list(self._listeners):
            try:
                listener(event, session)
            except Exception:
                logger.exception("Auth state listener failed on %s", event)

    def _set_session(self, session: AuthSession | None, event: AuthChangeEvent) -> None:
        self._session = session
        self._emit(event, session)

    def get_current_user(self) -> AuthUser | None:
        return self._session.user if self._session else None

    def access_token(self) -> str | None:
        return self._session.access_token if self._session else None


def _user_from_json(data: dict[str, Any]) -> AuthUser:
    meta = data.get("user_metadata") or {}
    return AuthUser(
        id=str(data["id"]),
        email=data.get("email"),
        display_name=meta.get("display_name") if isinstance(meta, dict) else None,
        metadata=meta if isinstance(meta, dict) else {},
    )


def _session_from_json(data: dict[str, Any]) -> AuthSession:
    expires_at = data.get("expires_at")
    if expires_at is None and data.get("expires_in") is not None:
        expires_at = time.time() + float(data["expires_in"])
    return AuthSession(
        access_token=str(data["access_token"]),
        refresh_token=data.get("refresh_token"),
        expires_at=float(expires_at) if expires_at is not None else None,
        user=_user_from_json(data["user"]),
    )


class SupabaseIdentityService(_SessionHolder):
    def __init__(
        self,
        *,
        base_url: str,
        anon_key: str,
        timeout: httpx.Timeout | float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        super().__init__()
        if not base_url.strip():
            raise ValueError("Supabase URL is not set. Set PLANNER_SUPABASE_URL in your .env.")
        if not anon_key.strip():
            raise ValueError("Supabase anon key is not set. Set PLANNER_SUPABASE_ANON_KEY in your .env.")
        self._anon_key = anon_key
        self._client = client or httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout)

    def close(self) -> None:
        self._client.close()

    # ---- low-level helpers ----

    def _call(
        self,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
        token: str | None = None,
    ) -> dict[str, Any]:
        headers = {
            "apikey": self._anon_key,
            "Authorization": f"Bearer {token or self._anon_key}",
        }
        try:
            resp = self._client.request(
                method, f"/auth/v1/{path}", json=json_body, params=params, headers=headers
            )
        except httpx.TransportError as e:
            raise IdentityUnavailable(f"Identity service unreachable ({e.__class__.__name__}).") from e

        body: Any
        try:
            body = resp.json() if resp.content else {}
        except ValueError:
            body = {"msg": resp.text}

        if resp.status_code >= 500:
            raise IdentityUnavailable(f"Identity service error ({resp.status_code}).")
        if resp.is_error:
            msg = "Request rejected."
            if isinstance(body, dict):
                msg = str(
                    body.get("error_description") or body.get("msg") or body.get("message") or body.get("error") or msg
                )
            raise IdentityRejected(msg, resp.status_code)
        return body if isinstance(body, dict) else {}

    # ---- IdentityService ----

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        data = self._call(
            "POST", "token", params={"grant_type": "password"}, json_body={"email": email, "password": password}
        )
        session = _session_from_json(data)
        self._set_session(session, AuthChangeEvent.SIGNED_IN)
        return session

    def sign_up(
        self,
        email: str,
        password: str,
        *,
        display_name: str | None = None,
        redirect_to: str | None = None,
    ) -> AuthSession | None:
        params = {"redirect_to": redirect_to} if redirect_to else None
        data = self._call(
            "POST",
            "signup",
            params=params,
            json_body={"email": email, "password": password, "data": {"display_name": display_name or ""}},
        )
        # With email confirmation enabled the service returns only the user.
        if "access_token" not in data:
            return None
        session = _session_from_json(data)
        self._set_session(session, AuthChangeEvent.SIGNED_IN)
        return session

    def sign_in_with_otp(self, email: str, *, redirect_to: str | None = None) -> None:
        params = {"redirect_to": redirect_to} if redirect_to else None
        self._call("POST", "otp", params=params, json_body={"email": email, "create_user": True})

    def verify_otp(self, email: str, token: str, otp_type: OtpType) -> AuthSession:
        data = self._call("POST", "verify", json_body={"type": otp_type.value, "email": email, "token": token})
        session = _session_from_json(data)
        event = AuthChangeEvent.PASSWORD_RECOVERY if otp_type is OtpType.RECOVERY else AuthChangeEvent.SIGNED_IN
        self._set_session(session, event)
        return session

    def reset_password_for_email(self, email: str, *, redirect_to: str | None = None) -> None:
        params = {"redirect_to": redirect_to} if redirect_to else None
        self._call("POST", "recover", params=params, json_body={"email": email})

    def update_password(self, new_password: str) -> AuthUser:
        if self._session is None:
            raise IdentityRejected("Auth session missing.", 401)
        data = self._call("PUT", "user", json_body={"password": new_password}, token=self._session.access_token)
        user = _user_from_json(data)
        self._session.user = user
        self._emit(AuthChangeEvent.USER_UPDATED, self._session)
        return user

    def refresh_session(self) -> AuthSession:
        if self._session is None or not self._session.refresh_token:
            raise IdentityRejected("No session to refresh.", 401)
        try:
            data = self._call(
                "POST",
                "token",
                params={"grant_type": "refresh_token"},
                json_body={"refresh_token": self._session.refresh_token},
            )
        except IdentityRejected:
            # Refresh token revoked/expired: the session is gone.
            self._set_session(None, AuthChangeEvent.SIGNED_OUT)
            raise
        session = _session_from_json(data)
        self._set_session(session, AuthChangeEvent.TOKEN_REFRESHED)
        return session

    def sign_out(self) -> None:
        session = self._session
        if session is not None:
            try:
                self._call("POST", "logout", token=session.access_token)
            except (IdentityRejected, IdentityUnavailable) as e:
                # The local session is dropped either way.
                logger.info("Remote logout failed (%s); clearing local session.", e)
        self._set_session(None, AuthChangeEvent.SIGNED_OUT)


class DevIdentityService(_SessionHolder):
    """
    Development bypass: no network, any password, any one-time code.

    Owner ids are derived from the email so the same address always maps to
    the same tasks.
    """

    def _session_for(self, email: str, display_name: str | None = None) -> AuthSession:
        uid = str(uuid.uuid5(uuid.NAMESPACE_URL, f"daily-planner-dev:{email.strip().lower()}"))
        return AuthSession(
            access_token=f"dev-{uid}",
            refresh_token=f"dev-refresh-{uid}",
            expires_at=None,
            user=AuthUser(id=uid, email=email, display_name=display_name),
        )

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        session = self._session_for(email)
        self._set_session(session, AuthChangeEvent.SIGNED_IN)
        return session

    def sign_up(
        self,
        email: str,
        password: str,
        *,
        display_name: str | None = None,
        redirect_to: str | None = None,
    ) -> AuthSession | None:
        logger.info("[dev] Account created for %s (no confirmation needed).", email)
        return None

    def sign_in_with_otp(self, email: str, *, redirect_to: str | None = None) -> None:
        logger.info("[dev] Sign-in link for %s: use any code with /verify.", email)

    def verify_otp(self, email: str, token: str, otp_type: OtpType) -> AuthSession:
        session = self._session_for(email)
        event = AuthChangeEvent.PASSWORD_RECOVERY if otp_type is OtpType.RECOVERY else AuthChangeEvent.SIGNED_IN
        self._set_session(session, event)
        return session

    def reset_password_for_email(self, email: str, *, redirect_to: str | None = None) -> None:
        logger.info("[dev] Password reset for %s: use any code with /verify.", email)

    def update_password(self, new_password: str) -> AuthUser:
        if self._session is None:
            raise IdentityRejected("Auth session missing.", 401)
        self._emit(AuthChangeEvent.USER_UPDATED, self._session)
        return self._session.user

    def refresh_session(self) -> AuthSession:
        if self._session is None:
            raise IdentityRejected("No session to refresh.", 401)
        self._set_session(self._session, AuthChangeEvent.TOKEN_REFRESHED)
        return self._session

    def sign_out(self) -> None:
        self._set_session(None, AuthChangeEvent.SIGNED_OUT)
