# tests/test_identity.py

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from daily_planner.auth.auth_models import AuthChangeEvent, OtpType
from daily_planner.auth.identity import (
    DevIdentityService,
    IdentityRejected,
    IdentityUnavailable,
    SupabaseIdentityService,
)
from daily_planner.auth.session import SessionManager
from daily_planner.core.errors import InvalidCredentials, InvalidSession

BASE = "https://planner.supabase.co"


def _session_json(token: str = "access-1", refresh: str = "refresh-1", uid: str = "u1") -> dict[str, Any]:
    return {
        "access_token": token,
        "refresh_token": refresh,
        "expires_in": 3600,
        "token_type": "bearer",
        "user": {"id": uid, "email": "ada@example.com", "user_metadata": {"display_name": "Ada"}},
    }


class _GoTrue:
    """Route table: (method, path) -> (status, body). Unrouted requests 404."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], tuple[int, Any]] = {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self.routes.get((request.method, request.url.path), (404, {"msg": "not found"}))
        return httpx.Response(status, json=body)

    def last_json(self) -> Any:
        return json.loads(self.requests[-1].content)


@pytest.fixture()
def gotrue() -> _GoTrue:
    return _GoTrue()


@pytest.fixture()
def service(gotrue: _GoTrue) -> SupabaseIdentityService:
    client = httpx.Client(base_url=BASE, transport=httpx.MockTransport(gotrue))
    return SupabaseIdentityService(base_url=BASE, anon_key="anon", client=client)


def _events(service: Any) -> list[AuthChangeEvent]:
    seen: list[AuthChangeEvent] = []
    service.on_auth_state_change(lambda event, session: seen.append(event))
    return seen


def test_password_sign_in(gotrue: _GoTrue, service: SupabaseIdentityService) -> None:
    gotrue.routes[("POST", "/auth/v1/token")] = (200, _session_json())
    events = _events(service)

    session = service.sign_in_with_password("ada@example.com", "correct-horse")

    req = gotrue.requests[0]
    assert req.url.params["grant_type"] == "password"
    assert req.headers["apikey"] == "anon"
    assert gotrue.last_json() == {"email": "ada@example.com", "password": "correct-horse"}
    assert session.user.display_name == "Ada"
    assert session.expires_at is not None
    assert service.access_token() == "access-1"
    assert service.get_current_user().id == "u1"
    assert events == [AuthChangeEvent.SIGNED_IN]


def test_rejection_carries_message_and_status(gotrue: _GoTrue, service: SupabaseIdentityService) -> None:
    gotrue.routes[("POST", "/auth/v1/token")] = (400, {"error": "invalid_grant", "error_description": "Invalid login credentials"})
    with pytest.raises(IdentityRejected) as excinfo:
        service.sign_in_with_password("ada@example.com", "nope")
    assert str(excinfo.value) == "Invalid login credentials"
    assert excinfo.value.status_code == 400
    assert service.get_current_user() is None


def test_server_errors_and_outages_are_unavailable(gotrue: _GoTrue, service: SupabaseIdentityService) -> None:
    gotrue.routes[("POST", "/auth/v1/otp")] = (503, {"msg": "down"})
    with pytest.raises(IdentityUnavailable):
        service.sign_in_with_otp("ada@example.com")

    def unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    offline = SupabaseIdentityService(
        base_url=BASE, anon_key="anon", client=httpx.Client(base_url=BASE, transport=httpx.MockTransport(unreachable))
    )
    with pytest.raises(IdentityUnavailable, match="ConnectTimeout"):
        offline.reset_password_for_email("ada@example.com")


def test_sign_up_with_and_without_confirmation(gotrue: _GoTrue, service: SupabaseIdentityService) -> None:
    gotrue.routes[("POST", "/auth/v1/signup")] = (200, {"id": "u2", "email": "cleo@example.com"})
    assert service.sign_up("cleo@example.com", "long-enough", display_name="Cleo", redirect_to="http://localhost/") is None
    req = gotrue.requests[-1]
    assert req.url.params["redirect_to"] == "http://localhost/"
    assert gotrue.last_json()["data"] == {"display_name": "Cleo"}
    assert service.get_current_user() is None

    gotrue.routes[("POST", "/auth/v1/signup")] = (200, _session_json(uid="u2"))
    session = service.sign_up("cleo@example.com", "long-enough")
    assert session is not None
    assert service.get_current_user().id == "u2"


def test_verify_recovery_then_update_password(gotrue: _GoTrue, service: SupabaseIdentityService) -> None:
    gotrue.routes[("POST", "/auth/v1/verify")] = (200, _session_json())
    gotrue.routes[("PUT", "/auth/v1/user")] = (200, {"id": "u1", "email": "ada@example.com"})
    events = _events(service)

    service.verify_otp("ada@example.com", "123456", OtpType.RECOVERY)
    assert gotrue.last_json() == {"type": "recovery", "email": "ada@example.com", "token": "123456"}

    service.update_password("brand-new")
    req = gotrue.requests[-1]
    assert req.headers["authorization"] == "Bearer access-1"
    assert gotrue.last_json() == {"password": "brand-new"}
    assert events == [AuthChangeEvent.PASSWORD_RECOVERY, AuthChangeEvent.USER_UPDATED]


def test_update_password_needs_a_session(service: SupabaseIdentityService, gotrue: _GoTrue) -> None:
    with pytest.raises(IdentityRejected) as excinfo:
        service.update_password("whatever")
    assert excinfo.value.status_code == 401
    assert gotrue.requests == []


def test_refresh_rotates_tokens_or_signs_out(gotrue: _GoTrue, service: SupabaseIdentityService) -> None:
    gotrue.routes[("POST", "/auth/v1/token")] = (200, _session_json())
    service.sign_in_with_password("ada@example.com", "correct-horse")
    events = _events(service)

    gotrue.routes[("POST", "/auth/v1/token")] = (200, _session_json(token="access-2", refresh="refresh-2"))
    service.refresh_session()
    assert gotrue.requests[-1].url.params["grant_type"] == "refresh_token"
    assert gotrue.last_json() == {"refresh_token": "refresh-1"}
    assert service.access_token() == "access-2"

    gotrue.routes[("POST", "/auth/v1/token")] = (400, {"msg": "Invalid Refresh Token: Already Used"})
    with pytest.raises(IdentityRejected):
        service.refresh_session()
    assert service.access_token() is None
    assert events == [AuthChangeEvent.TOKEN_REFRESHED, AuthChangeEvent.SIGNED_OUT]


def test_sign_out_clears_locally_even_if_logout_fails(gotrue: _GoTrue, service: SupabaseIdentityService) -> None:
    gotrue.routes[("POST", "/auth/v1/token")] = (200, _session_json())
    service.sign_in_with_password("ada@example.com", "correct-horse")
    gotrue.routes[("POST", "/auth/v1/logout")] = (500, {"msg": "boom"})

    service.sign_out()

    assert gotrue.requests[-1].url.path == "/auth/v1/logout"
    assert service.get_current_user() is None


def test_listener_errors_do_not_break_the_service(gotrue: _GoTrue, service: SupabaseIdentityService) -> None:
    gotrue.routes[("POST", "/auth/v1/token")] = (200, _session_json())

    def broken(event: AuthChangeEvent, session: Any) -> None:
        raise RuntimeError("listener bug")

    service.on_auth_state_change(broken)
    events = _events(service)
    service.sign_in_with_password("ada@example.com", "correct-horse")
    assert events == [AuthChangeEvent.SIGNED_IN]


def test_session_manager_over_supabase(gotrue: _GoTrue, service: SupabaseIdentityService) -> None:
    session = SessionManager(service)
    gotrue.routes[("POST", "/auth/v1/token")] = (400, {"error_description": "Invalid login credentials"})
    with pytest.raises(InvalidCredentials):
        session.sign_in_with_password("ada@example.com", "wrong-horse")

    gotrue.routes[("POST", "/auth/v1/token")] = (200, _session_json())
    session.sign_in_with_password("ada@example.com", "correct-horse")
    assert session.owner_id == "u1"

    gotrue.routes[("PUT", "/auth/v1/user")] = (401, {"msg": "JWT expired"})
    with pytest.raises(InvalidSession):
        session.complete_password_reset("123456", "123456")


def test_dev_identity_is_stable_per_email() -> None:
    dev = DevIdentityService()
    session = SessionManager(dev)

    first = session.sign_in_with_password("Ada@Example.com", "anything")
    session.sign_out()
    again = session.verify_link("ada@example.com", "000000")

    assert first.id == again.id
    assert dev.access_token() == f"dev-{first.id}"
    session.refresh()
    assert session.owner_id == first.id
