# src/daily_planner/auth/session.py

from __future__ import annotations

import logging
import re
from collections.abc import Callable

from ..core.errors import (
    AuthServiceError,
    DeliveryError,
    InvalidCredentials,
    InvalidSession,
    PlannerError,
    Unauthenticated,
    ValidationError,
)
from ..core.ports import IdentityService
from .auth_models import AuthChangeEvent, AuthSession, AuthUser, OtpType, SessionState
from .identity import IdentityRejected, IdentityUnavailable

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

OwnerListener = Callable[[str | None], None]


class SessionManager:
    """
    Tracks who is signed in and exposes it as a single optional owner id.

    States: anonymous -> authenticating -> authenticated | error.
    Error is not terminal: any new attempt goes back to authenticating.
    Session changes reported by the identity service (sign-in via link,
    token refresh, remote logout) are applied without an explicit call.
    """

    def __init__(
        self,
        identity: IdentityService,
        *,
        min_password_length: int = 8,
        min_reset_password_length: int = 6,
        redirect_url: str | None = None,
    ) -> None:
        self._identity = identity
        self._min_password = min_password_length
        self._min_reset_password = min_reset_password_length
        self._redirect_url = redirect_url or None

        self.state = SessionState.ANONYMOUS
        self.user: AuthUser | None = None
        self.recovery = False
        self.last_error: str | None = None
        self.last_message: str | None = None

        self._listeners: list[OwnerListener] = []
        self._unsubscribe_identity = identity.on_auth_state_change(self._on_auth_event)

        current = identity.get_current_user()
        if current is not None:
            self.user = current
            self.state = SessionState.AUTHENTICATED

    # ---- observation ----

    @property
    def owner_id(self) -> str | None:
        return self.user.id if self.user else None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def require_owner(self) -> str:
        if self.user is None:
            raise Unauthenticated("Please sign in first.")
        return self.user.id

    def subscribe(self, listener: OwnerListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def close(self) -> None:
        self._unsubscribe_identity()

    # ---- internal transitions ----

    def _set_user(self, user: AuthUser | None) -> None:
        before = self.owner_id
        self.user = user
        after = self.owner_id
        if before == after:
            return
        logger.info("Session owner changed %s -> %s", before, after)
        for listener in list(self._listeners):
            try:
                listener(after)
            except PlannerError as e:
                # e.g. the new owner's tasks could not be loaded; the session itself stands.
                self.last_error = str(e)
                logger.warning("Owner change listener failed: %s", e)

    def _apply_session(self, session: AuthSession | None, *, recovery: bool = False) -> None:
        if session is None:
            self.state = SessionState.ANONYMOUS
            self.recovery = False
            self._set_user(None)
            return
        self.state = SessionState.AUTHENTICATED
        self.recovery = recovery
        if self.owner_id != session.user.id:
            self.last_error = None
        self._set_user(session.user)

    def _on_auth_event(self, event: AuthChangeEvent, session: AuthSession | None) -> None:
        if event is AuthChangeEvent.SIGNED_OUT or session is None:
            self._apply_session(None)
            return
        if event in (AuthChangeEvent.TOKEN_REFRESHED, AuthChangeEvent.USER_UPDATED):
            self._apply_session(session, recovery=self.recovery)
            return
        self._apply_session(session, recovery=event is AuthChangeEvent.PASSWORD_RECOVERY)

    def _begin(self) -> None:
        self.state = SessionState.AUTHENTICATING
        self.last_error = None
        self.last_message = None

    def _fail(self, exc: PlannerError) -> PlannerError:
        self.last_error = str(exc)
        if self.user is None:
            self.state = SessionState.ERROR
        else:
            self.state = SessionState.AUTHENTICATED
        logger.info("Auth operation failed: %s", exc)
        return exc

    def _settle(self, message: str) -> str:
        """Finish an operation that does not (yet) change who is signed in."""
        self.state = SessionState.AUTHENTICATED if self.user else SessionState.ANONYMOUS
        self.last_message = message
        return message

    # ---- validation ----

    def _check_email(self, email: str) -> str:
        email = (email or "").strip()
        if not EMAIL_RE.match(email):
            raise self._fail(ValidationError("Please enter a valid email address."))
        return email

    def _check_password(self, password: str, minimum: int) -> None:
        if len(password or "") < minimum:
            raise self._fail(ValidationError(f"Password must be at least {minimum} characters."))

    # ---- operations ----

    def sign_in_with_password(self, email: str, password: str) -> AuthUser:
        email = self._check_email(email)
        self._check_password(password, self._min_password)
        self._begin()
        try:
            session = self._identity.sign_in_with_password(email, password)
        except IdentityRejected as e:
            raise self._fail(InvalidCredentials(str(e) or "Invalid login credentials.")) from e
        except IdentityUnavailable as e:
            raise self._fail(AuthServiceError(str(e))) from e
        self._apply_session(session)
        return session.user

    def sign_up(self, display_name: str, email: str, password: str) -> str:
        email = self._check_email(email)
        self._check_password(password, self._min_password)
        self._begin()
        try:
            session = self._identity.sign_up(
                email,
                password,
                display_name=(display_name or "").strip() or None,
                redirect_to=self._redirect_url,
            )
        except IdentityRejected as e:
            raise self._fail(ValidationError(str(e))) from e
        except IdentityUnavailable as e:
            raise self._fail(AuthServiceError(str(e))) from e
        if session is not None:
            self._apply_session(session)
            return self._settle("Account created. You are signed in.")
        return self._settle("Account created. Check your email to confirm it, then sign in.")

    def send_sign_in_link(self, email: str) -> str:
        email = self._check_email(email)
        self._begin()
        try:
            self._identity.sign_in_with_otp(email, redirect_to=self._redirect_url)
        except (IdentityRejected, IdentityUnavailable) as e:
            raise self._fail(DeliveryError(f"Could not send the sign-in link: {e}")) from e
        return self._settle(f"Check {email} for your sign-in link.")

    def request_password_reset(self, email: str) -> str:
        email = self._check_email(email)
        self._begin()
        try:
            self._identity.reset_password_for_email(email, redirect_to=self._redirect_url)
        except (IdentityRejected, IdentityUnavailable) as e:
            raise self._fail(DeliveryError(f"Could not send the reset email: {e}")) from e
        return self._settle(f"Password reset email sent to {email}.")

    def verify_link(self, email: str, token: str, *, recovery: bool = False) -> AuthUser:
        """Finish a sign-in link / reset flow with the one-time code from the email."""
        email = self._check_email(email)
        token = (token or "").strip()
        if not token:
            raise self._fail(ValidationError("Enter the code from the email."))
        otp_type = OtpType.RECOVERY if recovery else OtpType.EMAIL
        self._begin()
        try:
            session = self._identity.verify_otp(email, token, otp_type)
        except IdentityRejected as e:
            raise self._fail(InvalidSession("Invalid or expired link. Please request a new one.")) from e
        except IdentityUnavailable as e:
            raise self._fail(AuthServiceError(str(e))) from e
        self._apply_session(session, recovery=recovery)
        return session.user

    def complete_password_reset(self, new_password: str, confirm_password: str) -> str:
        if self.user is None:
            raise self._fail(InvalidSession("Invalid or expired reset link. Please request a new one."))
        if new_password != confirm_password:
            raise self._fail(ValidationError("Passwords do not match."))
        self._check_password(new_password, self._min_reset_password)
        self._begin()
        try:
            self._identity.update_password(new_password)
        except IdentityRejected as e:
            if e.status_code in (401, 403):
                raise self._fail(InvalidSession(str(e))) from e
            raise self._fail(ValidationError(str(e))) from e
        except IdentityUnavailable as e:
            raise self._fail(AuthServiceError(str(e))) from e
        self.recovery = False
        return self._settle("Password updated successfully!")

    def refresh(self) -> None:
        if self.user is None:
            return
        try:
            session = self._identity.refresh_session()
        except IdentityRejected as e:
            # Expiry, not a failed attempt: back to anonymous.
            self._apply_session(None)
            self.last_error = "Your session expired. Please sign in again."
            logger.info("Session refresh rejected: %s", e)
            raise InvalidSession(self.last_error) from e
        except IdentityUnavailable as e:
            raise self._fail(AuthServiceError(str(e))) from e
        self._apply_session(session, recovery=self.recovery)

    def sign_out(self) -> None:
        if self.user is not None:
            try:
                self._identity.sign_out()
            except (IdentityRejected, IdentityUnavailable):
                logger.info("Identity sign-out failed; clearing local session anyway.", exc_info=True)
        self.last_error = None
        self.last_message = None
        self._apply_session(None)
