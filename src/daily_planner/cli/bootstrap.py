# src/daily_planner/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- picks the persistence backend and identity service from settings,
- wires the session manager to the task controller.
"""

from __future__ import annotations

import contextlib
import logging

import httpx

from ..auth.identity import DevIdentityService, SupabaseIdentityService
from ..auth.session import SessionManager
from ..config import get_settings
from ..core.ports import IdentityService, TaskBackend
from ..core.state import AppState
from ..storage.blob_store import SqliteBlobStore
from ..storage.local_backend import LocalTaskBackend
from ..storage.remote import SupabaseRowStore
from ..storage.remote_backend import RemoteTaskBackend
from ..tasks.controller import TaskListController

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.local_db_path.parent.mkdir(parents=True, exist_ok=True)


def _http_timeout(settings) -> httpx.Timeout:
    return httpx.Timeout(
        connect=float(settings.http_connect_timeout),
        read=float(settings.http_read_timeout),
        write=10.0,
        pool=float(settings.http_connect_timeout),
    )


def build_identity(settings) -> IdentityService | None:
    mode = settings.auth_mode
    if mode == "none":
        return None
    if mode == "dev":
        logger.warning("Auth mode 'dev': any email/password is accepted. Do not use with real data.")
        return DevIdentityService()
    return SupabaseIdentityService(
        base_url=settings.supabase_url,
        anon_key=settings.supabase_anon_key,
        timeout=_http_timeout(settings),
    )


def build_backend(settings, identity: IdentityService | None) -> TaskBackend:
    if settings.backend == "supabase":
        rows = SupabaseRowStore(
            base_url=settings.supabase_url,
            anon_key=settings.supabase_anon_key,
            table=settings.supabase_table,
            token_provider=identity.access_token if identity is not None else None,
            timeout=_http_timeout(settings),
        )
        return RemoteTaskBackend(rows)
    store = SqliteBlobStore(settings.local_db_path)
    return LocalTaskBackend(
        store,
        key=settings.local_storage_key,
        strict=settings.strict_local_store,
    )


def create_initial_state(*, settings=None, identity: IdentityService | None = None, backend: TaskBackend | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Identity/backend can be injected (tests); otherwise they are built from
    settings. Local-only mode (no auth) loads the collection right away;
    cloud modes load it when the session reports an owner.
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    if identity is None:
        identity = build_identity(settings)
    if backend is None:
        backend = build_backend(settings, identity)

    require_owner = identity is not None or settings.backend == "supabase"
    controller = TaskListController(backend, require_owner=require_owner)

    session: SessionManager | None = None
    if identity is not None:
        session = SessionManager(
            identity,
            min_password_length=settings.password_min_length,
            min_reset_password_length=settings.reset_password_min_length,
            redirect_url=settings.auth_redirect_url,
        )
        session.subscribe(controller.set_owner)
        if session.owner_id is not None:
            controller.set_owner(session.owner_id)
    else:
        controller.set_owner(None)

    state = AppState(settings=settings, controller=controller, session=session)
    for obj in (identity, backend):
        if obj is not None and hasattr(obj, "close"):
            state.closeables.append(obj)
    logger.info(
        "State ready backend=%s auth=%s require_owner=%s",
        settings.backend,
        settings.auth_mode,
        require_owner,
    )
    return state


def shutdown_state(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    if state.session is not None:
        state.session.close()
    for obj in state.closeables:
        with contextlib.suppress(Exception):
            obj.close()
