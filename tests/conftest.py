# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from daily_planner.auth.session import SessionManager
from daily_planner.storage.blob_store import SqliteBlobStore
from daily_planner.storage.local_backend import LocalTaskBackend
from daily_planner.storage.remote_backend import RemoteTaskBackend
from daily_planner.tasks.controller import TaskListController

from .fakes import FakeIdentityService, FakeRowStore

TODAY = "2026-02-05"


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with bootstrap and commands.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="planner-test",
        log_level="DEBUG",
        data_dir=tmp_path,
        backend="local",
        local_db_path=tmp_path / "planner.sqlite3",
        local_storage_key="todos-by-date-v3",
        strict_local_store=False,
        auth_mode="none",
        password_min_length=8,
        reset_password_min_length=6,
        auth_redirect_url=None,
        supabase_url="",
        supabase_anon_key="",
        supabase_table="todos",
        http_connect_timeout=1.0,
        http_read_timeout=1.0,
    )


@pytest.fixture()
def blob_store(tmp_path: Path) -> SqliteBlobStore:
    return SqliteBlobStore(tmp_path / "blobs.sqlite3")


@pytest.fixture()
def local_controller(blob_store: SqliteBlobStore) -> TaskListController:
    """Anonymous local-only planner; real SQLite underneath."""
    ctrl = TaskListController(LocalTaskBackend(blob_store), today=lambda: TODAY)
    ctrl.set_owner(None)
    return ctrl


@pytest.fixture()
def row_store() -> FakeRowStore:
    return FakeRowStore()


@pytest.fixture()
def identity() -> FakeIdentityService:
    return FakeIdentityService({"ada@example.com": "correct-horse", "bob@example.com": "battery-staple"})


@pytest.fixture()
def session(identity: FakeIdentityService) -> SessionManager:
    return SessionManager(identity)


@pytest.fixture()
def cloud_controller(row_store: FakeRowStore, session: SessionManager) -> TaskListController:
    """Cloud planner wired to the session the same way bootstrap does it."""
    ctrl = TaskListController(RemoteTaskBackend(row_store), require_owner=True, today=lambda: TODAY)
    session.subscribe(ctrl.set_owner)
    return ctrl


@pytest.fixture()
def signed_in(cloud_controller: TaskListController, session: SessionManager) -> TaskListController:
    session.sign_in_with_password("ada@example.com", "correct-horse")
    return cloud_controller
