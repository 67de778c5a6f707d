# src/daily_planner/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- The persistence backend and auth mode are picked here, once, at startup.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "PLANNER"

BACKENDS = ("local", "supabase")
AUTH_MODES = ("none", "password", "magic_link", "dev")


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


# Local .env (gitignored) never overrides variables already set in the environment.
load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def _env_choice(name: str, choices: tuple[str, ...], default: str) -> str:
    raw = _env(name, default).strip().lower().replace("-", "_")
    return raw if raw in choices else default


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    data_dir: Path

    # ---- Persistence ----
    backend: str  # local | supabase
    local_db_path: Path
    local_storage_key: str
    strict_local_store: bool

    # ---- Auth ----
    auth_mode: str  # none | password | magic_link | dev
    password_min_length: int
    reset_password_min_length: int
    auth_redirect_url: str | None

    # ---- Supabase ----
    supabase_url: str
    supabase_anon_key: str
    supabase_table: str

    # ---- HTTP ----
    http_connect_timeout: float
    http_read_timeout: float

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "daily-planner") or "daily-planner"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/planner"))

        backend = _env_choice(_k("BACKEND"), BACKENDS, "local")
        default_auth = "password" if backend == "supabase" else "none"
        auth_mode = _env_choice(_k("AUTH_MODE"), AUTH_MODES, default_auth)

        local_db_path = _env_path(_k("LOCAL_DB_PATH"), data_dir / "planner.sqlite3")
        local_storage_key = _env(_k("LOCAL_STORAGE_KEY"), "todos-by-date-v3").strip() or "todos-by-date-v3"
        strict_local_store = _env_bool(_k("STRICT_LOCAL_STORE"), False)

        password_min_length = max(1, _env_int(_k("PASSWORD_MIN_LENGTH"), 8))
        reset_password_min_length = max(1, _env_int(_k("RESET_PASSWORD_MIN_LENGTH"), 6))
        auth_redirect_url = _env(_k("AUTH_REDIRECT_URL"), "").strip() or None

        supabase_url = _env(_k("SUPABASE_URL"), "").strip()
        supabase_anon_key = _env(_k("SUPABASE_ANON_KEY"), "").strip()
        supabase_table = _env(_k("SUPABASE_TABLE"), "todos").strip() or "todos"

        http_connect_timeout = _env_float(_k("HTTP_CONNECT_TIMEOUT_SECONDS"), 5.0)
        http_read_timeout = _env_float(_k("HTTP_READ_TIMEOUT_SECONDS"), 15.0)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            backend=backend,
            local_db_path=local_db_path,
            local_storage_key=local_storage_key,
            strict_local_store=strict_local_store,
            auth_mode=auth_mode,
            password_min_length=password_min_length,
            reset_password_min_length=reset_password_min_length,
            auth_redirect_url=auth_redirect_url,
            supabase_url=supabase_url,
            supabase_anon_key=supabase_anon_key,
            supabase_table=supabase_table,
            http_connect_timeout=http_connect_timeout,
            http_read_timeout=http_read_timeout,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
