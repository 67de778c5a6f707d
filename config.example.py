# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Keep the Supabase anon key in .env (local, gitignored).

This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "PLANNER_APP_NAME": "App display name (default: daily-planner).",
    "PLANNER_LOG_LEVEL": "Logging level (default: INFO).",
    # Persistence
    "PLANNER_BACKEND": "Where tasks live: local | supabase (default: local).",
    "PLANNER_DATA_DIR": "Local data directory (default: .local/planner).",
    "PLANNER_LOCAL_DB_PATH": "Local SQLite blob store path (default: <data_dir>/planner.sqlite3).",
    "PLANNER_LOCAL_STORAGE_KEY": "Key of the task array in the blob store (default: todos-by-date-v3).",
    "PLANNER_STRICT_LOCAL_STORE": "Fail on unreadable local data instead of starting empty (true/false).",
    # Auth
    "PLANNER_AUTH_MODE": (
        "none | password | magic_link | dev (default: password with supabase, otherwise none). "
        "password enables /login /signup /forgot; magic_link enables /link /verify; "
        "dev enables both, accepts any credentials and never talks to the network."
    ),
    "PLANNER_PASSWORD_MIN_LENGTH": "Minimum password length for sign-in/sign-up (default: 8).",
    "PLANNER_RESET_PASSWORD_MIN_LENGTH": "Minimum length for a password set via reset (default: 6).",
    "PLANNER_AUTH_REDIRECT_URL": "Optional redirect URL embedded in sign-in/reset emails.",
    # Supabase
    "PLANNER_SUPABASE_URL": "Project URL, e.g. https://<project>.supabase.co (required for supabase).",
    "PLANNER_SUPABASE_ANON_KEY": "Public anon key (required for supabase and for password/magic_link auth).",
    "PLANNER_SUPABASE_TABLE": "Task table name (default: todos).",
    # HTTP
    "PLANNER_HTTP_CONNECT_TIMEOUT_SECONDS": "Connect timeout for Supabase calls (default: 5).",
    "PLANNER_HTTP_READ_TIMEOUT_SECONDS": "Read timeout for Supabase calls (default: 15).",
}
