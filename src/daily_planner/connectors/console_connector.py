# src/daily_planner/connectors/console_connector.py

from __future__ import annotations

import logging
import sys
from datetime import datetime

from ..cli.commands import handle_plain_text, render_board
from ..cli.commands import registry as command_registry
from ..core.errors import PlannerError
from ..core.state import AppState

logger = logging.getLogger(__name__)

_SECRET_COMMANDS = ("/login", "/signup", "/newpass")


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    if sys.stdout.isatty():
        sys.stdout.write("\033[1A\033[2K\r")
        sys.stdout.write(line + "\n")
        sys.stdout.flush()
    else:
        print(line)


def _prompt(state: AppState) -> str:
    session = state.session
    who = ""
    if session is not None:
        who = f"{session.user.email or 'me'}@" if session.user else "guest@"
    return f"{who}{state.controller.view.selected_date}> "


def handle_line(state: AppState, line: str, emit=None) -> str:
    """One REPL step: command or plain text -> reply text (errors included)."""
    try:
        reply = command_registry.handle(state, line, emit=emit)
        if reply is None:
            reply = handle_plain_text(state, line)
    except PlannerError as e:
        logger.debug("Command failed: %s (%s)", line, e.__class__.__name__)
        return f"[{e.__class__.__name__}] {e}"
    except Exception:
        logger.exception("Command handler crashed.")
        return "Internal error while handling a command."
    return reply


def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started.")
    app_name = str(getattr(state.settings, "app_name", "daily-planner"))
    print(f"[{app_name}] Type a task to add it to the selected day. Use /help for commands, /exit to quit.\n")

    if state.session is None or state.session.is_authenticated:
        print(render_board(state.controller) + "\n")
    else:
        hints = {
            "password": "/login or /signup",
            "magic_link": "/link and /verify",
        }
        how = hints.get(str(getattr(state.settings, "auth_mode", "")), "/login, /signup or /link")
        print(f"Not signed in. Use {how} to start.\n")

    def emit(text: str) -> None:
        # Immediate feedback while a backend call is in flight.
        print(f"[{_ts_local()}] {text}", flush=True)

    while True:
        prompt = _prompt(state)
        try:
            user_input = input(prompt).strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        if user_input.lower().startswith(_SECRET_COMMANDS):
            # Keep passwords out of the scrollback.
            _rewrite_prev_line(f"{prompt}{user_input.split()[0]} ***")

        print(handle_line(state, user_input, emit=emit) + "\n")

    logger.info("Console connector finished.")
