# src/daily_planner/cli/commands.py

from __future__ import annotations

import inspect
import logging
import shlex
from collections.abc import Callable
from typing import cast

from ..core.errors import TaskNotFound, Unauthenticated, ValidationError
from ..core.state import AppState
from ..tasks.controller import TaskListController
from ..tasks.dates import add_days, format_display_date, quick_dates
from ..tasks.task_models import Task, TaskId

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        Planner errors propagate to the caller.
        """
        if not line.startswith("/"):
            return None

        try:
            parts = shlex.split(line[1:])
        except ValueError as e:
            return f"Could not parse command: {e}."
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        lines.append("  (plain text adds a task for the selected day)")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- argument helpers ----


def _split_flags(args: list[str], names: tuple[str, ...]) -> tuple[list[str], dict[str, str]]:
    """Separate `--name value` pairs from positional args."""
    positional: list[str] = []
    flags: dict[str, str] = {}
    i = 0
    while i < len(args):
        a = args[i]
        if a.startswith("--") and a[2:] in names:
            if i + 1 >= len(args):
                raise ValidationError(f"Missing value for {a}.")
            flags[a[2:]] = args[i + 1]
            i += 2
            continue
        positional.append(a)
        i += 1
    return positional, flags


def _resolve_id(ctrl: TaskListController, raw: str) -> TaskId:
    """Exact id, or a unique prefix of one (remote ids are long)."""
    raw = raw.strip()
    ids = [t.id for t in ctrl.tasks]
    for tid in ids:
        if str(tid) == raw:
            return tid
    matches = [tid for tid in ids if str(tid).startswith(raw)] if raw else []
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        raise ValidationError(f"Id prefix {raw!r} is ambiguous.")
    raise TaskNotFound(raw)


def _resolve_date(ctrl: TaskListController, raw: str) -> str:
    """today | tomorrow | week | +N | -N | YYYY-MM-DD (relative to the selected day for +/-)."""
    s = raw.strip().lower()
    quick = quick_dates(ctrl.today())
    mapping = {"today": quick[0][1], "tomorrow": quick[1][1], "week": quick[2][1]}
    if s in mapping:
        return mapping[s]
    if s[:1] in "+-" and s[1:].isdigit():
        return add_days(ctrl.view.selected_date, int(s))
    return raw.strip()


def _need_one(args: list[str], usage: str) -> str:
    if not args:
        raise ValidationError(f"Usage: {usage}")
    return args[0]


# ---- rendering ----


def _task_line(task: Task, *, editing: bool) -> str:
    mark = "x" if task.completed else " "
    edit = " (editing)" if editing else ""
    line = f"  [{mark}] {task.id}  {task.text}  <{task.priority.label}>{edit}"
    if task.notes:
        line += f"\n        {task.notes}"
    return line


def render_week(ctrl: TaskListController) -> str:
    cells = []
    for d in ctrl.week_strip():
        label = format_display_date(d)
        cells.append(f"[{label}]" if d == ctrl.view.selected_date else f" {label} ")
    return " ".join(cells)


def render_board(ctrl: TaskListController) -> str:
    view = ctrl.view
    out = [
        render_week(ctrl),
        f"Selected day: {view.selected_date} ({format_display_date(view.selected_date)})  filter={view.filter}",
    ]
    remaining = ctrl.remaining_count()
    if remaining == 0:
        out.append("All done for this day!")
    else:
        out.append(f"{remaining} task{'' if remaining == 1 else 's'} left for this day")
    if ctrl.has_completed():
        out.append("(/clear removes completed tasks)")

    groups = ctrl.grouped_by_date()
    if not groups:
        out.append("No tasks yet. Pick a date, add a task, and your first day card will appear here.")
        return "\n".join(out)

    for g in groups:
        marker = "*" if g.date == view.selected_date else "-"
        out.append(f"{marker} {g.date} {format_display_date(g.date)}  {g.completed_count}/{g.total} done")
        for t in g.items:
            out.append(_task_line(t, editing=view.editing_id == t.id))
    return "\n".join(out)


# ---- task commands ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    s = state.settings
    ctrl = state.controller
    lines = [
        "Status:",
        f"  Backend: {getattr(s, 'backend', 'local')}",
        f"  Auth: {getattr(s, 'auth_mode', 'none')}",
    ]
    if state.session is not None:
        who = state.session.user.email if state.session.user else "-"
        lines.append(f"  Session: {state.session.state} ({who})")
    lines.append(f"  Tasks loaded: {len(ctrl.tasks)}")
    lines.append(f"  Draft priority: {ctrl.view.draft_priority}")
    if ctrl.view.draft_notes:
        lines.append(f"  Draft notes: {ctrl.view.draft_notes}")
    return "\n".join(lines)


def cmd_list(state: AppState, args: list[str]) -> str:
    return render_board(state.controller)


def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add <text> [--date D] [--priority P] [--notes N]
    """
    ctrl = state.controller
    words, flags = _split_flags(args, ("date", "priority", "notes"))
    date = _resolve_date(ctrl, flags["date"]) if "date" in flags else None
    task = ctrl.add(" ".join(words), date=date, priority=flags.get("priority"), notes=flags.get("notes"))
    if task is None:
        return "Nothing to add (empty text)."
    return f"Added {task.id} on {task.date}: {task.text}"


def cmd_priority(state: AppState, args: list[str]) -> str:
    ctrl = state.controller
    if not args:
        return f"Draft priority is {ctrl.view.draft_priority}. Use /priority low|medium|high."
    ctrl.set_draft(priority=args[0])
    return f"New tasks get priority {ctrl.view.draft_priority}."


def cmd_notes(state: AppState, args: list[str]) -> str:
    state.controller.set_draft(notes=" ".join(args))
    return "Draft notes set." if args else "Draft notes cleared."


def cmd_toggle(state: AppState, args: list[str]) -> str:
    ctrl = state.controller
    tid = _resolve_id(ctrl, _need_one(args, "/done <id>"))
    task = ctrl.toggle_complete(tid)
    return f"{'Completed' if task.completed else 'Reopened'}: {task.text}"


def cmd_edit(state: AppState, args: list[str]) -> str:
    """
    /edit <id>                       -> enter edit mode, show current values
    /edit <id> --text T [--notes N] [--priority P]
    /edit cancel
    """
    ctrl = state.controller
    positional, flags = _split_flags(args, ("text", "notes", "priority"))
    target = _need_one(positional, "/edit <id> --text T [--notes N] [--priority P]")
    if target.lower() == "cancel":
        ctrl.cancel_edit()
        return "Edit cancelled."

    tid = _resolve_id(ctrl, target)
    if not flags:
        task = ctrl.begin_edit(tid)
        return (
            f"Editing {task.id}:\n"
            f"  text: {task.text}\n"
            f"  notes: {task.notes or ''}\n"
            f"  priority: {task.priority}\n"
            "Save with /edit <id> --text ... [--notes ...] [--priority ...]"
        )

    current = ctrl.get(tid)
    task = ctrl.edit(
        tid,
        flags.get("text", current.text),
        notes=flags.get("notes", current.notes),
        priority=flags.get("priority", current.priority),
    )
    return f"Saved {task.id}: {task.text}"


def cmd_move(state: AppState, args: list[str]) -> str:
    ctrl = state.controller
    if len(args) < 2:
        raise ValidationError("Usage: /move <id> <YYYY-MM-DD|today|tomorrow|+N>")
    tid = _resolve_id(ctrl, args[0])
    task = ctrl.move(tid, _resolve_date(ctrl, args[1]))
    return f"Moved to {task.date}: {task.text}"


def cmd_remove(state: AppState, args: list[str]) -> str:
    ctrl = state.controller
    tid = _resolve_id(ctrl, _need_one(args, "/rm <id>"))
    text = ctrl.get(tid).text
    ctrl.remove(tid)
    return f"Deleted: {text}"


def cmd_clear(state: AppState, args: list[str]) -> str:
    n = state.controller.clear_completed()
    return "No completed tasks to clear." if n == 0 else f"Cleared {n} completed task(s)."


def cmd_filter(state: AppState, args: list[str]) -> str:
    ctrl = state.controller
    if not args:
        return f"Filter is {ctrl.view.filter}. Use /filter all|active|completed."
    return f"Filter set to {ctrl.set_filter(args[0].lower())}."


def cmd_date(state: AppState, args: list[str]) -> str:
    ctrl = state.controller
    raw = args[0] if args else "today"
    d = ctrl.select_date(_resolve_date(ctrl, raw))
    return f"Selected {d} ({format_display_date(d)})."


def cmd_week(state: AppState, args: list[str]) -> str:
    ctrl = state.controller
    if args:
        sub = args[0].lower()
        if sub in ("next", "+"):
            ctrl.shift_week(1)
        elif sub in ("prev", "-"):
            ctrl.shift_week(-1)
        elif sub == "today":
            ctrl.view.week_anchor = ctrl.today()
        else:
            return "Usage: /week [next|prev|today]"
    return render_week(ctrl)


def cmd_reload(state: AppState, args: list[str]) -> str:
    tasks = state.controller.load()
    return f"Reloaded {len(tasks)} task(s)."


# ---- auth commands ----


PASSWORD_MODES = ("password", "dev")
LINK_MODES = ("magic_link", "dev")


def _session(state: AppState, modes: tuple[str, ...] | None = None):
    if state.session is None:
        raise Unauthenticated("Sign-in is disabled (PLANNER_AUTH_MODE=none).")
    mode = getattr(state.settings, "auth_mode", "dev")
    if modes is not None and mode not in modes:
        raise ValidationError(f"Not available with PLANNER_AUTH_MODE={mode}.")
    return state.session


def _with_session_note(state: AppState, text: str) -> str:
    err = state.session.last_error if state.session is not None else None
    return f"{text}\n[warn] {err}" if err else text


def cmd_login(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    session = _session(state, PASSWORD_MODES)
    if len(args) < 2:
        raise ValidationError("Usage: /login <email> <password>")
    if emit:
        emit("Signing in...")
    user = session.sign_in_with_password(args[0], args[1])
    return _with_session_note(state, f"Signed in as {user.email or user.id}.")


def cmd_signup(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    session = _session(state, PASSWORD_MODES)
    if len(args) < 2:
        raise ValidationError("Usage: /signup <email> <password> [display name]")
    if emit:
        emit("Creating account...")
    return _with_session_note(state, session.sign_up(" ".join(args[2:]), args[0], args[1]))


def cmd_link(state: AppState, args: list[str]) -> str:
    session = _session(state, LINK_MODES)
    return session.send_sign_in_link(_need_one(args, "/link <email>"))


def cmd_verify(state: AppState, args: list[str]) -> str:
    recovery = "--recovery" in args
    # Recovery codes finish a password reset; plain codes finish a sign-in link.
    session = _session(state, PASSWORD_MODES if recovery else LINK_MODES)
    positional = [a for a in args if a != "--recovery"]
    if len(positional) < 2:
        raise ValidationError("Usage: /verify <email> <code> [--recovery]")
    user = session.verify_link(positional[0], positional[1], recovery=recovery)
    if recovery:
        return f"Reset link accepted for {user.email or user.id}. Set a new password with /newpass <new> <confirm>."
    return _with_session_note(state, f"Signed in as {user.email or user.id}.")


def cmd_forgot(state: AppState, args: list[str]) -> str:
    session = _session(state, PASSWORD_MODES)
    return session.request_password_reset(_need_one(args, "/forgot <email>"))


def cmd_newpass(state: AppState, args: list[str]) -> str:
    session = _session(state, PASSWORD_MODES)
    if len(args) < 2:
        raise ValidationError("Usage: /newpass <new password> <confirm password>")
    return session.complete_password_reset(args[0], args[1])


def cmd_logout(state: AppState, args: list[str]) -> str:
    session = _session(state)
    session.sign_out()
    return "Signed out."


def cmd_whoami(state: AppState, args: list[str]) -> str:
    session = _session(state)
    if session.user is None:
        return f"Not signed in (state: {session.state})."
    name = f" ({session.user.display_name})" if session.user.display_name else ""
    return f"{session.user.email or session.user.id}{name} id={session.user.id}"


def cmd_refresh(state: AppState, args: list[str]) -> str:
    session = _session(state)
    session.refresh()
    return "Session refreshed." if session.user else "Not signed in."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show backend, session and draft settings.")
registry.register("list", cmd_list, help_text="Show the week strip and tasks grouped by day.", aliases=["ls"])
registry.register("add", cmd_add, help_text="Add a task: /add <text> [--date D] [--priority P] [--notes N].")
registry.register("priority", cmd_priority, help_text="Priority for new tasks: /priority low|medium|high.")
registry.register("notes", cmd_notes, help_text="Notes for the next task: /notes <text> (empty clears).")
registry.register("done", cmd_toggle, help_text="Toggle completed: /done <id>.", aliases=["toggle"])
registry.register("edit", cmd_edit, help_text="Edit text/notes/priority: /edit <id> --text T [--notes N] [--priority P].")
registry.register("move", cmd_move, help_text="Move to another day: /move <id> <date|today|tomorrow|+N>.")
registry.register("rm", cmd_remove, help_text="Delete a task: /rm <id>.", aliases=["del", "delete"])
registry.register("clear", cmd_clear, help_text="Delete all completed tasks.")
registry.register("filter", cmd_filter, help_text="Filter the list: /filter all|active|completed.")
registry.register("date", cmd_date, help_text="Select a day: /date <YYYY-MM-DD|today|tomorrow|week|+N>.")
registry.register("week", cmd_week, help_text="Show/shift the week strip: /week [next|prev|today].")
registry.register("reload", cmd_reload, help_text="Reload tasks from the backend.")
registry.register("login", cmd_login, help_text="Sign in: /login <email> <password>.")
registry.register("signup", cmd_signup, help_text="Create an account: /signup <email> <password> [name].")
registry.register("link", cmd_link, help_text="Email a one-time sign-in link: /link <email>.")
registry.register("verify", cmd_verify, help_text="Use an emailed code: /verify <email> <code> [--recovery].")
registry.register("forgot", cmd_forgot, help_text="Email a password reset link: /forgot <email>.")
registry.register("newpass", cmd_newpass, help_text="Finish a reset: /newpass <new> <confirm>.")
registry.register("logout", cmd_logout, help_text="Sign out (clears the task list).")
registry.register("whoami", cmd_whoami, help_text="Show the signed-in user.")
registry.register("refresh", cmd_refresh, help_text="Refresh the session token.")


def handle_plain_text(state: AppState, text: str) -> str:
    """Plain input behaves like the task input box: add for the selected day."""
    task = state.controller.add(text)
    if task is None:
        return "Nothing to add (empty text)."
    return f"Added {task.id} on {task.date}: {task.text}"
