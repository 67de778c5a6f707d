# tests/test_commands.py

from __future__ import annotations

from types import SimpleNamespace

import pytest

from daily_planner.auth.session import SessionManager
from daily_planner.cli.bootstrap import create_initial_state, shutdown_state
from daily_planner.cli.commands import CommandRegistry, render_board
from daily_planner.connectors.console_connector import handle_line
from daily_planner.core.state import AppState
from daily_planner.tasks.controller import TaskListController

from .conftest import TODAY


@pytest.fixture()
def state(settings: SimpleNamespace, local_controller: TaskListController) -> AppState:
    return AppState(settings=settings, controller=local_controller)


@pytest.fixture()
def cloud_state(settings: SimpleNamespace, cloud_controller: TaskListController, session: SessionManager) -> AppState:
    settings.backend = "supabase"
    settings.auth_mode = "password"
    return AppState(settings=settings, controller=cloud_controller, session=session)


def test_command_registry_routes_2_and_3_params(state: AppState) -> None:
    reg = CommandRegistry()
    called = {"h2": 0, "h3": 0}
    notes: list[str] = []

    def h2(state, args):
        called["h2"] += 1
        return "h2:" + ",".join(args)

    def h3(state, args, emit):
        called["h3"] += 1
        if emit is not None:
            emit("note")
        return "h3"

    reg.register("a", h2, "a", aliases=["alpha"])
    reg.register("b", h3, "b")

    assert reg.handle(state, '/a x "y z"') == "h2:x,y z"
    assert reg.handle(state, "/ALPHA") == "h2:"
    assert reg.handle(state, "/b", emit=notes.append) == "h3"
    assert called == {"h2": 2, "h3": 1}
    assert notes == ["note"]
    assert "/alpha" not in reg.build_help()


def test_command_registry_unknown_and_non_command(state: AppState) -> None:
    reg = CommandRegistry()
    assert reg.handle(state, "hello") is None
    assert "Unknown command" in (reg.handle(state, "/nope") or "")
    assert "Empty command" in (reg.handle(state, "/") or "")
    assert "Could not parse" in (reg.handle(state, '/a "unterminated') or "")


def test_plain_text_adds_for_selected_day(state: AppState) -> None:
    reply = handle_line(state, "water the plants")
    assert reply.startswith("Added ")
    [task] = state.controller.tasks
    assert (task.text, task.date) == ("water the plants", TODAY)
    assert handle_line(state, "   ") == "Nothing to add (empty text)."


def test_add_with_flags(state: AppState) -> None:
    handle_line(state, '/add "dentist appointment" --date tomorrow --priority high --notes "bring card"')
    [task] = state.controller.tasks
    assert task.date == "2026-02-06"
    assert task.priority.value == "high"
    assert task.notes == "bring card"

    assert handle_line(state, "/add something --priority urgent").startswith("[ValidationError]")
    assert handle_line(state, "/add something --date").startswith("[ValidationError]")
    assert handle_line(state, "/add x --date 2026-02-30").startswith("[ValidationError]")
    assert len(state.controller.tasks) == 1


def test_draft_priority_and_notes_apply_to_next_add(state: AppState) -> None:
    handle_line(state, "/priority low")
    handle_line(state, "/notes after lunch")
    handle_line(state, "nap")
    [task] = state.controller.tasks
    assert task.priority.value == "low"
    assert task.notes == "after lunch"
    assert state.controller.view.draft_notes == ""


def test_task_lifecycle_through_commands(state: AppState) -> None:
    handle_line(state, "first")
    handle_line(state, "second")
    second, first = state.controller.tasks

    assert handle_line(state, f"/done {first.id}") == "Completed: first"
    board = render_board(state.controller)
    assert "1 task left for this day" in board
    assert "(/clear removes completed tasks)" in board
    assert "1/2 done" in board

    assert handle_line(state, f"/edit {second.id}").startswith(f"Editing {second.id}")
    assert state.controller.view.editing_id == second.id
    assert "(editing)" in render_board(state.controller)
    assert handle_line(state, f'/edit {second.id} --text "second, revised"') == f"Saved {second.id}: second, revised"
    assert state.controller.view.editing_id is None

    assert handle_line(state, f"/move {second.id} +3") == "Moved to 2026-02-08: second, revised"
    assert handle_line(state, "/clear") == "Cleared 1 completed task(s)."
    assert handle_line(state, "/clear") == "No completed tasks to clear."
    assert handle_line(state, f"/rm {second.id}") == "Deleted: second, revised"
    assert state.controller.tasks == []
    assert "No tasks yet" in render_board(state.controller)


def test_unknown_ids_and_usage_errors(state: AppState) -> None:
    assert handle_line(state, "/done 42").startswith("[TaskNotFound]")
    assert handle_line(state, "/done").startswith("[ValidationError] Usage")
    assert handle_line(state, "/move 42").startswith("[ValidationError] Usage")
    assert handle_line(state, "/filter done").startswith("[ValidationError]")


def test_view_commands(state: AppState) -> None:
    handle_line(state, "today's task")
    handle_line(state, "/add later --date +2")

    assert handle_line(state, "/date +2") == "Selected 2026-02-07 (Sat, Feb 7)."
    assert state.controller.remaining_count() == 1
    assert handle_line(state, "/filter completed") == "Filter set to completed."
    assert "No tasks yet" in render_board(state.controller)
    handle_line(state, "/filter all")

    week = handle_line(state, "/week next")
    assert week.startswith(" Thu, Feb 12 ")
    assert handle_line(state, "/week today").startswith(" Thu, Feb 5 ")
    assert handle_line(state, "/week sideways").startswith("Usage")
    assert handle_line(state, "/reload") == "Reloaded 2 task(s)."


def test_auth_commands_need_auth_enabled(state: AppState) -> None:
    assert handle_line(state, "/login ada@example.com correct-horse").startswith("[Unauthenticated]")
    assert "Backend: local" in handle_line(state, "/status")


def test_cloud_flow(cloud_state: AppState) -> None:
    assert handle_line(cloud_state, "milk").startswith("[Unauthenticated]")
    assert handle_line(cloud_state, "/whoami") == "Not signed in (state: anonymous)."
    assert handle_line(cloud_state, "/login ada@example.com wrong-horse").startswith("[InvalidCredentials]")

    notes: list[str] = []
    assert handle_line(cloud_state, "/login ada@example.com correct-horse", emit=notes.append) == (
        "Signed in as ada@example.com."
    )
    assert notes == ["Signing in..."]
    handle_line(cloud_state, "milk")
    assert [t.text for t in cloud_state.controller.tasks] == ["milk"]
    assert "id=user-ada" in handle_line(cloud_state, "/whoami")

    assert handle_line(cloud_state, "/logout") == "Signed out."
    assert cloud_state.controller.tasks == []


def test_magic_link_commands(cloud_state: AppState) -> None:
    cloud_state.settings.auth_mode = "magic_link"
    assert handle_line(cloud_state, "/link bob@example.com") == "Check bob@example.com for your sign-in link."
    assert handle_line(cloud_state, "/verify bob@example.com 123456") == "Signed in as bob@example.com."
    assert handle_line(cloud_state, "/logout") == "Signed out."


@pytest.mark.parametrize(
    "mode,line",
    [
        ("password", "/link bob@example.com"),
        ("password", "/verify bob@example.com 123456"),
        ("magic_link", "/login ada@example.com correct-horse"),
        ("magic_link", "/signup ada@example.com correct-horse"),
        ("magic_link", "/forgot ada@example.com"),
        ("magic_link", "/verify ada@example.com 123456 --recovery"),
        ("magic_link", "/newpass abcdef abcdef"),
    ],
)
def test_auth_commands_follow_auth_mode(cloud_state: AppState, mode: str, line: str) -> None:
    cloud_state.settings.auth_mode = mode
    reply = handle_line(cloud_state, line)
    assert reply == f"[ValidationError] Not available with PLANNER_AUTH_MODE={mode}."
    assert cloud_state.session.owner_id is None


def test_password_reset_commands(cloud_state: AppState) -> None:
    assert handle_line(cloud_state, "/newpass abcdef abcdef").startswith("[InvalidSession]")
    assert handle_line(cloud_state, "/forgot bob@example.com") == "Password reset email sent to bob@example.com."
    assert "Set a new password" in handle_line(cloud_state, "/verify bob@example.com 123456 --recovery")
    assert handle_line(cloud_state, "/newpass abcdef abcdeg") == "[ValidationError] Passwords do not match."
    assert handle_line(cloud_state, "/newpass abcdef abcdef") == "Password updated successfully!"


def test_bootstrap_local_mode_persists(settings: SimpleNamespace) -> None:
    state = create_initial_state(settings=settings)
    assert state.session is None
    handle_line(state, "survives restart")
    shutdown_state(state)

    again = create_initial_state(settings=settings)
    assert [t.text for t in again.controller.tasks] == ["survives restart"]


def test_bootstrap_dev_auth_requires_sign_in(settings: SimpleNamespace) -> None:
    settings.auth_mode = "dev"
    state = create_initial_state(settings=settings)
    assert state.session is not None
    assert handle_line(state, "task").startswith("[Unauthenticated]")

    handle_line(state, "/login someone@example.com anything1")
    handle_line(state, "task")
    assert [t.text for t in state.controller.tasks] == ["task"]
    shutdown_state(state)


def test_bootstrap_rejects_incomplete_supabase_settings(settings: SimpleNamespace) -> None:
    settings.backend = "supabase"
    settings.auth_mode = "password"
    with pytest.raises(ValueError):
        create_initial_state(settings=settings)
