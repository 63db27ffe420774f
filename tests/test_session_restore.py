"""Tests for session restore, todo counting and ancillary notes."""
from __future__ import annotations

from datetime import timedelta
from pathlib import Path

from modekeeper.coordinator.background import MAX_FINISHED, BackgroundTaskRegistry
from modekeeper.coordinator.restore import SessionRestore, count_incomplete_todos, read_priority_context
from modekeeper.modes.controller import ModeController
from modekeeper.state.config import CoordinatorConfig
from modekeeper.state.models import Scope, TaskStatus
from modekeeper.state.persistence import StateStore


def test_restore_without_state_is_empty(store: StateStore):
    report = SessionRestore(store).run()

    assert report.messages == []
    assert report.context == ""


def test_restore_increments_and_reports_active_modes(store: StateStore):
    ModeController("ultraqa", store).activate("make the suite green")
    ModeController("autopilot", store).activate("build the dashboard")

    report = SessionRestore(store).run()

    assert report.restored == ["autopilot", "ultraqa"]
    assert "AUTOPILOT MODE RESTORED" in report.messages[0]
    assert "ULTRAQA MODE RESTORED" in report.messages[1]
    assert "Goal: build the dashboard" in report.messages[0]
    assert "Iteration: 2/15" in report.messages[0]
    assert ModeController("ultraqa", store).read().iteration == 2


def test_restore_reports_elapsed_time(store: StateStore):
    ModeController("ralph", store).activate("goal")
    started = ModeController("ralph", store).read().started()

    report = SessionRestore(store).run(now=started + timedelta(hours=2, minutes=5))

    assert "(2h 5m ago)" in report.messages[0]


def test_restore_clears_modes_at_ceiling(store: StateStore):
    controller = ModeController("ralph", store)
    controller.activate("goal")
    data = controller.read().to_dict()
    data.update(iteration=100, max_iterations=100)
    store.write(Scope.LOCAL, "ralph", data)

    report = SessionRestore(store).run()

    assert report.cleared == ["ralph"]
    assert report.restored == []
    assert controller.read() is None


def test_restore_clears_terminal_modes(store: StateStore):
    controller = ModeController("autopilot", store)
    controller.activate("goal")
    store.write(Scope.LOCAL, "autopilot", {**controller.read().to_dict(), "phase": "complete"})

    report = SessionRestore(store).run()

    assert report.cleared == ["autopilot"]
    assert report.messages == []
    assert controller.read() is None


def test_restore_uses_global_fallback(store: StateStore):
    ModeController("ultrawork", store).activate("goal")
    store.clear(Scope.LOCAL, "ultrawork")

    report = SessionRestore(store).run()

    assert report.restored == ["ultrawork"]


def test_count_incomplete_todos_across_sources(project: Path, home: Path, write_json):
    write_json(
        home / ".factory" / "todos" / "session-a.json",
        [{"content": "a", "status": "pending"}, {"content": "b", "status": "completed"}],
    )
    write_json(
        project / ".omd" / "todos.json",
        {"todos": [{"content": "c", "status": "in_progress"}, {"content": "d", "status": "cancelled"}]},
    )
    write_json(project / ".factory" / "todos.json", [{"content": "e", "status": "pending"}])
    (home / ".factory" / "todos" / "broken.json").write_text("{nope")

    assert count_incomplete_todos(project, home) == 3


def test_todo_reminder_follows_mode_messages(store: StateStore, project: Path, write_json):
    ModeController("ralph", store).activate("goal")
    write_json(
        project / ".omd" / "todos.json",
        [
            {"content": "one", "status": "pending"},
            {"content": "two", "status": "pending"},
            {"content": "three", "status": "in_progress"},
            {"content": "four", "status": "completed"},
            {"content": "five", "status": "completed"},
        ],
    )

    report = SessionRestore(store).run()

    assert report.incomplete_todos == 3
    assert len(report.messages) == 2
    assert "RALPH MODE RESTORED" in report.messages[0]
    assert "3 incomplete todos" in report.messages[1]


def test_priority_context_strips_comments(project: Path):
    notepad = project / ".omd" / "notepad.md"
    notepad.parent.mkdir(parents=True)
    notepad.write_text(
        "# Notepad\n\n## Priority Context\n<!-- keep this short -->\nAPI keys live in vault.\n\n## Working Memory\nscratch\n",
        encoding="utf-8",
    )

    assert read_priority_context(project) == "API keys live in vault."


def test_ancillary_notes_come_last(store: StateStore, project: Path):
    ModeController("ultrawork", store).activate("goal")
    BackgroundTaskRegistry(store).register("explore the parser", subagent_type="explore")
    notepad = project / ".omd" / "notepad.md"
    notepad.write_text("## Priority Context\nship friday\n", encoding="utf-8")

    report = SessionRestore(store).run()

    assert "ULTRAWORK MODE RESTORED" in report.messages[0]
    assert "explore the parser" in report.messages[1]
    assert "ship friday" in report.messages[2]


def test_restore_sections_can_be_disabled(store: StateStore, project: Path, write_json):
    write_json(project / ".omd" / "todos.json", [{"content": "one", "status": "pending"}])
    config = CoordinatorConfig.from_dict({"restore": {"todos": False}})

    assert SessionRestore(store, config).run().messages == []


def test_background_registry_lifecycle(store: StateStore):
    registry = BackgroundTaskRegistry(store)
    first = registry.register("scan docs", subagent_type="researcher")
    registry.register("scan code", subagent_type="explore")

    finished = registry.complete(subagent_type="explore")

    assert finished.description == "scan code"
    assert finished.status is TaskStatus.COMPLETED
    assert [task.task_id for task in registry.pending()] == [first.task_id]
    assert registry.complete("missing") is None


def test_background_registry_drops_old_finished_tasks(store: StateStore):
    registry = BackgroundTaskRegistry(store)
    for idx in range(MAX_FINISHED + 2):
        registry.register(f"task {idx}")
        registry.complete()

    tasks = registry.tasks()

    assert len(tasks) == MAX_FINISHED
    assert tasks[0].description == "task 2"
