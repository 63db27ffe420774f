"""Tests for the modekeeper state CLI."""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from modekeeper.api.state import main
from modekeeper.modes.controller import ModeController
from modekeeper.state.models import Phase, Scope
from modekeeper.state.persistence import StateStore


def run_cli(project: Path, *args: str) -> int:
    return main(["--project-dir", str(project), *args])


def test_status_json_without_state(project: Path, capsys):
    assert run_cli(project, "status", "--json") == 0

    status = json.loads(capsys.readouterr().out)
    assert status == {"project_dir": str(project.resolve()), "governing": None, "modes": []}


def test_activate_then_status(project: Path, store: StateStore, capsys):
    assert run_cli(project, "activate", "ralph", "fix", "the", "build", "--promise", "SHIPPED") == 0
    assert run_cli(project, "activate", "ultraqa", "green", "suite") == 0
    capsys.readouterr()

    assert run_cli(project, "status", "--json") == 0
    status = json.loads(capsys.readouterr().out)

    assert status["governing"] == "ralph"
    assert [m["mode"] for m in status["modes"]] == ["ralph", "ultraqa"]
    assert status["modes"][0]["goal"] == "fix the build"
    assert status["modes"][0]["extra"]["completion_promise"] == "SHIPPED"


def test_status_text(project: Path, store: StateStore, capsys):
    ModeController("ultrawork", store).activate("migrate")

    assert run_cli(project, "status") == 0

    out = capsys.readouterr().out
    assert "ultrawork" in out and "iteration=1/50" in out
    assert "Governing mode: ultrawork" in out


def test_activate_twice_fails(project: Path, capsys):
    run_cli(project, "activate", "ralph", "goal")

    assert run_cli(project, "activate", "ralph", "again") == 1
    assert "already active" in capsys.readouterr().err


def test_cancel_all(project: Path, store: StateStore, capsys):
    ModeController("ralph", store).activate("goal")
    ModeController("ultrawork", store).activate("goal")

    assert run_cli(project, "cancel", "--all") == 0
    assert not store.read(Scope.LOCAL, "ralph").exists
    assert not store.read(Scope.GLOBAL, "ultrawork").exists


def test_cancel_requires_target(project: Path):
    with pytest.raises(SystemExit):
        run_cli(project, "cancel")


def test_continue_defaults_to_governing_mode(project: Path, store: StateStore, capsys):
    ModeController("ultraqa", store).activate("goal")
    ModeController("autopilot", store).activate("goal")

    assert run_cli(project, "continue") == 0

    assert "autopilot iteration 2/15" in capsys.readouterr().out
    assert ModeController("ultraqa", store).read().iteration == 1


def test_continue_without_mode_fails(project: Path, capsys):
    assert run_cli(project, "continue") == 1
    assert "no active mode" in capsys.readouterr().err


def test_phase_and_verify(project: Path, store: StateStore, capsys):
    ModeController("autopilot", store).activate("goal")

    assert run_cli(project, "phase", "autopilot", "executing") == 0
    assert run_cli(project, "phase", "autopilot", "verifying") == 0
    assert run_cli(project, "verify", "autopilot", "--reject", "--feedback", "missing tests") == 0

    state = ModeController("autopilot", store).read()
    assert state.phase is Phase.EXECUTING
    assert state.last_verification.approved is False
    assert state.last_verification.feedback == "missing tests"


def test_invalid_phase_move_is_an_error(project: Path, store: StateStore, capsys):
    ModeController("autopilot", store).activate("goal")

    assert run_cli(project, "phase", "autopilot", "complete") == 1
    assert "planning" in capsys.readouterr().err
