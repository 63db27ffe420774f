"""Tests for the scoped JSON state store and the ModeState model."""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from modekeeper.state.models import ModeState, Phase, Scope, Verification
from modekeeper.state.persistence import StateStore


def test_paths_follow_scope_layout(store: StateStore, project: Path, home: Path):
    assert store.path_for(Scope.LOCAL, "ralph") == project / ".omd" / "state" / "ralph-state.json"
    assert store.path_for("global", "ultrawork") == home / ".omd" / "state" / "ultrawork-state.json"


def test_write_then_read_round_trip(store: StateStore):
    assert store.write(Scope.LOCAL, "ralph", {"active": True, "iteration": 2})

    result = store.read(Scope.LOCAL, "ralph")

    assert result.exists is True
    assert result.data == {"active": True, "iteration": 2}


def test_missing_document_is_absent(store: StateStore):
    result = store.read(Scope.LOCAL, "autopilot")

    assert result.exists is False
    assert result.data is None


@pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]", "\"text\"", ""])
def test_malformed_document_is_absent(store: StateStore, content: str):
    path = store.path_for(Scope.LOCAL, "ralph")
    path.parent.mkdir(parents=True)
    path.write_text(content, encoding="utf-8")

    assert store.read(Scope.LOCAL, "ralph").exists is False


def test_read_effective_prefers_local(store: StateStore):
    store.write(Scope.GLOBAL, "ultrawork", {"origin": "global"})
    store.write(Scope.LOCAL, "ultrawork", {"origin": "local"})

    result = store.read_effective("ultrawork")

    assert result.data == {"origin": "local"}


def test_read_effective_falls_back_to_global(store: StateStore):
    store.write(Scope.GLOBAL, "ultrawork", {"origin": "global"})

    result = store.read_effective("ultrawork")

    assert result.exists
    assert result.data == {"origin": "global"}


def test_write_leaves_no_temp_files(store: StateStore):
    store.write(Scope.LOCAL, "ralph", {"active": True})
    store.write(Scope.LOCAL, "ralph", {"active": False})

    files = sorted(p.name for p in store.root(Scope.LOCAL).iterdir())
    assert files == ["ralph-state.json"]
    assert json.loads((store.root(Scope.LOCAL) / "ralph-state.json").read_text())["active"] is False


def test_write_failure_returns_false(tmp_path: Path, home: Path, project: Path):
    blocker = tmp_path / "blocked"
    blocker.write_text("not a directory")
    store = StateStore(blocker, home=home)

    assert store.write(Scope.LOCAL, "ralph", {"active": True}) is False


def test_clear_is_idempotent(store: StateStore):
    store.write(Scope.LOCAL, "ralph", {"active": True})

    assert store.clear(Scope.LOCAL, "ralph") is True
    assert store.clear(Scope.LOCAL, "ralph") is True
    assert store.read(Scope.LOCAL, "ralph").exists is False


def test_mode_state_round_trip_keeps_extra():
    state = ModeState(
        mode="ralph",
        goal="fix the build",
        iteration=3,
        max_iterations=10,
        last_verification=Verification(approved=False, feedback="tests fail"),
        extra={"completion_promise": "DONE"},
    )

    restored = ModeState.from_dict(json.loads(json.dumps(state.to_dict())))

    assert restored == state
    assert restored.extra["completion_promise"] == "DONE"


def test_mode_state_accepts_legacy_keys():
    state = ModeState.from_dict(
        {"active": True, "prompt": "ship it", "reinforcement_count": 4},
        mode="ultrawork",
        default_max_iterations=50,
    )

    assert state.mode == "ultrawork"
    assert state.goal == "ship it"
    assert state.phase is Phase.EXECUTING
    assert state.iteration == 1
    assert state.max_iterations == 50
    assert state.extra["reinforcement_count"] == 4


def test_mode_state_only_true_is_active():
    assert ModeState.from_dict({"mode": "ralph", "active": "yes"}).active is False


def test_mode_state_rejects_unknown_phase():
    with pytest.raises(ValueError):
        ModeState.from_dict({"mode": "ralph", "phase": "dreaming"})


def test_mode_state_is_immutable():
    state = ModeState(mode="ralph")
    with pytest.raises(AttributeError):
        state.iteration = 5  # type: ignore[misc]
    with pytest.raises(TypeError):
        state.extra["x"] = 1  # type: ignore[index]
