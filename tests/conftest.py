"""Shared fixtures: every test gets its own project directory and home."""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from modekeeper.state.persistence import StateStore


@pytest.fixture
def home(tmp_path: Path) -> Path:
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def project(tmp_path: Path, home: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate state, config and telemetry under tmp_path."""
    path = tmp_path / "project"
    path.mkdir()
    monkeypatch.setenv("OMD_HOME", str(home))
    monkeypatch.setenv("OMD_LOG_PATH", str(tmp_path / "logs" / "modekeeper.log"))
    monkeypatch.setenv("OMD_LOG_LEVEL", "debug")
    monkeypatch.delenv("CLAUDE_PROJECT_DIR", raising=False)
    monkeypatch.delenv("OMD_DISABLE", raising=False)
    monkeypatch.delenv("OMD_DEBUG", raising=False)
    return path


@pytest.fixture
def store(project: Path, home: Path) -> StateStore:
    return StateStore(project, home=home)


@pytest.fixture
def log_path(tmp_path: Path) -> Path:
    return tmp_path / "logs" / "modekeeper.log"


def _write_json(path: Path, payload) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


@pytest.fixture
def write_json():
    return _write_json
