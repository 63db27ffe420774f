"""Filesystem locations shared by the state store, config loader and telemetry."""
from __future__ import annotations

import os
from pathlib import Path

STATE_DIRNAME = ".omd"


def resolve_home() -> Path:
    """Return the user home used for global state (``OMD_HOME`` overrides)."""
    env_home = os.environ.get("OMD_HOME")
    if env_home:
        return Path(env_home).expanduser()
    return Path.home()


def resolve_project_root(directory: Path | str | None = None) -> Path:
    """Resolve the project directory for a hook invocation.

    The event's ``cwd`` wins, then ``CLAUDE_PROJECT_DIR``, then the process
    working directory.
    """
    if directory:
        return Path(directory).expanduser().resolve()
    env_root = os.environ.get("CLAUDE_PROJECT_DIR")
    if env_root:
        return Path(env_root).expanduser().resolve()
    return Path.cwd().resolve()


def local_root(project_dir: Path | str) -> Path:
    return Path(project_dir) / STATE_DIRNAME


def global_root(home: Path | str | None = None) -> Path:
    return Path(home if home is not None else resolve_home()) / STATE_DIRNAME


__all__ = ["STATE_DIRNAME", "global_root", "local_root", "resolve_home", "resolve_project_root"]
