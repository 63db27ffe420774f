"""State Store: scoped JSON documents under ``.omd/state``.

Each mode keeps one document per scope. The local scope lives under the
project directory, the global scope under the user home. Reads treat a
missing, unreadable or non-object document as absent; writes go through a
temp file and ``os.replace`` so a concurrent reader never sees a partial
document. There is no locking; the last writer wins.
"""
from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional

from modekeeper.state.logger import log_event
from modekeeper.state.models import Scope
from modekeeper.state.paths import global_root, local_root, resolve_home

STATE_SUFFIX = "-state.json"


def _atomic_write_json(path: Path, payload: Mapping[str, Any]) -> None:
    """Write JSON payload to path atomically (temp file + rename)."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_path = tempfile.mkstemp(
        dir=str(target.parent),
        prefix=".tmp_state_",
        suffix=target.suffix or ".json",
        text=True,
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2, sort_keys=True)
            handle.write("\n")

        os.replace(temp_path, target)
    except Exception:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise


def read_json_file(path: Path) -> Any:
    """Return parsed JSON from ``path`` or None when missing or malformed."""
    try:
        with Path(path).open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except (OSError, ValueError):
        return None


@dataclass(frozen=True)
class ReadResult:
    """Result of reading one scoped document.

    Attributes:
        exists: True only when the file held a JSON object
        data: The parsed object (None when absent)
        path: Where the document lives (or would live)
    """

    exists: bool
    data: Optional[Dict[str, Any]]
    path: Path


class StateStore:
    """Scoped document store for one project directory."""

    def __init__(self, project_dir: Path | str, home: Path | str | None = None) -> None:
        self.project_dir = Path(project_dir)
        self.home = Path(home) if home is not None else resolve_home()

    def root(self, scope: Scope | str) -> Path:
        if Scope(scope) is Scope.LOCAL:
            return local_root(self.project_dir) / "state"
        return global_root(self.home) / "state"

    def path_for(self, scope: Scope | str, key: str) -> Path:
        return self.root(scope) / f"{key}{STATE_SUFFIX}"

    def read(self, scope: Scope | str, key: str) -> ReadResult:
        path = self.path_for(scope, key)
        data = read_json_file(path)
        if not isinstance(data, dict):
            return ReadResult(exists=False, data=None, path=path)
        return ReadResult(exists=True, data=data, path=path)

    def read_effective(self, key: str, scopes: Iterable[Scope | str] = (Scope.LOCAL, Scope.GLOBAL)) -> ReadResult:
        """Probe ``scopes`` in order and return the first document found."""
        last: Optional[ReadResult] = None
        for scope in scopes:
            result = self.read(scope, key)
            if result.exists:
                return result
            last = last or result
        if last is None:
            return ReadResult(exists=False, data=None, path=self.path_for(Scope.LOCAL, key))
        return last

    def write(self, scope: Scope | str, key: str, data: Mapping[str, Any]) -> bool:
        path = self.path_for(scope, key)
        try:
            _atomic_write_json(path, data)
        except (OSError, TypeError, ValueError) as exc:
            log_event(
                event="state.write_failed",
                component="state_store",
                level="warn",
                key=key,
                scope=Scope(scope).value,
                path=str(path),
                error=str(exc),
            )
            return False
        return True

    def clear(self, scope: Scope | str, key: str) -> bool:
        """Delete a document. Returns True when it is gone afterwards."""
        path = self.path_for(scope, key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            log_event(
                event="state.clear_failed",
                component="state_store",
                level="warn",
                key=key,
                path=str(path),
                error=str(exc),
            )
            return False
        return True


__all__ = ["ReadResult", "StateStore", "read_json_file"]
