"""Session Restore: re-announce active modes when a new session starts.

Output order is fixed: one message per restored mode in precedence order,
then the incomplete-todo reminder, then ancillary notes (background tasks
still running, the notepad's Priority Context section).
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional

from modekeeper.coordinator.background import BackgroundTaskRegistry
from modekeeper.coordinator.resolver import PriorityResolver
from modekeeper.modes import prompts
from modekeeper.modes.validation import validate_can_continue
from modekeeper.state.config import CoordinatorConfig
from modekeeper.state.logger import log_event
from modekeeper.state.models import TodoItem
from modekeeper.state.paths import local_root
from modekeeper.state.persistence import StateStore, read_json_file

NOTEPAD_FILENAME = "notepad.md"
_PRIORITY_SECTION = re.compile(r"^## Priority Context[ \t]*\n(.*?)(?=^## |\Z)", re.MULTILINE | re.DOTALL)
_HTML_COMMENT = re.compile(r"<!--.*?-->", re.DOTALL)


@dataclass(frozen=True)
class RestoreReport:
    messages: List[str] = field(default_factory=list)
    restored: List[str] = field(default_factory=list)
    cleared: List[str] = field(default_factory=list)
    incomplete_todos: int = 0

    @property
    def context(self) -> str:
        return "\n\n".join(self.messages)


def _todo_items(data: object) -> Iterable[TodoItem]:
    if isinstance(data, dict):
        data = data.get("todos")
    if not isinstance(data, list):
        return []
    return [TodoItem.from_dict(item) for item in data]


def todo_sources(project_dir: Path, home: Path) -> List[Path]:
    sources: List[Path] = []
    global_dir = home / ".factory" / "todos"
    if global_dir.is_dir():
        sources.extend(sorted(global_dir.glob("*.json")))
    sources.append(local_root(project_dir) / "todos.json")
    sources.append(project_dir / ".factory" / "todos.json")
    return sources


def count_incomplete_todos(project_dir: Path, home: Path) -> int:
    """Count todos that are neither completed nor cancelled across every source."""
    total = 0
    for path in todo_sources(project_dir, home):
        total += sum(1 for item in _todo_items(read_json_file(path)) if item.is_open)
    return total


def read_priority_context(project_dir: Path) -> str:
    """Return the notepad's Priority Context section with HTML comments removed."""
    path = local_root(project_dir) / NOTEPAD_FILENAME
    try:
        content = path.read_text(encoding="utf-8")
    except OSError:
        return ""
    match = _PRIORITY_SECTION.search(content)
    if match is None:
        return ""
    return _HTML_COMMENT.sub("", match.group(1)).strip()


class SessionRestore:
    def __init__(self, store: StateStore, config: Optional[CoordinatorConfig] = None) -> None:
        self.store = store
        self.config = config or CoordinatorConfig()
        self.resolver = PriorityResolver(store, self.config)

    def run(self, now: Optional[datetime] = None) -> RestoreReport:
        messages: List[str] = []
        restored: List[str] = []
        cleared: List[str] = []

        for resolved in self.resolver.active_modes():
            if not validate_can_continue(resolved.state):
                resolved.controller.cancel()
                cleared.append(resolved.mode)
                continue
            state = resolved.controller.increment_iteration() or resolved.state
            messages.append(prompts.restore_message(resolved.definition, state, now))
            restored.append(resolved.mode)

        restore = self.config.restore
        incomplete = 0
        if restore.todos:
            incomplete = count_incomplete_todos(self.store.project_dir, self.store.home)
            reminder = prompts.todo_reminder(incomplete)
            if reminder:
                messages.append(reminder)

        if restore.background_tasks:
            pending = BackgroundTaskRegistry(self.store).pending()
            note = prompts.background_tasks_note([task.description for task in pending])
            if note:
                messages.append(note)

        if restore.notepad:
            note = prompts.priority_context_note(read_priority_context(self.store.project_dir))
            if note:
                messages.append(note)

        log_event(
            event="session.restore",
            component="session_restore",
            restored=restored,
            cleared=cleared,
            incomplete_todos=incomplete,
        )
        return RestoreReport(messages=messages, restored=restored, cleared=cleared, incomplete_todos=incomplete)


__all__ = [
    "RestoreReport",
    "SessionRestore",
    "count_incomplete_todos",
    "read_priority_context",
    "todo_sources",
]
