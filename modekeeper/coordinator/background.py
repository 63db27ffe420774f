"""Bookkeeping for delegations launched in the background."""
from __future__ import annotations

import uuid
from dataclasses import replace
from typing import List, Optional

from modekeeper.state.logger import log_event
from modekeeper.state.models import BackgroundTask, Scope, TaskStatus, utc_now
from modekeeper.state.persistence import StateStore

REGISTRY_KEY = "background-tasks"
# Finished tasks kept for inspection; older ones are dropped on save.
MAX_FINISHED = 20


class BackgroundTaskRegistry:
    def __init__(self, store: StateStore) -> None:
        self.store = store

    def tasks(self) -> List[BackgroundTask]:
        result = self.store.read(Scope.LOCAL, REGISTRY_KEY)
        if not result.exists or result.data is None:
            return []
        tasks = []
        for raw in result.data.get("tasks") or []:
            if not isinstance(raw, dict):
                continue
            try:
                tasks.append(BackgroundTask.from_dict(raw))
            except (KeyError, ValueError):
                continue
        return tasks

    def _save(self, tasks: List[BackgroundTask]) -> bool:
        finished = [task for task in tasks if not task.pending]
        stale = {task.task_id for task in finished[: max(len(finished) - MAX_FINISHED, 0)]}
        kept = [task for task in tasks if task.task_id not in stale]
        return self.store.write(Scope.LOCAL, REGISTRY_KEY, {"tasks": [task.to_dict() for task in kept]})

    def register(self, description: str, subagent_type: Optional[str] = None) -> BackgroundTask:
        task = BackgroundTask(task_id=uuid.uuid4().hex[:12], description=description, subagent_type=subagent_type)
        tasks = self.tasks()
        tasks.append(task)
        self._save(tasks)
        log_event(
            event="background.register",
            component="background_tasks",
            level="debug",
            task_id=task.task_id,
            subagent_type=subagent_type,
        )
        return task

    def complete(
        self,
        task_id: Optional[str] = None,
        *,
        subagent_type: Optional[str] = None,
        status: TaskStatus = TaskStatus.COMPLETED,
    ) -> Optional[BackgroundTask]:
        """Finish a running task.

        Matches by ``task_id`` when given, otherwise the oldest running task
        (of ``subagent_type`` when given). Returns the finished task, or None
        when nothing matched.
        """
        tasks = self.tasks()
        for index, task in enumerate(tasks):
            if not task.pending:
                continue
            if task_id is not None and task.task_id != task_id:
                continue
            if task_id is None and subagent_type is not None and task.subagent_type != subagent_type:
                continue
            finished = replace(task, status=status, completed_at=utc_now())
            tasks[index] = finished
            self._save(tasks)
            return finished
        return None

    def pending(self) -> List[BackgroundTask]:
        return [task for task in self.tasks() if task.pending]


__all__ = ["BackgroundTaskRegistry", "REGISTRY_KEY"]
