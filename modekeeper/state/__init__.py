"""Persisted state, configuration and telemetry for modekeeper."""
from modekeeper.state.config import CoordinatorConfig, load_config
from modekeeper.state.logger import event_timer, log_event
from modekeeper.state.models import (
    BackgroundTask,
    DetectionAction,
    DetectionResult,
    ModeState,
    Phase,
    Scope,
    TaskStatus,
    TodoItem,
    Verification,
)
from modekeeper.state.paths import resolve_home, resolve_project_root
from modekeeper.state.persistence import ReadResult, StateStore

__all__ = [
    "BackgroundTask",
    "CoordinatorConfig",
    "DetectionAction",
    "DetectionResult",
    "ModeState",
    "Phase",
    "ReadResult",
    "Scope",
    "StateStore",
    "TaskStatus",
    "TodoItem",
    "Verification",
    "event_timer",
    "load_config",
    "log_event",
    "resolve_home",
    "resolve_project_root",
]
