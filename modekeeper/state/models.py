"""Data models for persisted execution-mode state.

This module defines the typed records that hooks exchange through the state
store. Every record is serialized to JSON and re-parsed on each hook
invocation; nothing here is cached between processes.

Design principles:
- Frozen instances (frozen=True); use dataclasses.replace() to "update"
- Mappings converted to MappingProxyType in __post_init__
- to_dict/from_dict helpers for JSON serialization
- from_dict is tolerant of legacy keys and keeps unknown keys in ``extra``
- Descriptive ValueError for values that cannot be coerced
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple


class Phase(str, Enum):
    """Lifecycle phase of a mode.

    Attributes:
        PLANNING: Breaking the goal down into work items
        EXECUTING: Working through the plan
        VERIFYING: Checking the result before claiming completion
        COMPLETE: Goal achieved (terminal)
        FAILED: Gave up or was stopped by the iteration ceiling (terminal)
    """

    PLANNING = "planning"
    EXECUTING = "executing"
    VERIFYING = "verifying"
    COMPLETE = "complete"
    FAILED = "failed"


TERMINAL_PHASES = frozenset({Phase.COMPLETE, Phase.FAILED})


class Scope(str, Enum):
    LOCAL = "local"
    GLOBAL = "global"


class TodoStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TaskStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO 8601 string (``Z`` suffix accepted) into an aware datetime."""
    if not isinstance(value, str) or not value:
        return None
    raw = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class Verification:
    """Outcome of the last verification pass.

    Attributes:
        approved: Whether the reviewer accepted the work
        feedback: Reviewer notes (required reading when rejected)
        timestamp: ISO 8601 timestamp of the verdict
    """

    approved: bool
    feedback: str = ""
    timestamp: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {"approved": self.approved, "feedback": self.feedback, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Verification":
        return cls(
            approved=bool(data.get("approved", False)),
            feedback=str(data.get("feedback") or ""),
            timestamp=str(data.get("timestamp") or utc_now()),
        )


# Keys owned by ModeState itself; anything else in a document lands in extra.
_MODE_STATE_KEYS = frozenset(
    {
        "mode",
        "active",
        "started_at",
        "goal",
        "original_prompt",
        "prompt",
        "phase",
        "iteration",
        "max_iterations",
        "last_verification",
        "session_id",
        "extra",
    }
)


@dataclass(frozen=True)
class ModeState:
    """Persisted state of one execution mode.

    One document exists per mode type per scope. Activation overwrites it,
    cancellation and completion delete it.

    Attributes:
        mode: Mode type name (e.g. "ralph")
        active: Whether this mode currently governs stop enforcement
        started_at: ISO 8601 timestamp of activation
        goal: The user task that justified activation
        phase: Current lifecycle phase
        iteration: Continue-step counter, starts at 1 and never decreases
        max_iterations: Ceiling after which stopping is allowed
        last_verification: Last verification verdict, if any
        session_id: Session that activated the mode
        extra: Immutable map of mode-specific fields
    """

    mode: str
    active: bool = True
    started_at: str = field(default_factory=utc_now)
    goal: str = ""
    phase: Phase = Phase.EXECUTING
    iteration: int = 1
    max_iterations: int = 10
    last_verification: Optional[Verification] = None
    session_id: Optional[str] = None
    extra: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self) -> None:
        if not isinstance(self.phase, Phase):
            try:
                object.__setattr__(self, "phase", Phase(self.phase))
            except ValueError as exc:
                raise ValueError(f"Unknown phase for {self.mode}: {self.phase!r}") from exc

        if not isinstance(self.extra, MappingProxyType):
            object.__setattr__(self, "extra", MappingProxyType(dict(self.extra)))

        if self.iteration < 0:
            raise ValueError("ModeState iteration must be >= 0")
        if self.max_iterations < 1:
            raise ValueError("ModeState max_iterations must be >= 1")

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES

    @property
    def at_ceiling(self) -> bool:
        return self.iteration >= self.max_iterations

    def started(self) -> Optional[datetime]:
        return parse_timestamp(self.started_at)

    def with_extra(self, **updates: Any) -> "ModeState":
        """Return a copy whose extra map has ``updates`` merged in."""
        merged = dict(self.extra)
        merged.update(updates)
        return replace(self, extra=merged)

    def to_dict(self) -> Dict[str, Any]:
        """Convert state to dict for JSON serialization.

        ``original_prompt`` duplicates ``goal`` so readers of the older
        document layout keep working.
        """
        return {
            "mode": self.mode,
            "active": self.active,
            "started_at": self.started_at,
            "goal": self.goal,
            "original_prompt": self.goal,
            "phase": self.phase.value,
            "iteration": self.iteration,
            "max_iterations": self.max_iterations,
            "last_verification": self.last_verification.to_dict() if self.last_verification else None,
            "session_id": self.session_id,
            "extra": dict(self.extra),
        }

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        *,
        mode: Optional[str] = None,
        default_phase: Phase = Phase.EXECUTING,
        default_max_iterations: int = 10,
    ) -> "ModeState":
        """Reconstruct state from a stored document.

        Args:
            data: Parsed JSON document
            mode: Mode name to use when the document does not carry one
            default_phase: Phase for documents written without one
            default_max_iterations: Ceiling for documents written without one

        Returns:
            ModeState instance

        Raises:
            ValueError: If a field holds a value that cannot be coerced
            TypeError: If numeric fields hold non-numeric values
        """
        extra: Dict[str, Any] = {}
        stored_extra = data.get("extra")
        if isinstance(stored_extra, Mapping):
            extra.update(stored_extra)
        for key, value in data.items():
            if key not in _MODE_STATE_KEYS:
                extra[key] = value

        verification = data.get("last_verification")
        goal = data.get("goal") or data.get("original_prompt") or data.get("prompt") or ""

        return cls(
            mode=str(data.get("mode") or mode or ""),
            active=data.get("active") is True,
            started_at=str(data.get("started_at") or utc_now()),
            goal=str(goal),
            phase=data.get("phase") or default_phase,
            iteration=int(data.get("iteration") or 1),
            max_iterations=int(data.get("max_iterations") or default_max_iterations),
            last_verification=Verification.from_dict(verification) if isinstance(verification, Mapping) else None,
            session_id=data.get("session_id"),
            extra=extra,
        )


class DetectionAction(str, Enum):
    ACTIVATE = "activate"
    CANCEL = "cancel"
    INJECT = "inject"


@dataclass(frozen=True)
class DetectionResult:
    """Outcome of scanning one user prompt for mode keywords.

    Ephemeral: produced per prompt and never persisted.

    Attributes:
        detected: Whether an actionable intent was found
        mode: Mode or intent name (None when nothing was detected, or for
            a cancel-everything command)
        matched_keywords: Keywords that matched, in declaration order
        confidence: Score in [0, 1]
        action: What the hook should do with the detection
        injection: Guidance text for inject-only intents
    """

    detected: bool
    mode: Optional[str] = None
    matched_keywords: Tuple[str, ...] = field(default_factory=tuple)
    confidence: float = 0.0
    action: DetectionAction = DetectionAction.ACTIVATE
    injection: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.matched_keywords, tuple):
            object.__setattr__(self, "matched_keywords", tuple(self.matched_keywords))
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError("DetectionResult confidence must be within [0, 1]")

    @classmethod
    def none(cls) -> "DetectionResult":
        return cls(detected=False)


@dataclass(frozen=True)
class TodoItem:
    """Read-only view of a todo written by the assistant's task tracker."""

    content: str = ""
    status: str = TodoStatus.PENDING.value

    @property
    def is_open(self) -> bool:
        return self.status not in (TodoStatus.COMPLETED.value, TodoStatus.CANCELLED.value)

    @classmethod
    def from_dict(cls, data: Any) -> "TodoItem":
        if isinstance(data, str):
            return cls(content=data)
        if not isinstance(data, Mapping):
            return cls()
        return cls(content=str(data.get("content") or ""), status=str(data.get("status") or ""))


@dataclass(frozen=True)
class BackgroundTask:
    """A delegation launched with ``run_in_background``.

    Attributes:
        task_id: Unique identifier
        description: Short description from the delegation call
        subagent_type: Agent type the work was delegated to
        status: Current status
        started_at: ISO 8601 timestamp of launch
        completed_at: ISO 8601 timestamp of completion (None while running)
    """

    task_id: str
    description: str
    subagent_type: Optional[str] = None
    status: TaskStatus = TaskStatus.RUNNING
    started_at: str = field(default_factory=utc_now)
    completed_at: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.status, TaskStatus):
            object.__setattr__(self, "status", TaskStatus(self.status))

    @property
    def pending(self) -> bool:
        return self.status is TaskStatus.RUNNING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "description": self.description,
            "subagent_type": self.subagent_type,
            "status": self.status.value,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BackgroundTask":
        return cls(
            task_id=str(data["task_id"]),
            description=str(data.get("description") or ""),
            subagent_type=data.get("subagent_type"),
            status=data.get("status", TaskStatus.RUNNING.value),
            started_at=str(data.get("started_at") or utc_now()),
            completed_at=data.get("completed_at"),
        )
