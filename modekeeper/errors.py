"""Exception hierarchy shared by every modekeeper component."""
from __future__ import annotations


class ModekeeperError(RuntimeError):
    """Base class for coordinator failures."""


class StateError(ModekeeperError):
    """Raised when a mode state document cannot be used as requested."""


class InvalidTransitionError(StateError, ValueError):
    """Raised when a phase change is not an edge of the transition table."""

    def __init__(self, mode: str, source: str, target: str) -> None:
        super().__init__(f"Invalid phase transition for {mode}: {source} -> {target}")
        self.mode = mode
        self.source = source
        self.target = target


class UnknownModeError(ModekeeperError, ValueError):
    """Raised when a mode name has no definition."""


class UnknownAgentError(ModekeeperError, LookupError):
    """Raised when a delegation names an agent type with no model tier."""

    def __init__(self, agent_type: str, original: str | None = None) -> None:
        detail = f" (from {original})" if original and original != agent_type else ""
        super().__init__(f"Unknown agent type: {agent_type}{detail}")
        self.agent_type = agent_type


class EventValidationError(ModekeeperError, ValueError):
    """Raised when a hook payload lacks a field its event variant requires."""


__all__ = [
    "ModekeeperError",
    "StateError",
    "InvalidTransitionError",
    "UnknownModeError",
    "UnknownAgentError",
    "EventValidationError",
]
