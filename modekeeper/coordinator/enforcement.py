"""Enforcement Engine: decide whether the assistant may stop.

The engine reads state and may clear it, but never increments the iteration
counter. A blocked stop is a continue step; the caller records it through
the mode controller.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from modekeeper.coordinator.resolver import ResolvedMode
from modekeeper.modes.prompts import enforcement_message
from modekeeper.modes.validation import detect_completion, validate_can_continue
from modekeeper.state.config import CoordinatorConfig
from modekeeper.state.logger import log_event


class Outcome(str, Enum):
    NO_MODE = "no-mode"
    ALLOWED = "allowed"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class Decision:
    """Stop verdict.

    Attributes:
        outcome: no-mode, allowed or blocked
        mode: Mode that produced the verdict
        message: Text to surface when blocked
        reason: Short machine-readable cause
        cleared: Whether evaluating removed the mode's state
    """

    outcome: Outcome
    mode: Optional[str] = None
    message: Optional[str] = None
    reason: Optional[str] = None
    cleared: bool = False

    @property
    def blocked(self) -> bool:
        return self.outcome is Outcome.BLOCKED


class EnforcementEngine:
    def __init__(self, config: Optional[CoordinatorConfig] = None) -> None:
        self.config = config or CoordinatorConfig()

    def evaluate(self, resolved: Optional[ResolvedMode], *, user_abort: bool = False) -> Decision:
        if resolved is None:
            return Decision(outcome=Outcome.NO_MODE)

        definition, state = resolved.definition, resolved.state
        mode = definition.key

        if not validate_can_continue(state):
            if not state.active: reason = "inactive"
            elif state.at_ceiling: reason = "max-iterations"
            else: reason = "terminal-phase"
            return self._allow_and_clear(resolved, reason)
        if user_abort:
            return Decision(outcome=Outcome.ALLOWED, mode=mode, reason="user-abort")
        if not definition.blocks_stop:
            return Decision(outcome=Outcome.ALLOWED, mode=mode, reason="advisory")
        if not self.config.enforcement.enforces(mode):
            return Decision(outcome=Outcome.ALLOWED, mode=mode, reason="not-enforced")

        return Decision(
            outcome=Outcome.BLOCKED,
            mode=mode,
            message=enforcement_message(definition, state),
            reason=f"{state.phase.value}:{state.iteration}/{state.max_iterations}",
        )

    def _allow_and_clear(self, resolved: ResolvedMode, reason: str) -> Decision:
        cleared = resolved.controller.cancel()
        return Decision(outcome=Outcome.ALLOWED, mode=resolved.mode, reason=reason, cleared=cleared)

    def scan_completion(self, text: Optional[str], active: Sequence[ResolvedMode]) -> List[str]:
        """Complete every active mode whose exact marker appears in ``text``.

        Returns the names of the modes that were completed.
        """
        completed = []
        if not text:
            return completed
        for resolved in active:
            if not detect_completion(resolved.definition, resolved.state, text):
                continue
            resolved.controller.complete()
            completed.append(resolved.mode)
            log_event(
                event="completion.detected",
                component="enforcement",
                mode=resolved.mode,
                iteration=resolved.state.iteration,
            )
        return completed


__all__ = ["Decision", "EnforcementEngine", "Outcome"]
