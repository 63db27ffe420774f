"""Mode Controller: lifecycle operations for one mode in one project.

Every operation re-reads the document from disk, applies a pure transform
and writes the result back. Two hooks racing on the same document can lose
an update; the last writer wins.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Callable, Mapping, Optional

from modekeeper.errors import InvalidTransitionError, StateError
from modekeeper.modes.definitions import ModeDefinition, ModeType, can_transition, get_definition
from modekeeper.modes.prompts import activation_message
from modekeeper.state.config import CoordinatorConfig
from modekeeper.state.logger import log_event
from modekeeper.state.models import ModeState, Phase, Verification, utc_now
from modekeeper.state.persistence import StateStore


@dataclass(frozen=True)
class Activation:
    """Result of an activation attempt.

    Attributes:
        activated: False when the mode was already active
        state: The new state, or the existing one when activation was rejected
        message: Text to surface to the assistant
        durable: False when the state could not be written to its primary scope
    """

    activated: bool
    state: Optional[ModeState]
    message: str
    durable: bool = True


class ModeController:
    def __init__(
        self,
        mode: ModeType | str,
        store: StateStore,
        config: Optional[CoordinatorConfig] = None,
    ) -> None:
        self.definition: ModeDefinition = get_definition(mode)
        self.store = store
        self.config = config or CoordinatorConfig()

    @property
    def key(self) -> str:
        return self.definition.key

    @property
    def max_iterations(self) -> int:
        return self.config.modes.max_iterations_for(self.key, self.definition.default_max_iterations)

    def read(self) -> Optional[ModeState]:
        """Return the effective state, or None when absent or unreadable."""
        result = self.store.read_effective(self.key, self.definition.scopes)
        if not result.exists or result.data is None:
            return None
        try:
            return ModeState.from_dict(
                result.data,
                mode=self.key,
                default_phase=self.definition.initial_phase,
                default_max_iterations=self.max_iterations,
            )
        except (TypeError, ValueError) as exc:
            log_event(
                event="state.invalid",
                component="mode_controller",
                level="warn",
                mode=self.key,
                path=str(result.path),
                error=str(exc),
            )
            return None

    def is_active(self) -> bool:
        state = self.read()
        return state is not None and state.active

    def _write(self, state: ModeState) -> bool:
        """Write to every scope; durability is judged by the primary scope."""
        payload = state.to_dict()
        results = [self.store.write(scope, self.key, payload) for scope in self.definition.scopes]
        return results[0]

    def activate(
        self,
        goal: str,
        *,
        session_id: Optional[str] = None,
        completion_promise: Optional[str] = None,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> Activation:
        existing = self.read()
        if existing is not None and existing.active:
            return Activation(
                activated=False,
                state=existing,
                message=f"{self.definition.title} is already active (iteration {existing.iteration}/{existing.max_iterations}).",
            )

        fields = dict(extra or {})
        if self.definition.mode is ModeType.RALPH:
            fields.setdefault("completion_promise", completion_promise or "TASK_COMPLETE")
        elif self.definition.mode is ModeType.ULTRAWORK:
            fields.setdefault("reinforcement_count", 0)

        state = ModeState(
            mode=self.key,
            active=True,
            goal=goal.strip(),
            phase=self.definition.initial_phase,
            iteration=1,
            max_iterations=self.max_iterations,
            session_id=session_id,
            extra=fields,
        )
        durable = self._write(state)
        log_event(
            event="mode.activate",
            component="mode_controller",
            level="info" if durable else "warn",
            mode=self.key,
            session_id=session_id,
            durable=durable,
        )
        return Activation(activated=True, state=state, message=activation_message(self.definition, state), durable=durable)

    def advance(self, transform: Callable[[ModeState], ModeState]) -> Optional[ModeState]:
        """Apply ``transform`` to the current state and persist the result.

        Returns None when the mode has no state.

        Raises:
            StateError: If the transform would decrease the iteration counter
        """
        current = self.read()
        if current is None:
            return None
        updated = transform(current)
        if updated.iteration < current.iteration:
            raise StateError(f"{self.key}: iteration cannot decrease ({current.iteration} -> {updated.iteration})")
        durable = self._write(updated)
        log_event(
            event="mode.advance",
            component="mode_controller",
            level="debug",
            mode=self.key,
            phase=updated.phase.value,
            iteration=updated.iteration,
            durable=durable,
        )
        return updated

    def increment_iteration(self) -> Optional[ModeState]:
        """Record one continue step."""

        def _step(state: ModeState) -> ModeState:
            updates: dict = {"last_checked_at": utc_now()}
            if self.definition.mode is ModeType.ULTRAWORK:
                updates["reinforcement_count"] = int(state.extra.get("reinforcement_count", 0)) + 1
            return replace(state, iteration=state.iteration + 1).with_extra(**updates)

        return self.advance(_step)

    def transition(self, target: Phase | str) -> Optional[ModeState]:
        """Move to ``target`` phase.

        Raises:
            InvalidTransitionError: If the shared phase table forbids the move
        """
        target = Phase(target)

        def _move(state: ModeState) -> ModeState:
            if not can_transition(state.phase, target):
                raise InvalidTransitionError(self.key, state.phase.value, target.value)
            return replace(state, phase=target)

        return self.advance(_move)

    def record_verification(self, approved: bool, feedback: str = "") -> Optional[ModeState]:
        """Store a verification verdict; a rejection sends verifying back to executing."""

        def _verify(state: ModeState) -> ModeState:
            updated = replace(state, last_verification=Verification(approved=approved, feedback=feedback))
            if not approved and state.phase is Phase.VERIFYING:
                updated = replace(updated, phase=Phase.EXECUTING)
            return updated

        return self.advance(_verify)

    def complete(self) -> Optional[ModeState]:
        """Mark the mode complete and remove its documents."""
        current = self.read()
        if current is None:
            return None
        completed = replace(current, phase=Phase.COMPLETE, active=False)
        self._clear_all()
        log_event(
            event="mode.complete",
            component="mode_controller",
            mode=self.key,
            iteration=completed.iteration,
        )
        return completed

    def _clear_all(self) -> bool:
        return all([self.store.clear(scope, self.key) for scope in self.definition.scopes])

    def cancel(self) -> bool:
        """Remove the mode's documents from every scope. Idempotent."""
        existed = self.read() is not None
        cleared = self._clear_all()
        log_event(
            event="mode.cancel",
            component="mode_controller",
            level="info" if cleared else "warn",
            mode=self.key,
            existed=existed,
        )
        return cleared


__all__ = ["Activation", "ModeController"]
