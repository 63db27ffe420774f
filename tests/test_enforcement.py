"""Tests for precedence resolution and stop enforcement."""
from __future__ import annotations

import pytest

from modekeeper.coordinator.enforcement import EnforcementEngine, Outcome
from modekeeper.coordinator.resolver import PriorityResolver
from modekeeper.modes.controller import ModeController
from modekeeper.state.config import CoordinatorConfig
from modekeeper.state.models import Phase, Scope
from modekeeper.state.persistence import StateStore


def activate(store: StateStore, mode: str, **fields) -> ModeController:
    controller = ModeController(mode, store)
    controller.activate(f"{mode} goal")
    if fields:
        state = controller.read().to_dict()
        state.update(fields)
        for scope in controller.definition.scopes:
            store.write(scope, mode, state)
    return controller


def test_resolver_returns_none_without_state(store: StateStore):
    assert PriorityResolver(store).resolve() is None


def test_resolver_picks_highest_precedence(store: StateStore):
    activate(store, "ultraqa")
    activate(store, "ralph")
    activate(store, "ecomode")

    resolver = PriorityResolver(store)

    assert resolver.resolve().mode == "ralph"
    assert [r.mode for r in resolver.active_modes()] == ["ralph", "ultraqa", "ecomode"]


def test_resolver_ignores_inactive_documents(store: StateStore):
    activate(store, "autopilot", active=False)
    activate(store, "ultrawork")

    assert PriorityResolver(store).resolve().mode == "ultrawork"


def test_resolver_reads_global_fallback(store: StateStore):
    activate(store, "ultrawork")
    store.clear(Scope.LOCAL, "ultrawork")

    assert PriorityResolver(store).resolve().mode == "ultrawork"


def test_no_mode_outcome(store: StateStore):
    decision = EnforcementEngine().evaluate(PriorityResolver(store).resolve())

    assert decision.outcome is Outcome.NO_MODE


def test_active_mode_blocks_stop(store: StateStore):
    activate(store, "ralph", iteration=3, max_iterations=10)

    decision = EnforcementEngine().evaluate(PriorityResolver(store).resolve())

    assert decision.blocked
    assert decision.mode == "ralph"
    assert "3/10" in decision.message
    assert "executing" in decision.message


def test_engine_does_not_increment(store: StateStore):
    controller = activate(store, "ralph", iteration=3)

    EnforcementEngine().evaluate(PriorityResolver(store).resolve())

    assert controller.read().iteration == 3


def test_ceiling_allows_stop_and_clears(store: StateStore):
    controller = activate(store, "ralph", iteration=10, max_iterations=10)

    decision = EnforcementEngine().evaluate(PriorityResolver(store).resolve())

    assert decision.outcome is Outcome.ALLOWED
    assert decision.reason == "max-iterations"
    assert decision.cleared
    assert controller.read() is None


@pytest.mark.parametrize("phase", [Phase.COMPLETE, Phase.FAILED])
def test_terminal_phase_allows_stop_and_clears(store: StateStore, phase: Phase):
    controller = activate(store, "autopilot", phase=phase.value)

    decision = EnforcementEngine().evaluate(PriorityResolver(store).resolve())

    assert decision.outcome is Outcome.ALLOWED
    assert decision.reason == "terminal-phase"
    assert controller.read() is None


def test_advisory_mode_allows_without_clearing(store: StateStore):
    controller = activate(store, "ecomode")

    decision = EnforcementEngine().evaluate(PriorityResolver(store).resolve())

    assert decision.outcome is Outcome.ALLOWED
    assert decision.reason == "advisory"
    assert controller.read() is not None


def test_user_abort_allows_without_clearing(store: StateStore):
    controller = activate(store, "ralph")

    decision = EnforcementEngine().evaluate(PriorityResolver(store).resolve(), user_abort=True)

    assert decision.outcome is Outcome.ALLOWED
    assert controller.is_active()


def test_enforcement_can_be_restricted(store: StateStore):
    activate(store, "ultraqa")
    config = CoordinatorConfig.from_dict({"enforcement": {"enforce_modes": ["ralph"]}})

    decision = EnforcementEngine(config).evaluate(PriorityResolver(store, config).resolve())

    assert decision.outcome is Outcome.ALLOWED
    assert decision.reason == "not-enforced"


def test_enforcement_can_be_disabled(store: StateStore):
    activate(store, "ralph")
    config = CoordinatorConfig.from_dict({"enforcement": {"enabled": False}})

    assert not EnforcementEngine(config).evaluate(PriorityResolver(store, config).resolve()).blocked


def test_scan_completion_completes_on_exact_marker(store: StateStore):
    activate(store, "ultrawork")
    activate(store, "ralph")
    resolver = PriorityResolver(store)

    completed = EnforcementEngine().scan_completion(
        "Everything is finished.\n<ultrawork-complete>ALL_TASKS_DONE</ultrawork-complete>",
        resolver.active_modes(),
    )

    assert completed == ["ultrawork"]
    assert resolver.resolve().mode == "ralph"
    assert not store.read(Scope.GLOBAL, "ultrawork").exists


def test_scan_completion_ignores_prose(store: StateStore):
    activate(store, "ralph")
    resolver = PriorityResolver(store)

    assert EnforcementEngine().scan_completion("I think the task is complete now.", resolver.active_modes()) == []
    assert resolver.resolve().mode == "ralph"


def test_blocked_message_repeats_rejected_verification(store: StateStore):
    controller = activate(store, "autopilot", phase="verifying")
    controller.record_verification(False, "coverage dropped")

    decision = EnforcementEngine().evaluate(PriorityResolver(store).resolve())

    assert decision.blocked
    assert "Verification rejected: coverage dropped" in decision.message
    assert "Phase: executing" in decision.message
