"""Static catalogue of execution modes.

Each mode shares one phase machine; modes differ in their starting phase,
iteration ceiling, storage scopes, completion marker and whether an active
instance blocks the assistant from stopping.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from modekeeper.errors import UnknownModeError
from modekeeper.state.models import Phase, Scope


class ModeType(str, Enum):
    AUTOPILOT = "autopilot"
    RALPH = "ralph"
    ULTRAWORK = "ultrawork"
    ULTRAQA = "ultraqa"
    ECOMODE = "ecomode"


DEFAULT_COMPLETION_PROMISE = "TASK_COMPLETE"


@dataclass(frozen=True)
class ModeDefinition:
    """Behaviour shared by every instance of a mode.

    Attributes:
        mode: The mode type
        title: Human-readable name used in messages
        description: One-line summary for status output
        initial_phase: Phase a freshly activated state starts in
        default_max_iterations: Ceiling used unless configuration overrides it
        scopes: Storage scopes, primary first
        blocks_stop: Whether an active state blocks stopping
        marker_template: Completion marker, ``{promise}`` is substituted for
            modes that carry a completion promise
    """

    mode: ModeType
    title: str
    description: str
    initial_phase: Phase
    default_max_iterations: int
    scopes: Tuple[Scope, ...]
    blocks_stop: bool
    marker_template: str

    @property
    def key(self) -> str:
        return self.mode.value

    @property
    def primary_scope(self) -> Scope:
        return self.scopes[0]

    def marker(self, promise: Optional[str] = None) -> str:
        return self.marker_template.format(promise=promise or DEFAULT_COMPLETION_PROMISE)

    def marker_pattern(self, promise: Optional[str] = None) -> "re.Pattern[str]":
        """Exact-match pattern for the marker; whitespace inside the tags is tolerated."""
        marker = self.marker(promise)
        match = re.fullmatch(r"(<[^>]+>)(.*)(</[^>]+>)", marker)
        if match is None:
            return re.compile(re.escape(marker))
        open_tag, body, close_tag = match.groups()
        return re.compile(re.escape(open_tag) + r"\s*" + re.escape(body) + r"\s*" + re.escape(close_tag))


DEFINITIONS: Mapping[ModeType, ModeDefinition] = MappingProxyType(
    {
        ModeType.AUTOPILOT: ModeDefinition(
            mode=ModeType.AUTOPILOT,
            title="Autopilot",
            description="autonomous plan, execute and verify",
            initial_phase=Phase.PLANNING,
            default_max_iterations=15,
            scopes=(Scope.LOCAL,),
            blocks_stop=True,
            marker_template="<autopilot-complete>GOAL_ACHIEVED</autopilot-complete>",
        ),
        ModeType.RALPH: ModeDefinition(
            mode=ModeType.RALPH,
            title="Ralph",
            description="persist until the work is verified complete",
            initial_phase=Phase.EXECUTING,
            default_max_iterations=100,
            scopes=(Scope.LOCAL,),
            blocks_stop=True,
            marker_template="<promise>{promise}</promise>",
        ),
        ModeType.ULTRAWORK: ModeDefinition(
            mode=ModeType.ULTRAWORK,
            title="Ultrawork",
            description="maximum parallelism through background delegation",
            initial_phase=Phase.EXECUTING,
            default_max_iterations=50,
            scopes=(Scope.LOCAL, Scope.GLOBAL),
            blocks_stop=True,
            marker_template="<ultrawork-complete>ALL_TASKS_DONE</ultrawork-complete>",
        ),
        ModeType.ULTRAQA: ModeDefinition(
            mode=ModeType.ULTRAQA,
            title="UltraQA",
            description="test, fix and repeat until the quality goal is met",
            initial_phase=Phase.EXECUTING,
            default_max_iterations=10,
            scopes=(Scope.LOCAL,),
            blocks_stop=True,
            marker_template="<ultraqa-complete>QUALITY_GOAL_MET</ultraqa-complete>",
        ),
        ModeType.ECOMODE: ModeDefinition(
            mode=ModeType.ECOMODE,
            title="Ecomode",
            description="token-economical model routing",
            initial_phase=Phase.EXECUTING,
            default_max_iterations=100,
            scopes=(Scope.LOCAL,),
            blocks_stop=False,
            marker_template="<ecomode-complete>DONE</ecomode-complete>",
        ),
    }
)

# Highest precedence first.
PRECEDENCE: Tuple[ModeType, ...] = (
    ModeType.AUTOPILOT,
    ModeType.RALPH,
    ModeType.ULTRAWORK,
    ModeType.ULTRAQA,
    ModeType.ECOMODE,
)

TRANSITIONS: Mapping[Phase, frozenset] = MappingProxyType(
    {
        Phase.PLANNING: frozenset({Phase.EXECUTING, Phase.FAILED}),
        Phase.EXECUTING: frozenset({Phase.VERIFYING, Phase.COMPLETE, Phase.FAILED}),
        Phase.VERIFYING: frozenset({Phase.EXECUTING, Phase.COMPLETE, Phase.FAILED}),
        Phase.COMPLETE: frozenset(),
        Phase.FAILED: frozenset(),
    }
)


def get_definition(mode: ModeType | str) -> ModeDefinition:
    try:
        return DEFINITIONS[ModeType(mode)]
    except ValueError:
        raise UnknownModeError(f"Unknown mode: {mode}") from None


def can_transition(source: Phase | str, target: Phase | str) -> bool:
    """Return True when ``source -> target`` is allowed (same phase is a no-op)."""
    source, target = Phase(source), Phase(target)
    return source == target or target in TRANSITIONS[source]


__all__ = [
    "DEFAULT_COMPLETION_PROMISE",
    "DEFINITIONS",
    "ModeDefinition",
    "ModeType",
    "PRECEDENCE",
    "TRANSITIONS",
    "can_transition",
    "get_definition",
]
