"""Priority Resolver: pick the single mode whose rules govern this turn."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from modekeeper.modes.controller import ModeController
from modekeeper.modes.definitions import PRECEDENCE, ModeDefinition
from modekeeper.state.config import CoordinatorConfig
from modekeeper.state.models import ModeState
from modekeeper.state.persistence import StateStore


@dataclass(frozen=True)
class ResolvedMode:
    definition: ModeDefinition
    state: ModeState
    controller: ModeController

    @property
    def mode(self) -> str:
        return self.definition.key


class PriorityResolver:
    def __init__(self, store: StateStore, config: Optional[CoordinatorConfig] = None) -> None:
        self.store = store
        self.config = config or CoordinatorConfig()

    def controllers(self) -> List[ModeController]:
        return [ModeController(mode, self.store, self.config) for mode in PRECEDENCE]

    def active_modes(self) -> List[ResolvedMode]:
        """Every active mode, highest precedence first."""
        resolved = []
        for controller in self.controllers():
            state = controller.read()
            if state is not None and state.active:
                resolved.append(ResolvedMode(controller.definition, state, controller))
        return resolved

    def resolve(self) -> Optional[ResolvedMode]:
        active = self.active_modes()
        return active[0] if active else None


__all__ = ["PriorityResolver", "ResolvedMode"]
