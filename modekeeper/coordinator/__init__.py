"""Cross-mode coordination: precedence, stop enforcement, restore, delegation."""
from modekeeper.coordinator.background import BackgroundTaskRegistry
from modekeeper.coordinator.enforcement import Decision, EnforcementEngine, Outcome
from modekeeper.coordinator.resolver import PriorityResolver, ResolvedMode
from modekeeper.coordinator.restore import RestoreReport, SessionRestore

__all__ = [
    "BackgroundTaskRegistry",
    "Decision",
    "EnforcementEngine",
    "Outcome",
    "PriorityResolver",
    "ResolvedMode",
    "RestoreReport",
    "SessionRestore",
]
