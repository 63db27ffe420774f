"""Execution mode catalogue and lifecycle."""
from modekeeper.modes.controller import Activation, ModeController
from modekeeper.modes.definitions import (
    DEFINITIONS,
    PRECEDENCE,
    ModeDefinition,
    ModeType,
    can_transition,
    get_definition,
)
from modekeeper.modes.validation import detect_completion, validate_can_continue

__all__ = [
    "Activation",
    "DEFINITIONS",
    "ModeController",
    "ModeDefinition",
    "ModeType",
    "PRECEDENCE",
    "can_transition",
    "detect_completion",
    "get_definition",
    "validate_can_continue",
]
