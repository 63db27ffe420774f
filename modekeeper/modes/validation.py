"""Completion detection and continue checks."""
from __future__ import annotations

from typing import Optional

from modekeeper.modes.definitions import ModeDefinition
from modekeeper.state.models import ModeState


def detect_completion(definition: ModeDefinition, state: Optional[ModeState], text: Optional[str]) -> bool:
    """Return True when ``text`` contains the exact completion marker for ``state``.

    Prose that merely talks about finishing never matches.
    """
    if not text or state is None:
        return False
    pattern = definition.marker_pattern(state.extra.get("completion_promise"))
    return pattern.search(text) is not None


def validate_can_continue(state: Optional[ModeState]) -> bool:
    """Return True when another continue step is allowed."""
    if state is None or not state.active:
        return False
    return not state.is_terminal and not state.at_ceiling


__all__ = ["detect_completion", "validate_can_continue"]
