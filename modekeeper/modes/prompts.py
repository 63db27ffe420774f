"""Message text emitted by the hooks.

All text returned here ends up in the assistant's context, either as
``additionalContext`` or as a stop ``message``.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from modekeeper.modes.definitions import ModeDefinition, ModeType
from modekeeper.state.models import ModeState, Phase

# Next step per phase, shared by every mode.
PHASE_GUIDANCE = {
    Phase.PLANNING: "Break the goal into concrete tasks, record them as todos, then move to execution.",
    Phase.EXECUTING: "Continue with the next pending task. Mark each todo complete as soon as it is done.",
    Phase.VERIFYING: "Check every requirement against the goal. Fix anything that is missing before claiming completion.",
    Phase.COMPLETE: "The goal is achieved.",
    Phase.FAILED: "The mode has ended without reaching its goal.",
}

MODE_RULES = {
    ModeType.AUTOPILOT: (
        "Work autonomously through planning, execution and verification.",
        "Do not ask for confirmation between steps.",
    ),
    ModeType.RALPH: (
        "Do not stop until every todo is complete and the work is verified.",
        "Output the completion promise only when it is true.",
    ),
    ModeType.ULTRAWORK: (
        "Fire independent tool calls in parallel.",
        "Delegate exploration with run_in_background=true.",
        "Track every step as a todo.",
    ),
    ModeType.ULTRAQA: (
        "Run the tests, fix what fails, run them again.",
        "Repeat until the build and the test suite pass.",
    ),
    ModeType.ECOMODE: (
        "Prefer the smallest model that can do the job.",
        "Keep responses and delegations brief.",
    ),
}

INJECTIONS = {
    "deepsearch": (
        "<search-mode>\n"
        "Search thoroughly before answering. Launch parallel searches across the codebase, "
        "follow references to their definitions and report every relevant location.\n"
        "</search-mode>"
    ),
    "analyze": (
        "<analyze-mode>\n"
        "Analyze before acting. Gather evidence, trace the problem to its root cause and "
        "state your conclusions with the supporting facts.\n"
        "</analyze-mode>"
    ),
}


def _tag(definition: ModeDefinition, kind: str) -> str:
    return f"{definition.key}-{kind}"


def _marker_for(definition: ModeDefinition, state: ModeState) -> str:
    return definition.marker(state.extra.get("completion_promise"))


def format_elapsed(started_at: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Human-readable duration since ``started_at`` (e.g. ``2h 5m``)."""
    if started_at is None:
        return "unknown"
    now = now or datetime.now(timezone.utc)
    seconds = max(int((now - started_at).total_seconds()), 0)
    hours, rest = divmod(seconds, 3600)
    minutes = rest // 60
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m"
    return "<1m"


def activation_message(definition: ModeDefinition, state: ModeState) -> str:
    tag = _tag(definition, "mode")
    lines = [
        f"<{tag}>",
        "",
        f"[{definition.title.upper()} MODE ACTIVATED]",
        "",
        f"Goal: {state.goal}" if state.goal else "Goal: (not stated)",
        f"Phase: {state.phase.value}",
        f"Iteration budget: {state.max_iterations}",
        "",
    ]
    lines.extend(f"- {rule}" for rule in MODE_RULES[definition.mode])
    lines.extend(["", PHASE_GUIDANCE[state.phase]])
    if definition.blocks_stop:
        lines.extend(["", f"When the goal is fully achieved, output: {_marker_for(definition, state)}"])
    lines.extend(["", f"</{tag}>"])
    return "\n".join(lines)


def enforcement_message(definition: ModeDefinition, state: ModeState) -> str:
    tag = _tag(definition, "enforcement")
    lines = [
        f"<{tag}>",
        "",
        f"[{definition.title.upper()} MODE: STOP BLOCKED - Iteration {state.iteration}/{state.max_iterations}]",
        "",
        f"Phase: {state.phase.value}",
        f"Goal: {state.goal}" if state.goal else "Goal: (not stated)",
        "",
        PHASE_GUIDANCE[state.phase],
    ]
    feedback = verification_feedback(definition, state)
    if feedback:
        lines.extend(["", feedback])
    lines.extend(
        [
            "",
            f"You may stop once the goal is achieved and you have output: {_marker_for(definition, state)}",
            "",
            f"</{tag}>",
        ]
    )
    return "\n".join(lines)


def verification_feedback(definition: ModeDefinition, state: ModeState) -> Optional[str]:
    verification = state.last_verification
    if verification is None or verification.approved:
        return None
    feedback = verification.feedback or "no details given"
    return f"[{definition.title.upper()}] Verification rejected: {feedback}. Address it before verifying again."


def restore_message(definition: ModeDefinition, state: ModeState, now: Optional[datetime] = None) -> str:
    tag = _tag(definition, "restored")
    started = state.started()
    started_text = started.isoformat() if started else state.started_at
    lines = [
        f"<{tag}>",
        "",
        f"[{definition.title.upper()} MODE RESTORED]",
        "",
        f"Started: {started_text} ({format_elapsed(started, now)} ago)",
        f"Goal: {state.goal}" if state.goal else "Goal: (not stated)",
        f"Phase: {state.phase.value}",
        f"Iteration: {state.iteration}/{state.max_iterations}",
        "",
        PHASE_GUIDANCE[state.phase],
    ]
    feedback = verification_feedback(definition, state)
    if feedback:
        lines.extend(["", feedback])
    lines.extend(["", f"</{tag}>"])
    return "\n".join(lines)


def cancel_message(cancelled: list) -> str:
    if not cancelled:
        return "[MODE CANCEL] No active mode to cancel."
    names = ", ".join(cancelled)
    return f"[MODE CANCEL] Cancelled: {names}. Normal stopping behaviour is restored."


def todo_reminder(count: int) -> Optional[str]:
    if count <= 0:
        return None
    noun = "todo" if count == 1 else "todos"
    return (
        "<todo-continuation>\n\n"
        f"[PENDING TASKS DETECTED]\n\nYou have {count} incomplete {noun} from a previous session. "
        "Continue working on them.\n\n</todo-continuation>"
    )


def background_tasks_note(descriptions: list) -> Optional[str]:
    if not descriptions:
        return None
    lines = ["[BACKGROUND TASKS] Still running:"]
    lines.extend(f"- {description}" for description in descriptions)
    return "\n".join(lines)


def priority_context_note(text: str) -> Optional[str]:
    text = text.strip()
    if not text:
        return None
    return f"<notepad-priority>\n\n## Priority Context\n\n{text}\n\n</notepad-priority>"


__all__ = [
    "INJECTIONS",
    "PHASE_GUIDANCE",
    "activation_message",
    "background_tasks_note",
    "cancel_message",
    "enforcement_message",
    "format_elapsed",
    "priority_context_note",
    "restore_message",
    "todo_reminder",
    "verification_feedback",
]
