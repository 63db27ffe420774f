#!/usr/bin/env python3
"""Hook bridge: the single entry point for every assistant hook.

Usage from the assistant's hook settings::

    modekeeper-hook --hook=stop
    python -m modekeeper.hooks.bridge --hook=user-prompt-submit

The bridge reads one JSON payload from stdin and always writes exactly one
JSON object to stdout with ``continue: true``. It exits 0 on every path,
including internal errors, so a coordinator fault can never wedge the
assistant.
"""
from __future__ import annotations

# ===== IMPORTS ===== #

## ===== STDLIB ===== ##
import argparse
import json
import os
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence
##-##

## ===== LOCAL ===== ##
from modekeeper.coordinator.background import BackgroundTaskRegistry
from modekeeper.coordinator.delegation import is_agent_call, process_pre_tool_use, runs_in_background
from modekeeper.coordinator.enforcement import EnforcementEngine
from modekeeper.coordinator.resolver import PriorityResolver
from modekeeper.coordinator.restore import SessionRestore
from modekeeper.errors import EventValidationError
from modekeeper.hooks.events import (
    HOST_EVENT_NAMES,
    HookName,
    PostToolUseEvent,
    PreToolUseEvent,
    SessionStartEvent,
    StopEvent,
    SubagentStopEvent,
    UserPromptSubmitEvent,
    parse_event,
    resolve_hook_name,
)
from modekeeper.hooks.transcript import read_last_assistant_text
from modekeeper.keywords.detector import KeywordDetector
from modekeeper.modes.controller import ModeController
from modekeeper.modes.definitions import PRECEDENCE, ModeType
from modekeeper.modes.prompts import cancel_message
from modekeeper.state.config import CoordinatorConfig, load_config
from modekeeper.state.logger import event_timer, log_event
from modekeeper.state.models import DetectionAction
from modekeeper.state.paths import resolve_project_root
from modekeeper.state.persistence import StateStore
##-##

#-#

# ===== GLOBALS ===== #
CONTINUE: Dict[str, Any] = {"continue": True}
PARALLEL_MODES = (ModeType.ULTRAWORK.value, ModeType.RALPH.value)
_LEADING_COMMAND = re.compile(r"^\s*/\S+\s*")
#-#


@dataclass(frozen=True)
class HookContext:
    project_dir: Path
    store: StateStore
    config: CoordinatorConfig

    @classmethod
    def for_directory(cls, directory: Optional[str]) -> "HookContext":
        project_dir = resolve_project_root(directory)
        return cls(project_dir=project_dir, store=StateStore(project_dir), config=load_config(project_dir))


def hook_output(
    hook: HookName,
    *,
    context: Optional[str] = None,
    updated_input: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    if not context and updated_input is None:
        return dict(CONTINUE)
    specific: Dict[str, Any] = {"hookEventName": HOST_EVENT_NAMES[hook]}
    if context:
        specific["additionalContext"] = context
    if updated_input is not None:
        specific["updatedInput"] = dict(updated_input)
    return {"continue": True, "hookSpecificOutput": specific}


def disabled() -> bool:
    return os.environ.get("OMD_DISABLE", "").strip().lower() in {"1", "true", "yes"}


# ===== HANDLERS ===== #


def handle_session_start(event: SessionStartEvent, ctx: HookContext) -> Dict[str, Any]:
    report = SessionRestore(ctx.store, ctx.config).run()
    return hook_output(HookName.SESSION_START, context=report.context)


def _cancel_modes(ctx: HookContext, mode: Optional[str]) -> List[str]:
    targets = [mode] if mode else [m.value for m in PRECEDENCE]
    cancelled = []
    for target in targets:
        controller = ModeController(target, ctx.store, ctx.config)
        if controller.read() is None:
            continue
        controller.cancel()
        cancelled.append(target)
    return cancelled


def handle_user_prompt_submit(event: UserPromptSubmitEvent, ctx: HookContext) -> Dict[str, Any]:
    detection = KeywordDetector(ctx.config.keywords).detect(event.prompt)
    if not detection.detected:
        return dict(CONTINUE)

    log_event(
        event="keyword.detected",
        component="keyword_detector",
        level="debug",
        hook=HookName.USER_PROMPT_SUBMIT.value,
        mode=detection.mode,
        action=detection.action.value,
        confidence=detection.confidence,
        keywords=list(detection.matched_keywords),
    )

    if detection.action is DetectionAction.CANCEL:
        cancelled = _cancel_modes(ctx, detection.mode)
        return hook_output(HookName.USER_PROMPT_SUBMIT, context=cancel_message(cancelled))

    if detection.action is DetectionAction.INJECT:
        return hook_output(HookName.USER_PROMPT_SUBMIT, context=detection.injection)

    goal = event.prompt.strip()
    if detection.matched_keywords and detection.matched_keywords[0].startswith("/"):
        goal = _LEADING_COMMAND.sub("", goal, count=1) or goal
    controller = ModeController(detection.mode, ctx.store, ctx.config)
    activation = controller.activate(goal, session_id=event.session_id)
    message = activation.message
    if activation.activated and not activation.durable:
        message += "\n\n[WARNING] Mode state could not be saved; it will not survive this session."
    return hook_output(HookName.USER_PROMPT_SUBMIT, context=message)


def handle_pre_tool_use(event: PreToolUseEvent, ctx: HookContext) -> Dict[str, Any]:
    active = {resolved.mode for resolved in PriorityResolver(ctx.store, ctx.config).active_modes()}
    outcome = process_pre_tool_use(
        event.tool_name,
        event.tool_input,
        auto_background=bool(active.intersection(PARALLEL_MODES)),
        config=ctx.config.delegation,
    )

    final_input = outcome.updated_input if outcome.updated_input is not None else event.tool_input
    if outcome.error is None and is_agent_call(event.tool_name, final_input) and runs_in_background(final_input):
        BackgroundTaskRegistry(ctx.store).register(
            str(final_input.get("description") or ""),
            subagent_type=final_input.get("subagent_type"),
        )

    return hook_output(HookName.PRE_TOOL_USE, context=outcome.context, updated_input=outcome.updated_input)


def _response_text(response: Any) -> str:
    if response is None:
        return ""
    if isinstance(response, str):
        return response
    try:
        return json.dumps(response, default=str)
    except (TypeError, ValueError):
        return str(response)


def handle_post_tool_use(event: PostToolUseEvent, ctx: HookContext) -> Dict[str, Any]:
    text = _response_text(event.tool_response)
    if text:
        active = PriorityResolver(ctx.store, ctx.config).active_modes()
        if active:
            EnforcementEngine(ctx.config).scan_completion(text, active)
    return dict(CONTINUE)


def handle_stop(event: StopEvent, ctx: HookContext) -> Dict[str, Any]:
    resolver = PriorityResolver(ctx.store, ctx.config)
    engine = EnforcementEngine(ctx.config)

    active = resolver.active_modes()
    if active:
        engine.scan_completion(read_last_assistant_text(event.transcript_path), active)

    resolved = resolver.resolve()
    decision = engine.evaluate(resolved, user_abort=event.user_abort)
    log_event(
        event="stop.decision",
        component="enforcement",
        hook=HookName.STOP.value,
        outcome=decision.outcome.value,
        mode=decision.mode,
        reason=decision.reason,
        cleared=decision.cleared or None,
        session_id=event.session_id,
    )
    if not decision.blocked or resolved is None:
        return dict(CONTINUE)

    resolved.controller.increment_iteration()
    return {"continue": True, "message": decision.message}


def handle_subagent_stop(event: SubagentStopEvent, ctx: HookContext) -> Dict[str, Any]:
    BackgroundTaskRegistry(ctx.store).complete(subagent_type=event.subagent_type)
    return dict(CONTINUE)


HANDLERS: Mapping[HookName, Callable[[Any, HookContext], Dict[str, Any]]] = {
    HookName.SESSION_START: handle_session_start,
    HookName.USER_PROMPT_SUBMIT: handle_user_prompt_submit,
    HookName.PRE_TOOL_USE: handle_pre_tool_use,
    HookName.POST_TOOL_USE: handle_post_tool_use,
    HookName.STOP: handle_stop,
    HookName.SUBAGENT_STOP: handle_subagent_stop,
}

#-#

# ===== ENTRY POINT ===== #


def process_hook(hook_name: Optional[str], data: Mapping[str, Any]) -> Dict[str, Any]:
    """Dispatch one payload. Never raises; falls back to ``{"continue": true}``."""
    hook = resolve_hook_name(hook_name)
    if hook is None or disabled():
        return dict(CONTINUE)

    try:
        event = parse_event(hook, data)
        ctx = HookContext.for_directory(event.cwd)
        with event_timer(event="hook.dispatch", component="hook_bridge", level="debug", hook=hook.value) as finalize:
            result = HANDLERS[hook](event, ctx)
            finalize({"project_dir": str(ctx.project_dir), "has_output": result != CONTINUE})
        return result
    except EventValidationError as exc:
        log_event(event="hook.error", component="hook_bridge", level="warn", hook=hook.value, error=str(exc))
        return dict(CONTINUE)
    except Exception as exc:
        log_event(
            event="hook.error",
            component="hook_bridge",
            level="error",
            hook=hook.value,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return dict(CONTINUE)


def read_payload(raw: str) -> Dict[str, Any]:
    """Decode stdin; anything that is not a JSON object becomes an empty payload."""
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="modekeeper-hook", description="Run a modekeeper hook on a stdin payload.")
    parser.add_argument("--hook", nargs="?", default=None, help="Hook name (defaults to the payload's hook_event_name)")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args, _unknown = _build_parser().parse_known_args(argv)
    try:
        data = read_payload(sys.stdin.read())
    except (OSError, UnicodeDecodeError):
        data = {}
    hook_name = args.hook or data.get("hook_event_name")
    result = process_hook(hook_name if isinstance(hook_name, str) else None, data)
    sys.stdout.write(json.dumps(result))
    sys.stdout.write("\n")
    sys.stdout.flush()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
