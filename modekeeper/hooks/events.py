"""Typed hook payloads.

Each hook name maps to one frozen event variant. Parsing validates only the
fields a variant needs; anything else in the payload is ignored. Both the
snake_case keys the assistant sends and their camelCase spellings are
accepted.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from modekeeper.errors import EventValidationError


class HookName(str, Enum):
    SESSION_START = "session-start"
    USER_PROMPT_SUBMIT = "user-prompt-submit"
    PRE_TOOL_USE = "pre-tool-use"
    POST_TOOL_USE = "post-tool-use"
    STOP = "stop"
    SUBAGENT_STOP = "subagent-stop"


# Names used by the assistant's settings file and by older hook scripts.
HOOK_ALIASES = MappingProxyType(
    {
        "sessionstart": HookName.SESSION_START,
        "session_start": HookName.SESSION_START,
        "userpromptsubmit": HookName.USER_PROMPT_SUBMIT,
        "user_prompt_submit": HookName.USER_PROMPT_SUBMIT,
        "keyword-detector": HookName.USER_PROMPT_SUBMIT,
        "pretooluse": HookName.PRE_TOOL_USE,
        "pre_tool_use": HookName.PRE_TOOL_USE,
        "posttooluse": HookName.POST_TOOL_USE,
        "post_tool_use": HookName.POST_TOOL_USE,
        "persistent-mode": HookName.STOP,
        "subagentstop": HookName.SUBAGENT_STOP,
        "subagent_stop": HookName.SUBAGENT_STOP,
    }
)

# Host event names written into hookSpecificOutput.hookEventName.
HOST_EVENT_NAMES = MappingProxyType(
    {
        HookName.SESSION_START: "SessionStart",
        HookName.USER_PROMPT_SUBMIT: "UserPromptSubmit",
        HookName.PRE_TOOL_USE: "PreToolUse",
        HookName.POST_TOOL_USE: "PostToolUse",
        HookName.STOP: "Stop",
        HookName.SUBAGENT_STOP: "SubagentStop",
    }
)

USER_ABORT_REASONS = frozenset(
    {"cancel", "abort", "aborted", "interrupt", "user_cancel", "ctrl_c", "manual_stop", "user_interrupt"}
)


def resolve_hook_name(name: Optional[str]) -> Optional[HookName]:
    if not name:
        return None
    lowered = name.strip().lower()
    try:
        return HookName(lowered)
    except ValueError:
        return HOOK_ALIASES.get(lowered)


def _get(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def extract_prompt(data: Mapping[str, Any]) -> str:
    """Pull the prompt text from ``prompt``, ``message.content`` or text ``parts``."""
    prompt = data.get("prompt")
    if isinstance(prompt, str) and prompt:
        return prompt
    message = data.get("message")
    if isinstance(message, Mapping):
        content = message.get("content")
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            return " ".join(
                part["text"]
                for part in content
                if isinstance(part, Mapping) and part.get("type") == "text" and isinstance(part.get("text"), str)
            )
    parts = data.get("parts")
    if isinstance(parts, list):
        return " ".join(
            part["text"]
            for part in parts
            if isinstance(part, Mapping) and part.get("type") == "text" and isinstance(part.get("text"), str)
        )
    return ""


@dataclass(frozen=True)
class HookEvent:
    """Fields every hook payload may carry."""

    session_id: Optional[str] = None
    cwd: Optional[str] = None
    transcript_path: Optional[str] = None
    raw: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}), repr=False)


@dataclass(frozen=True)
class SessionStartEvent(HookEvent):
    source: Optional[str] = None


@dataclass(frozen=True)
class UserPromptSubmitEvent(HookEvent):
    prompt: str = ""


@dataclass(frozen=True)
class PreToolUseEvent(HookEvent):
    tool_name: str = ""
    tool_input: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PostToolUseEvent(HookEvent):
    tool_name: str = ""
    tool_input: Mapping[str, Any] = field(default_factory=dict)
    tool_response: Any = None


@dataclass(frozen=True)
class StopEvent(HookEvent):
    stop_reason: Optional[str] = None
    user_requested: bool = False

    @property
    def user_abort(self) -> bool:
        if self.user_requested:
            return True
        return (self.stop_reason or "").strip().lower() in USER_ABORT_REASONS


@dataclass(frozen=True)
class SubagentStopEvent(StopEvent):
    subagent_type: Optional[str] = None


AnyHookEvent = Union[
    SessionStartEvent,
    UserPromptSubmitEvent,
    PreToolUseEvent,
    PostToolUseEvent,
    StopEvent,
    SubagentStopEvent,
]


def parse_event(hook: HookName, data: Mapping[str, Any]) -> AnyHookEvent:
    """Build the event variant for ``hook`` from a decoded payload.

    Raises:
        EventValidationError: If a tool event carries no tool name
    """
    if not isinstance(data, Mapping):
        data = {}
    common = dict(
        session_id=_str(_get(data, "session_id", "sessionId")),
        cwd=_str(_get(data, "cwd", "directory")),
        transcript_path=_str(_get(data, "transcript_path", "transcriptPath")),
        raw=MappingProxyType(dict(data)),
    )

    if hook is HookName.SESSION_START:
        return SessionStartEvent(source=_str(data.get("source")), **common)
    if hook is HookName.USER_PROMPT_SUBMIT:
        return UserPromptSubmitEvent(prompt=extract_prompt(data), **common)
    if hook in (HookName.PRE_TOOL_USE, HookName.POST_TOOL_USE):
        tool_name = _str(_get(data, "tool_name", "toolName"))
        if tool_name is None:
            raise EventValidationError(f"{hook.value} payload requires tool_name")
        tool_input = _get(data, "tool_input", "toolInput")
        tool_input = tool_input if isinstance(tool_input, Mapping) else {}
        if hook is HookName.PRE_TOOL_USE:
            return PreToolUseEvent(tool_name=tool_name, tool_input=tool_input, **common)
        return PostToolUseEvent(
            tool_name=tool_name,
            tool_input=tool_input,
            tool_response=_get(data, "tool_response", "toolResponse"),
            **common,
        )

    stop_fields = dict(
        stop_reason=_str(_get(data, "stop_reason", "stopReason")),
        user_requested=_get(data, "user_requested", "userRequested") is True,
    )
    if hook is HookName.SUBAGENT_STOP:
        return SubagentStopEvent(
            subagent_type=_str(_get(data, "subagent_type", "agent_type", "subagentType")),
            **stop_fields,
            **common,
        )
    return StopEvent(**stop_fields, **common)


__all__ = [
    "AnyHookEvent",
    "HOST_EVENT_NAMES",
    "HookEvent",
    "HookName",
    "PostToolUseEvent",
    "PreToolUseEvent",
    "SessionStartEvent",
    "StopEvent",
    "SubagentStopEvent",
    "UserPromptSubmitEvent",
    "extract_prompt",
    "parse_event",
    "resolve_hook_name",
]
