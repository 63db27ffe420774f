"""Delegation Enforcer: model routing and soft guidance for tool calls.

Every ``Task``/``Agent`` delegation leaves the hook with an explicit model:
shorthand names are normalized to full model ids and missing models are
filled in from the agent tier table. While a parallel mode is active,
delegations that do not choose ``run_in_background`` are backgrounded.
Direct edits of source files only ever produce a soft notice.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePath
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from modekeeper.errors import UnknownAgentError
from modekeeper.state.config import DelegationConfig
from modekeeper.state.logger import debug_enabled, log_event

MODEL_IDS: Mapping[str, str] = MappingProxyType(
    {
        "haiku": "claude-haiku-4-5-20251001",
        "sonnet": "claude-sonnet-4-5-20250929",
        "opus": "claude-opus-4-5-20251101",
    }
)
INHERIT_TIER = "sonnet"

_LOW = (
    "architect-low", "executor-low", "explore", "researcher-low", "designer-low", "writer",
    "security-reviewer-low", "build-fixer-low", "tdd-guide-low", "code-reviewer-low", "scientist-low",
)
_MEDIUM = (
    "architect-medium", "executor", "explore-medium", "researcher", "designer", "vision",
    "qa-tester", "build-fixer", "tdd-guide", "scientist",
)
_HIGH = (
    "architect", "executor-high", "designer-high", "planner", "critic", "analyst",
    "qa-tester-high", "security-reviewer", "code-reviewer", "scientist-high",
)

AGENT_TIERS: Mapping[str, str] = MappingProxyType(
    {
        **{agent: "haiku" for agent in _LOW},
        **{agent: "sonnet" for agent in _MEDIUM},
        **{agent: "opus" for agent in _HIGH},
    }
)

AGENT_PREFIXES = ("oh-my-droid:", "omd:")
DELEGATION_TOOLS = frozenset({"task", "agent"})
EDIT_TOOLS = frozenset({"edit", "write"})

SOURCE_EXTENSIONS = frozenset(
    {
        ".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs",
        ".py", ".pyw",
        ".go", ".rs", ".java", ".kt", ".scala",
        ".c", ".cpp", ".cc", ".h", ".hpp",
        ".rb", ".php",
        ".svelte", ".vue",
        ".graphql", ".gql",
        ".sh", ".bash", ".zsh",
    }
)
_ALLOWED_PATHS = (
    re.compile(r"(^|/)\.omd/"),
    re.compile(r"(^|/)\.factory/"),
    re.compile(r"(FACTORY|AGENTS|CLAUDE)\.md$"),
)
_FILE_MODIFY_PATTERNS = (
    re.compile(r"sed\s+-i"),
    re.compile(r">\s*[^&\s]"),
    re.compile(r">>"),
    re.compile(r"\btee\s+"),
)
_SOURCE_EXT_IN_COMMAND = re.compile(
    r"\.(?:tsx?|jsx?|mjs|cjs|pyw?|go|rs|java|kt|scala|cpp|cc|c|hpp|h|rb|php|svelte|vue|graphql|gql|sh|bash|zsh)\b",
    re.IGNORECASE,
)

_NOTICE_FOOTER = (
    "Recommended: delegate to an executor agent instead:\n"
    '  Task(subagent_type="executor", model="sonnet", prompt="...")\n\n'
    "This is a soft notice. The operation will proceed."
)


def normalize_model(model: str) -> str:
    """Map shorthand names to full model ids; anything else passes through."""
    if model == "inherit":
        return MODEL_IDS[INHERIT_TIER]
    return MODEL_IDS.get(model, model)


def strip_agent_prefix(agent_type: str) -> str:
    for prefix in AGENT_PREFIXES:
        if agent_type.startswith(prefix):
            return agent_type[len(prefix):]
    return agent_type


def get_model_for_agent(agent_type: str) -> str:
    """Return the default tier (haiku, sonnet or opus) for ``agent_type``.

    Raises:
        UnknownAgentError: If the agent type is not in the tier table
    """
    normalized = strip_agent_prefix(agent_type)
    try:
        return AGENT_TIERS[normalized]
    except KeyError:
        raise UnknownAgentError(normalized, agent_type) from None


@dataclass(frozen=True)
class ModelEnforcement:
    """Outcome of model enforcement for one delegation.

    Attributes:
        original: Input as received
        modified: Input with a concrete model id
        injected: True when the model came from the tier table
        model: Tier that was injected, or ``inherit`` when the caller chose
        warning: Debug notice, only set when OMD_DEBUG is enabled
    """

    original: Mapping[str, Any]
    modified: Dict[str, Any]
    injected: bool
    model: str
    warning: Optional[str] = None


def is_agent_call(tool_name: Optional[str], tool_input: Any) -> bool:
    if str(tool_name or "").lower() not in DELEGATION_TOOLS:
        return False
    if not isinstance(tool_input, Mapping):
        return False
    return all(isinstance(tool_input.get(key), str) for key in ("subagent_type", "prompt", "description"))


def enforce_model(tool_input: Mapping[str, Any]) -> ModelEnforcement:
    """Guarantee an explicit model on a delegation input.

    Raises:
        UnknownAgentError: If no model is given and the agent type is unknown
    """
    model = tool_input.get("model")
    if model:
        normalized = normalize_model(str(model))
        modified = dict(tool_input)
        modified["model"] = normalized
        return ModelEnforcement(original=tool_input, modified=modified, injected=False, model="inherit")

    agent_type = str(tool_input.get("subagent_type") or "")
    tier = get_model_for_agent(agent_type)
    modified = dict(tool_input)
    modified["model"] = MODEL_IDS[tier]

    warning = None
    if debug_enabled():
        warning = f"[OMD] Auto-injecting model: {modified['model']} for {strip_agent_prefix(agent_type)}"
    return ModelEnforcement(original=tool_input, modified=modified, injected=True, model=tier, warning=warning)


def background_unset(tool_input: Mapping[str, Any]) -> bool:
    """True when the caller stated neither ``run_in_background`` nor ``runInBackground``."""
    return tool_input.get("run_in_background") is None and tool_input.get("runInBackground") is None


def runs_in_background(tool_input: Mapping[str, Any]) -> bool:
    return tool_input.get("run_in_background") is True or tool_input.get("runInBackground") is True


def is_source_file(file_path: str) -> bool:
    if not file_path or any(pattern.search(file_path) for pattern in _ALLOWED_PATHS):
        return False
    return PurePath(file_path).suffix.lower() in SOURCE_EXTENSIONS


def delegation_notice(tool_name: str, file_path: str) -> Optional[str]:
    if not is_source_file(file_path):
        return None
    return f"[DELEGATION NOTICE] Direct {tool_name} on source file: {file_path}\n\n{_NOTICE_FOOTER}"


def check_bash_command(command: str) -> Optional[str]:
    if not command or not any(pattern.search(command) for pattern in _FILE_MODIFY_PATTERNS):
        return None
    if not _SOURCE_EXT_IN_COMMAND.search(command):
        return None
    return f"[DELEGATION NOTICE] Bash command may modify source files: {command}\n\n{_NOTICE_FOOTER}"


@dataclass(frozen=True)
class PreToolUseOutcome:
    """What the pre-tool-use hook should emit.

    Attributes:
        updated_input: Replacement tool input, None when unchanged
        context: Text for ``additionalContext``
        backgrounded: True when the delegation was switched to background
        error: Message of a delegation-boundary failure
    """

    updated_input: Optional[Dict[str, Any]] = None
    context: Optional[str] = None
    backgrounded: bool = False
    error: Optional[str] = None


def process_pre_tool_use(
    tool_name: Optional[str],
    tool_input: Any,
    *,
    auto_background: bool = False,
    config: Optional[DelegationConfig] = None,
) -> PreToolUseOutcome:
    config = config or DelegationConfig()
    name = str(tool_name or "")
    lowered = name.lower()
    tool_input = tool_input if isinstance(tool_input, Mapping) else {}

    if is_agent_call(name, tool_input):
        updated: Dict[str, Any] = dict(tool_input)
        context = None
        if config.enforce_model:
            try:
                enforcement = enforce_model(tool_input)
            except UnknownAgentError as exc:
                log_event(
                    event="delegation.enforce",
                    component="delegation",
                    level="error",
                    tool=name,
                    subagent_type=tool_input.get("subagent_type"),
                    error=str(exc),
                )
                return PreToolUseOutcome(context=f"[DELEGATION ERROR] {exc}", error=str(exc))
            updated = enforcement.modified
            context = enforcement.warning
            log_event(
                event="delegation.enforce",
                component="delegation",
                level="debug",
                tool=name,
                subagent_type=tool_input.get("subagent_type"),
                model=updated.get("model"),
                injected=enforcement.injected,
            )

        backgrounded = False
        if auto_background and config.auto_background and background_unset(tool_input):
            updated["run_in_background"] = True
            backgrounded = True

        changed = updated != dict(tool_input)
        return PreToolUseOutcome(updated_input=updated if changed else None, context=context, backgrounded=backgrounded)

    if not config.source_edit_notice:
        return PreToolUseOutcome()
    if lowered == "bash":
        return PreToolUseOutcome(context=check_bash_command(str(tool_input.get("command") or "")))
    if lowered in EDIT_TOOLS:
        file_path = str(tool_input.get("file_path") or tool_input.get("filePath") or "")
        return PreToolUseOutcome(context=delegation_notice(name, file_path))
    return PreToolUseOutcome()


__all__ = [
    "AGENT_TIERS",
    "MODEL_IDS",
    "ModelEnforcement",
    "PreToolUseOutcome",
    "check_bash_command",
    "delegation_notice",
    "enforce_model",
    "get_model_for_agent",
    "is_agent_call",
    "is_source_file",
    "normalize_model",
    "process_pre_tool_use",
    "runs_in_background",
    "strip_agent_prefix",
]
