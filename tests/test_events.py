"""Tests for hook payload parsing."""
from __future__ import annotations

import pytest

from modekeeper.hooks.events import (
    HookName,
    PostToolUseEvent,
    SubagentStopEvent,
    UserPromptSubmitEvent,
    extract_prompt,
    parse_event,
    resolve_hook_name,
)


@pytest.mark.parametrize(
    "name,expected",
    [
        ("stop", HookName.STOP),
        ("Stop", HookName.STOP),
        ("persistent-mode", HookName.STOP),
        ("UserPromptSubmit", HookName.USER_PROMPT_SUBMIT),
        ("keyword-detector", HookName.USER_PROMPT_SUBMIT),
        ("pre_tool_use", HookName.PRE_TOOL_USE),
        ("SubagentStop", HookName.SUBAGENT_STOP),
        ("notification", None),
        ("", None),
    ],
)
def test_resolve_hook_name(name, expected):
    assert resolve_hook_name(name) is expected


def test_extract_prompt_sources():
    assert extract_prompt({"prompt": "direct"}) == "direct"
    assert extract_prompt({"message": {"content": "from message"}}) == "from message"
    assert extract_prompt({"message": {"content": [{"type": "text", "text": "a"}, {"type": "image"}]}}) == "a"
    assert extract_prompt({"parts": [{"type": "text", "text": "x"}, {"type": "text", "text": "y"}]}) == "x y"
    assert extract_prompt({}) == ""


def test_camel_case_keys_are_accepted():
    event = parse_event(
        HookName.POST_TOOL_USE,
        {"sessionId": "s1", "directory": "/tmp/p", "toolName": "Bash", "toolInput": {"command": "ls"}, "toolResponse": "ok"},
    )

    assert isinstance(event, PostToolUseEvent)
    assert event.session_id == "s1"
    assert event.cwd == "/tmp/p"
    assert event.tool_input == {"command": "ls"}
    assert event.tool_response == "ok"


def test_non_mapping_tool_input_becomes_empty():
    event = parse_event(HookName.PRE_TOOL_USE, {"tool_name": "Task", "tool_input": "oops"})

    assert event.tool_input == {}


def test_prompt_event_keeps_raw_payload():
    event = parse_event(HookName.USER_PROMPT_SUBMIT, {"prompt": "ralph go", "extra": 1})

    assert isinstance(event, UserPromptSubmitEvent)
    assert event.prompt == "ralph go"
    assert event.raw["extra"] == 1


def test_subagent_stop_reads_agent_type():
    event = parse_event(HookName.SUBAGENT_STOP, {"agent_type": "explore"})

    assert isinstance(event, SubagentStopEvent)
    assert event.subagent_type == "explore"
    assert event.user_abort is False


def test_user_requested_must_be_boolean():
    assert parse_event(HookName.STOP, {"user_requested": "yes"}).user_abort is False
    assert parse_event(HookName.STOP, {"userRequested": True}).user_abort is True
