"""Read the assistant's last turn from a JSONL transcript.

Only the tail of the file is read. Lines are walked backwards, collecting
assistant text until a user message marks the start of the turn.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, List, Mapping, Optional

TAIL_BYTES = 64 * 1024


def _message_text(entry: Mapping[str, Any]) -> Optional[str]:
    message = entry.get("message")
    if not isinstance(message, Mapping):
        return None
    content = message.get("content")
    if isinstance(content, str):
        return content or None
    if not isinstance(content, list):
        return None
    parts = [
        block["text"]
        for block in content
        if isinstance(block, Mapping)
        and block.get("type") == "text"
        and isinstance(block.get("text"), str)
        and block["text"].strip()
    ]
    return "\n".join(parts) if parts else None


def _role(entry: Mapping[str, Any]) -> Optional[str]:
    message = entry.get("message")
    if isinstance(message, Mapping) and message.get("role"):
        return message["role"]
    return entry.get("type")


def _is_tool_result(entry: Mapping[str, Any]) -> bool:
    message = entry.get("message")
    content = message.get("content") if isinstance(message, Mapping) else None
    return isinstance(content, list) and any(
        isinstance(block, Mapping) and block.get("type") == "tool_result" for block in content
    )


def read_last_assistant_text(transcript_path: Optional[str]) -> str:
    """Return the text of the assistant's current turn, or "" when unavailable."""
    if not transcript_path:
        return ""
    path = Path(transcript_path).expanduser()
    try:
        size = path.stat().st_size
        with path.open("r", encoding="utf-8", errors="replace") as handle:
            start = max(0, size - TAIL_BYTES)
            if start > 0:
                handle.seek(start)
                handle.readline()
            lines = handle.readlines()
    except OSError:
        return ""

    parts: List[str] = []
    for line in reversed(lines):
        line = line.strip()
        if not line:
            continue
        try:
            entry = json.loads(line)
        except ValueError:
            continue
        if not isinstance(entry, Mapping):
            continue
        role = _role(entry)
        # Tool results are recorded as user messages inside the same turn.
        if role == "user" and not _is_tool_result(entry):
            break
        if role == "assistant":
            text = _message_text(entry)
            if text:
                parts.append(text)

    return "\n".join(reversed(parts))


__all__ = ["read_last_assistant_text"]
