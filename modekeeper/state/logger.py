"""JSON-lines telemetry for modekeeper hooks.

Hook stdout belongs to the assistant, so diagnostics go to a size-rotated
file under ``<global root>/logs`` (or ``OMD_LOG_PATH``). A failed write is
dropped, never raised into hook code.

Event vocabulary (``component`` in brackets):

- ``hook.dispatch`` [hook_bridge]: one per hook run, with ``latency_ms``.
- ``hook.error`` [hook_bridge]: a handler raised; the hook still continued.
- ``keyword.detected`` [hook_bridge]: a prompt matched a mode or intent.
- ``mode.activate`` / ``mode.advance`` / ``mode.complete`` / ``mode.cancel``
  [mode_controller]: mode lifecycle transitions.
- ``stop.decision`` [enforcement]: block or allow, with the reason.
- ``completion.detected`` [enforcement]: a completion marker was seen.
- ``delegation.enforce`` [delegation]: a Task call was rewritten.
- ``background.register`` [background]: a background task was recorded.
- ``session.restore`` [restore]: what session start restored or cleared.
- ``state.invalid`` / ``state.write_failed`` / ``state.clear_failed``
  [state_store]: unreadable or unwritable state files.
- ``config.invalid`` / ``config.unreadable`` [config]: config fell back to
  defaults.
"""
from __future__ import annotations

import json
import os
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, MutableMapping

from modekeeper.state.paths import global_root

EVENTS = (
    "hook.dispatch",
    "hook.error",
    "keyword.detected",
    "mode.activate",
    "mode.advance",
    "mode.complete",
    "mode.cancel",
    "stop.decision",
    "completion.detected",
    "delegation.enforce",
    "background.register",
    "session.restore",
    "state.invalid",
    "state.write_failed",
    "state.clear_failed",
    "config.invalid",
    "config.unreadable",
)

LEVELS = {"debug": 10, "info": 20, "warn": 30, "error": 40}

DEFAULT_MAX_BYTES = 5 * 1024 * 1024
DEFAULT_MAX_BACKUPS = 3
LOG_FILENAME = "modekeeper.log"


def _level(name: str | None) -> str:
    name = (name or "").lower()
    return name if name in LEVELS else "info"


def _threshold() -> int:
    if debug_enabled(): return LEVELS["debug"]
    return LEVELS[_level(os.getenv("OMD_LOG_LEVEL"))]


def _env_int(name: str, default: int, minimum: int) -> int:
    try: return max(int(os.environ[name]), minimum)
    except (KeyError, ValueError): return default


def debug_enabled() -> bool:
    return os.getenv("OMD_DEBUG", "").strip().lower() in {"1", "true", "yes"}


def resolve_log_path() -> Path:
    override = os.getenv("OMD_LOG_PATH")
    return Path(override).expanduser() if override else global_root() / "logs" / LOG_FILENAME


def _rotate(log_path: Path) -> None:
    """Shift ``name.N`` backups up by one once the live file reaches the size cap."""
    max_bytes = _env_int("OMD_LOG_MAX_BYTES", DEFAULT_MAX_BYTES, 0)
    if not max_bytes or not log_path.exists() or log_path.stat().st_size < max_bytes: return

    keep = _env_int("OMD_LOG_MAX_BACKUPS", DEFAULT_MAX_BACKUPS, 1)
    backup = lambda n: log_path.with_name(f"{log_path.name}.{n}")
    backup(keep).unlink(missing_ok=True)
    for n in range(keep - 1, 0, -1):
        if backup(n).exists(): backup(n).replace(backup(n + 1))
    log_path.replace(backup(1))


def log_event(*, event: str, component: str, level: str = "info", hook: str | None = None, **fields: Any) -> Dict[str, Any] | None:
    """Append one entry; returns it, or None when filtered by level or not written.

    Fields whose value is None are omitted. ``latency_ms`` is rounded to
    microseconds.
    """
    level = _level(level)
    if LEVELS[level] < _threshold(): return None

    entry: Dict[str, Any] = {
        "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        "level": level,
        "component": component,
        "event": event,
    }
    if hook: entry["hook"] = hook
    entry.update((key, value) for key, value in fields.items() if value is not None)
    if "latency_ms" in entry:
        try: entry["latency_ms"] = round(float(entry["latency_ms"]), 3)
        except (TypeError, ValueError): del entry["latency_ms"]

    log_path = resolve_log_path()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        _rotate(log_path)
        with log_path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(entry, separators=(",", ":"), default=str) + "\n")
    except OSError:
        return None
    return entry


@contextmanager
def event_timer(
    *, event: str, component: str, level: str = "info", hook: str | None = None, **fields: Any
) -> Iterator[Callable[[MutableMapping[str, Any] | None], None]]:
    """Log ``event`` with ``latency_ms`` when the block exits.

    The yielded callable merges extra fields into the entry. If the block
    raises, the entry is logged at error level with the message and the
    exception propagates.
    """
    started = time.perf_counter()
    extra: Dict[str, Any] = {}

    def finalize(more: MutableMapping[str, Any] | None = None) -> None:
        if more: extra.update(more)

    outcome_level = level
    try:
        yield finalize
    except Exception as exc:
        outcome_level = "error"
        extra["error"] = str(exc)
        raise
    finally:
        log_event(
            event=event,
            component=component,
            level=outcome_level,
            hook=hook,
            **{**fields, **extra, "latency_ms": (time.perf_counter() - started) * 1000},
        )


__all__ = [
    "EVENTS",
    "debug_enabled",
    "event_timer",
    "log_event",
    "resolve_log_path",
]
