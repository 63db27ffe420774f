"""CLI inspector for modekeeper telemetry."""
from __future__ import annotations

import argparse
import json
from collections import Counter
from pathlib import Path
from typing import Iterable, List, Mapping, MutableMapping, Sequence

from modekeeper.state.logger import resolve_log_path


def load_events(log_path: Path, limit: int = 50) -> List[Mapping[str, object]]:
    """Return the newest events from the JSONL log."""
    target = Path(log_path)
    if not target.exists():
        return []

    lines = target.read_text(encoding="utf-8").splitlines()
    selected = lines[-limit:] if limit else lines
    events: List[Mapping[str, object]] = []
    for line in selected:
        line = line.strip()
        if not line:
            continue
        try:
            entry = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(entry, Mapping):
            events.append(entry)
    return events


def summarize_stop_decisions(events: Sequence[Mapping[str, object]]) -> List[MutableMapping[str, object]]:
    """Return stop decisions, newest last."""
    summary: List[MutableMapping[str, object]] = []
    for event in events:
        if event.get("event") != "stop.decision":
            continue
        summary.append(
            {
                "ts": event.get("ts"),
                "outcome": event.get("outcome"),
                "mode": event.get("mode"),
                "reason": event.get("reason"),
            }
        )
    return summary


def count_errors(events: Sequence[Mapping[str, object]]) -> Counter:
    """Count hook.error entries per hook."""
    return Counter(str(event.get("hook") or "?") for event in events if event.get("event") == "hook.error")


def _format_event(event: Mapping[str, object]) -> str:
    base = f"[{event.get('ts', '?')}] {event.get('level', 'info')} {event.get('event')}"
    extras = []
    for key in ("hook", "mode", "outcome", "reason", "error"):
        if key in event:
            extras.append(f"{key}={event[key]}")
    return f"{base} ({', '.join(extras)})" if extras else base


def _print_section(title: str, lines: Iterable[str]) -> None:
    print(title)
    for line in lines:
        print(f"  {line}")
    print()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="modekeeper-inspect", description="Inspect modekeeper telemetry events.")
    parser.add_argument(
        "--log-path",
        type=str,
        default=None,
        help="Path to modekeeper.log (defaults to OMD_LOG_PATH or ~/.omd/logs/modekeeper.log).",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=20,
        help="Number of recent events to display.",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    log_path = Path(args.log_path).expanduser() if args.log_path else resolve_log_path()
    events = load_events(log_path, limit=args.limit)

    print(f"Modekeeper log: {log_path}")
    if not events:
        print("No telemetry entries found.")
        return 0

    _print_section("Recent events", (_format_event(evt) for evt in events))

    decisions = summarize_stop_decisions(events)
    if decisions:
        _print_section(
            "Stop decisions",
            (f"{d.get('ts')} {d.get('outcome')} mode={d.get('mode')} reason={d.get('reason')}" for d in decisions),
        )
    else:
        print("Stop decisions\n  None recorded.\n")

    errors = count_errors(events)
    if errors:
        _print_section("Hook errors", (f"{hook}: {count}" for hook, count in sorted(errors.items())))

    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
