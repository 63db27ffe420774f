"""CLI utilities for inspecting and steering execution-mode state."""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from modekeeper.coordinator.resolver import PriorityResolver
from modekeeper.errors import ModekeeperError
from modekeeper.modes.controller import ModeController
from modekeeper.modes.definitions import PRECEDENCE, ModeType
from modekeeper.state.config import CoordinatorConfig, load_config
from modekeeper.state.models import ModeState, Phase
from modekeeper.state.paths import resolve_project_root
from modekeeper.state.persistence import StateStore

MODE_CHOICES = [mode.value for mode in ModeType]
PHASE_CHOICES = [phase.value for phase in Phase]


def _context(project_dir: Optional[str]) -> tuple[StateStore, CoordinatorConfig]:
    root = resolve_project_root(project_dir)
    return StateStore(root), load_config(root)


def collect_status(store: StateStore, config: CoordinatorConfig) -> Dict[str, Any]:
    """Return every stored mode plus the one that currently governs stopping."""
    modes: List[Dict[str, Any]] = []
    for mode in PRECEDENCE:
        state = ModeController(mode, store, config).read()
        if state is not None:
            modes.append(state.to_dict())
    resolved = PriorityResolver(store, config).resolve()
    return {
        "project_dir": str(store.project_dir),
        "governing": resolved.mode if resolved else None,
        "modes": modes,
    }


def _format_state(state: ModeState) -> str:
    flag = "active" if state.active else "inactive"
    line = f"{state.mode:<10} {flag:<8} phase={state.phase.value:<10} iteration={state.iteration}/{state.max_iterations}"
    if state.goal:
        line += f"  goal={state.goal[:60]}"
    return line


def _print_status(status: Dict[str, Any]) -> None:
    print(f"Project: {status['project_dir']}")
    if not status["modes"]:
        print("No mode state.")
        return
    for data in status["modes"]:
        print(_format_state(ModeState.from_dict(data)))
    print(f"Governing mode: {status['governing'] or '(none)'}")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="modekeeper", description="Execution-mode state management CLI.")
    parser.add_argument("--project-dir", type=str, default=None, help="Project directory (defaults to CLAUDE_PROJECT_DIR or cwd).")
    subparsers = parser.add_subparsers(dest="command", required=True)

    status_parser = subparsers.add_parser("status", help="Show stored mode state.")
    status_parser.add_argument("--json", action="store_true", help="Emit machine-readable JSON.")

    activate_parser = subparsers.add_parser("activate", help="Activate a mode for a goal.")
    activate_parser.add_argument("mode", choices=MODE_CHOICES)
    activate_parser.add_argument("goal", nargs="+", help="The task the mode should accomplish.")
    activate_parser.add_argument("--promise", default=None, help="Completion promise (ralph only).")

    cancel_parser = subparsers.add_parser("cancel", help="Cancel one mode, or every mode with --all.")
    cancel_parser.add_argument("mode", nargs="?", choices=MODE_CHOICES)
    cancel_parser.add_argument("--all", action="store_true", help="Cancel every mode.")

    continue_parser = subparsers.add_parser("continue", help="Record one continue step.")
    continue_parser.add_argument("mode", nargs="?", choices=MODE_CHOICES, help="Defaults to the governing mode.")

    phase_parser = subparsers.add_parser("phase", help="Move a mode to another phase.")
    phase_parser.add_argument("mode", choices=MODE_CHOICES)
    phase_parser.add_argument("phase", choices=PHASE_CHOICES)

    verify_parser = subparsers.add_parser("verify", help="Record a verification verdict.")
    verify_parser.add_argument("mode", choices=MODE_CHOICES)
    verdict = verify_parser.add_mutually_exclusive_group(required=True)
    verdict.add_argument("--approve", action="store_true")
    verdict.add_argument("--reject", action="store_true")
    verify_parser.add_argument("--feedback", default="", help="Reviewer notes.")

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point for state management commands."""
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    store, config = _context(args.project_dir)

    try:
        if args.command == "status":
            status = collect_status(store, config)
            if args.json:
                print(json.dumps(status, indent=2, sort_keys=True))
            else:
                _print_status(status)
            return 0

        if args.command == "activate":
            activation = ModeController(args.mode, store, config).activate(" ".join(args.goal), completion_promise=args.promise)
            if not activation.activated:
                print(f"Error: {activation.message}", file=sys.stderr)
                return 1
            if not activation.durable:
                print(f"Error: could not write {args.mode} state", file=sys.stderr)
                return 1
            print(f"Activated {args.mode}")
            return 0

        if args.command == "cancel":
            if not args.mode and not args.all:
                parser.error("cancel requires a mode or --all")
            targets = MODE_CHOICES if args.all else [args.mode]
            failed = [mode for mode in targets if not ModeController(mode, store, config).cancel()]
            if failed:
                print(f"Error: could not clear {', '.join(failed)}", file=sys.stderr)
                return 1
            print(f"Cancelled {', '.join(targets)}")
            return 0

        if args.command == "continue":
            mode = args.mode
            if mode is None:
                resolved = PriorityResolver(store, config).resolve()
                if resolved is None:
                    print("Error: no active mode", file=sys.stderr)
                    return 1
                mode = resolved.mode
            state = ModeController(mode, store, config).increment_iteration()
            if state is None:
                print(f"Error: {mode} is not active", file=sys.stderr)
                return 1
            print(f"{mode} iteration {state.iteration}/{state.max_iterations}")
            return 0

        if args.command == "phase":
            state = ModeController(args.mode, store, config).transition(args.phase)
            if state is None:
                print(f"Error: {args.mode} is not active", file=sys.stderr)
                return 1
            print(f"{args.mode} phase {state.phase.value}")
            return 0

        if args.command == "verify":
            state = ModeController(args.mode, store, config).record_verification(args.approve, args.feedback)
            if state is None:
                print(f"Error: {args.mode} is not active", file=sys.stderr)
                return 1
            verdict = "approved" if args.approve else "rejected"
            print(f"{args.mode} verification {verdict}; phase {state.phase.value}")
            return 0
    except ModekeeperError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    parser.error("Unknown command")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
