"""Coordinator configuration.

Loaded once per hook invocation from ``<project>/.omd/config.json``, falling
back to ``<home>/.omd/config.json`` and then to defaults. The resulting tree
is frozen; nothing mutates it during an invocation.
"""
from __future__ import annotations

# ===== IMPORTS ===== #

## ===== STDLIB ===== ##
import json
from contextlib import suppress
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple
##-##

## ===== LOCAL ===== ##
from modekeeper.state.logger import log_event
from modekeeper.state.paths import global_root, local_root
##-##

#-#

# ===== GLOBALS ===== #
CONFIG_FILENAME = "config.json"
DEFAULT_THRESHOLD = 0.8
DEFAULT_MIN_PROMPT_LENGTH = 3
#-#

# ===== DECLARATIONS ===== #


def _tuple(value: Any) -> Tuple[str, ...]:
    if isinstance(value, str): return (value,)
    if isinstance(value, (list, tuple)): return tuple(str(v) for v in value)
    return ()


def _section(d: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = d.get(key)
    return value if isinstance(value, Mapping) else {}


def _flag(d: Mapping[str, Any], key: str, default: bool = True) -> bool:
    value = d.get(key, default)
    if not isinstance(value, bool): raise TypeError(f"{key} must be true or false, got {value!r}")
    return value


@dataclass(frozen=True)
class CustomPattern:
    """An extra keyword set contributed by configuration."""
    mode: str
    keywords: Tuple[str, ...]
    priority: int = 0

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "CustomPattern":
        if not d.get("mode"): raise ValueError("custom pattern requires a mode")
        return cls(mode=str(d["mode"]), keywords=_tuple(d.get("keywords")), priority=int(d.get("priority", 0)))


@dataclass(frozen=True)
class KeywordConfig:
    threshold: float = DEFAULT_THRESHOLD
    min_prompt_length: int = DEFAULT_MIN_PROMPT_LENGTH
    disabled_keywords: Tuple[str, ...] = ()
    custom_patterns: Tuple[CustomPattern, ...] = ()

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "KeywordConfig":
        patterns = []
        for raw in d.get("custom_patterns") or []:
            if not isinstance(raw, Mapping): continue
            with suppress(ValueError, TypeError): patterns.append(CustomPattern.from_dict(raw))
        threshold = float(d.get("threshold", DEFAULT_THRESHOLD))
        return cls(
            threshold=min(max(threshold, 0.0), 1.0),
            min_prompt_length=int(d.get("min_prompt_length", DEFAULT_MIN_PROMPT_LENGTH)),
            disabled_keywords=_tuple(d.get("disabled_keywords")),
            custom_patterns=tuple(patterns),
        )


@dataclass(frozen=True)
class ModeOverrides:
    """Per-mode settings keyed by mode name."""
    max_iterations: Mapping[str, int] = field(default_factory=dict)

    def max_iterations_for(self, mode: str, default: int) -> int:
        value = self.max_iterations.get(mode)
        return value if isinstance(value, int) and value > 0 else default

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "ModeOverrides":
        limits: Dict[str, int] = {}
        for mode, section in d.items():
            if isinstance(section, Mapping) and isinstance(section.get("max_iterations"), int):
                limits[mode] = section["max_iterations"]
        return cls(max_iterations=limits)


@dataclass(frozen=True)
class EnforcementConfig:
    enabled: bool = True
    # Empty means every stop-blocking mode is enforced.
    enforce_modes: Tuple[str, ...] = ()

    def enforces(self, mode: str) -> bool:
        if not self.enabled: return False
        return not self.enforce_modes or mode in self.enforce_modes

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "EnforcementConfig":
        return cls(enabled=_flag(d, "enabled"), enforce_modes=_tuple(d.get("enforce_modes")))


@dataclass(frozen=True)
class DelegationConfig:
    enforce_model: bool = True
    auto_background: bool = True
    source_edit_notice: bool = True

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "DelegationConfig":
        return cls(
            enforce_model=_flag(d, "enforce_model"),
            auto_background=_flag(d, "auto_background"),
            source_edit_notice=_flag(d, "source_edit_notice"),
        )


@dataclass(frozen=True)
class RestoreConfig:
    todos: bool = True
    notepad: bool = True
    background_tasks: bool = True

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "RestoreConfig":
        return cls(
            todos=_flag(d, "todos"),
            notepad=_flag(d, "notepad"),
            background_tasks=_flag(d, "background_tasks"),
        )


_SECTIONS = {
    "keywords": KeywordConfig,
    "modes": ModeOverrides,
    "enforcement": EnforcementConfig,
    "delegation": DelegationConfig,
    "restore": RestoreConfig,
}


#!> Config object
@dataclass(frozen=True)
class CoordinatorConfig:
    keywords: KeywordConfig = field(default_factory=KeywordConfig)
    modes: ModeOverrides = field(default_factory=ModeOverrides)
    enforcement: EnforcementConfig = field(default_factory=EnforcementConfig)
    delegation: DelegationConfig = field(default_factory=DelegationConfig)
    restore: RestoreConfig = field(default_factory=RestoreConfig)
    source: Optional[str] = None

    @classmethod
    def from_dict(cls, d: Mapping[str, Any], source: Optional[str] = None) -> "CoordinatorConfig":
        """Build the tree; a section with a badly typed value falls back to its defaults."""
        sections: Dict[str, Any] = {}
        for name, section_cls in _SECTIONS.items():
            try:
                sections[name] = section_cls.from_dict(_section(d, name))
            except (TypeError, ValueError) as exc:
                log_event(
                    event="config.invalid",
                    component="config",
                    level="warn",
                    path=source,
                    section=name,
                    error=str(exc),
                )
                sections[name] = section_cls()
        return cls(source=source, **sections)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("source", None)
        data["modes"] = {mode: {"max_iterations": n} for mode, n in self.modes.max_iterations.items()}
        return data
#!<

#-#

# ===== FUNCTIONS ===== #


def config_candidates(project_dir: Path | str, home: Path | str | None = None) -> Tuple[Path, Path]:
    return (local_root(project_dir) / CONFIG_FILENAME, global_root(home) / CONFIG_FILENAME)


def _load_file(path: Path) -> Optional[CoordinatorConfig]:
    if not path.exists(): return None
    try: data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        # Corrupt file: back it up once and fall through to the next candidate
        backup = path.with_suffix(".bad.json")
        if not backup.exists():
            with suppress(OSError): path.replace(backup)
        log_event(event="config.invalid", component="config", level="warn", path=str(path), error=str(exc))
        return None
    except (OSError, UnicodeDecodeError) as exc:
        log_event(event="config.unreadable", component="config", level="warn", path=str(path), error=str(exc))
        return None
    if not isinstance(data, dict):
        log_event(event="config.invalid", component="config", level="warn", path=str(path), error="config root must be a JSON object")
        return None
    return CoordinatorConfig.from_dict(data, source=str(path))


def load_config(project_dir: Path | str, home: Path | str | None = None) -> CoordinatorConfig:
    for candidate in config_candidates(project_dir, home):
        config = _load_file(candidate)
        if config is not None: return config
    return CoordinatorConfig()

#-#

__all__ = [
    "CoordinatorConfig",
    "CustomPattern",
    "DelegationConfig",
    "EnforcementConfig",
    "KeywordConfig",
    "ModeOverrides",
    "RestoreConfig",
    "config_candidates",
    "load_config",
]
