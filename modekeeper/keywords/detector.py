"""Keyword Detector: map a user prompt to at most one mode intent.

Detection runs on a cleaned copy of the prompt: fenced and inline code are
removed and the text is lowercased, so keywords quoted inside code never
trigger a mode. Slash commands are checked first and always win with full
confidence. Otherwise every keyword set is scored and the highest-priority
actionable set is returned.

Confidence for a keyword set::

    base      0.8 when an explicit mode name matched, 0.5 for phrases only
    coverage  0.15 x (matched keywords / keywords in the set)
    opening   0.1 when a matched keyword opens the prompt
    prefix    0.1 when the prompt starts with ``<keyword>:``

capped at 1.0.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from modekeeper.modes.definitions import ModeType
from modekeeper.modes.prompts import INJECTIONS
from modekeeper.state.config import KeywordConfig
from modekeeper.state.models import DetectionAction, DetectionResult

EXPLICIT_BASE = 0.8
PHRASE_BASE = 0.5
COVERAGE_WEIGHT = 0.15
OPENING_BONUS = 0.1
PREFIX_BONUS = 0.1
# Guidance-only intents create no state, so they act on weaker evidence.
INJECT_THRESHOLD = 0.6

_FENCED_CODE = re.compile(r"```[\s\S]*?```")
_INLINE_CODE = re.compile(r"`[^`\n]+`")
_SLASH_COMMAND = re.compile(r"^\s*/(?:(?:omd|oh-my-droid):)?([a-z][a-z0-9_-]*)(?![\w:-])")
_PREFIX = re.compile(r"^\s*([a-z][a-z0-9 _-]*?)\s*:")


@dataclass(frozen=True)
class KeywordSet:
    """Keywords that select one mode or guidance intent.

    Attributes:
        name: Mode type or intent name
        priority: Higher wins among actionable detections
        explicit: Names that unambiguously request the mode
        phrases: Softer phrases that suggest it
        action: Activate a mode, or inject guidance only
    """

    name: str
    priority: int
    explicit: Tuple[str, ...]
    phrases: Tuple[str, ...] = ()
    action: DetectionAction = DetectionAction.ACTIVATE

    @property
    def keywords(self) -> Tuple[str, ...]:
        return self.explicit + self.phrases


DEFAULT_KEYWORD_SETS: Tuple[KeywordSet, ...] = (
    KeywordSet(
        name=ModeType.AUTOPILOT.value,
        priority=100,
        explicit=("autopilot", "auto-pilot"),
        phrases=("build me", "create me a", "i want a"),
    ),
    KeywordSet(
        name=ModeType.RALPH.value,
        priority=90,
        explicit=("ralph", "ralph-loop", "ralphloop"),
        phrases=("don't stop", "keep going until", "must complete", "finish everything"),
    ),
    KeywordSet(
        name=ModeType.ULTRAWORK.value,
        priority=80,
        explicit=("ultrawork", "ulw"),
        phrases=("parallel mode", "maximum speed", "fast mode"),
    ),
    KeywordSet(
        name=ModeType.ULTRAQA.value,
        priority=70,
        explicit=("ultraqa", "ultra-qa"),
        phrases=("qa cycle", "until tests pass", "fix all tests"),
    ),
    KeywordSet(
        name=ModeType.ECOMODE.value,
        priority=60,
        explicit=("ecomode", "eco-mode"),
        phrases=("eco", "economical", "save tokens", "budget mode"),
    ),
    KeywordSet(
        name="deepsearch",
        priority=50,
        explicit=("deepsearch", "deep-search"),
        phrases=("search", "search for", "find in codebase", "where is", "look for"),
        action=DetectionAction.INJECT,
    ),
    KeywordSet(
        name="analyze",
        priority=40,
        explicit=("deepanalyze", "deep-analyze"),
        phrases=("analyze", "analyse", "investigate", "debug", "root cause"),
        action=DetectionAction.INJECT,
    ),
)

_MODE_NAMES = frozenset(mode.value for mode in ModeType)


def strip_code(text: str) -> str:
    """Remove fenced blocks and inline code spans."""
    return _INLINE_CODE.sub(" ", _FENCED_CODE.sub(" ", text))


def _keyword_pattern(keyword: str) -> "re.Pattern[str]":
    return re.compile(r"(?<!\w)" + re.escape(keyword) + r"(?!\w)")


def build_keyword_sets(config: KeywordConfig) -> Tuple[KeywordSet, ...]:
    """Apply configured disables and custom patterns to the default sets.

    ``disabled_keywords`` entries name either a whole set or a single keyword.
    Custom patterns add explicit keywords to an existing set, optionally
    raising its priority.
    """
    disabled = {entry.lower() for entry in config.disabled_keywords}
    extra: Dict[str, List[str]] = {}
    priorities: Dict[str, int] = {}
    for custom in config.custom_patterns:
        extra.setdefault(custom.mode, []).extend(kw.lower() for kw in custom.keywords if kw.strip())
        if custom.priority:
            priorities[custom.mode] = max(priorities.get(custom.mode, 0), custom.priority)

    sets = []
    for keyword_set in DEFAULT_KEYWORD_SETS:
        if keyword_set.name in disabled:
            continue
        explicit = tuple(kw for kw in keyword_set.explicit + tuple(extra.get(keyword_set.name, ())) if kw not in disabled)
        phrases = tuple(kw for kw in keyword_set.phrases if kw not in disabled)
        if not explicit and not phrases:
            continue
        sets.append(
            KeywordSet(
                name=keyword_set.name,
                priority=max(keyword_set.priority, priorities.get(keyword_set.name, 0)),
                explicit=tuple(dict.fromkeys(explicit)),
                phrases=phrases,
                action=keyword_set.action,
            )
        )
    return tuple(sets)


class KeywordDetector:
    def __init__(self, config: Optional[KeywordConfig] = None) -> None:
        self.config = config or KeywordConfig()
        self.keyword_sets = build_keyword_sets(self.config)
        self._patterns = {kw: _keyword_pattern(kw) for ks in self.keyword_sets for kw in ks.keywords}

    def clean(self, prompt: str) -> str:
        return strip_code(prompt).lower().strip()

    def detect(self, prompt: Optional[str]) -> DetectionResult:
        if not prompt:
            return DetectionResult.none()
        text = self.clean(prompt)
        if len(text) < self.config.min_prompt_length:
            return DetectionResult.none()

        command = self._detect_command(text)
        if command is not None:
            return command

        candidates = [result for result in self._score_all(text) if self._actionable(result)]
        if not candidates:
            return DetectionResult.none()
        priority = {ks.name: ks.priority for ks in self.keyword_sets}
        candidates.sort(key=lambda r: (priority[r.mode], r.confidence), reverse=True)
        return candidates[0]

    def score(self, text: str, keyword_set: KeywordSet) -> DetectionResult:
        """Score one keyword set against already-cleaned text."""
        matched = [kw for kw in keyword_set.keywords if self._patterns[kw].search(text)]
        if not matched:
            return DetectionResult(detected=False, mode=keyword_set.name)

        explicit = any(kw in keyword_set.explicit for kw in matched)
        confidence = EXPLICIT_BASE if explicit else PHRASE_BASE
        confidence += COVERAGE_WEIGHT * len(matched) / len(keyword_set.keywords)
        if any(self._patterns[kw].match(text) for kw in matched):
            confidence += OPENING_BONUS
        prefix = _PREFIX.match(text)
        if prefix is not None and prefix.group(1).strip() in matched:
            confidence += PREFIX_BONUS

        return DetectionResult(
            detected=True,
            mode=keyword_set.name,
            matched_keywords=tuple(matched),
            confidence=round(min(confidence, 1.0), 4),
            action=keyword_set.action,
            injection=INJECTIONS.get(keyword_set.name) if keyword_set.action is DetectionAction.INJECT else None,
        )

    def _score_all(self, text: str) -> Iterable[DetectionResult]:
        for keyword_set in self.keyword_sets:
            result = self.score(text, keyword_set)
            if result.detected:
                yield result

    def _actionable(self, result: DetectionResult) -> bool:
        if result.action is DetectionAction.INJECT:
            return result.confidence >= min(INJECT_THRESHOLD, self.config.threshold)
        return result.confidence >= self.config.threshold

    def _detect_command(self, text: str) -> Optional[DetectionResult]:
        match = _SLASH_COMMAND.match(text)
        if match is None:
            return None
        name = match.group(1)
        token = f"/{name}"

        if name == "cancel":
            return DetectionResult(detected=True, matched_keywords=(token,), confidence=1.0, action=DetectionAction.CANCEL)
        if name.startswith("cancel-"):
            target = self._resolve_name(name[len("cancel-"):])
            if target in _MODE_NAMES:
                return DetectionResult(
                    detected=True, mode=target, matched_keywords=(token,), confidence=1.0, action=DetectionAction.CANCEL
                )
            return None

        target = self._resolve_name(name)
        if target is None:
            return None
        keyword_set = next(ks for ks in self.keyword_sets if ks.name == target)
        return DetectionResult(
            detected=True,
            mode=target,
            matched_keywords=(token,),
            confidence=1.0,
            action=keyword_set.action,
            injection=INJECTIONS.get(target) if keyword_set.action is DetectionAction.INJECT else None,
        )

    def _resolve_name(self, name: str) -> Optional[str]:
        """Map a command name (mode name or explicit alias) to a keyword set name."""
        for keyword_set in self.keyword_sets:
            if name == keyword_set.name or name in keyword_set.explicit:
                return keyword_set.name
        return None


def detect_keywords(prompt: Optional[str], config: Optional[KeywordConfig] = None) -> DetectionResult:
    return KeywordDetector(config).detect(prompt)


__all__ = [
    "DEFAULT_KEYWORD_SETS",
    "KeywordDetector",
    "KeywordSet",
    "build_keyword_sets",
    "detect_keywords",
    "strip_code",
]
