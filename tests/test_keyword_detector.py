"""Tests for prompt keyword detection."""
from __future__ import annotations

import pytest

from modekeeper.keywords.detector import KeywordDetector, detect_keywords, strip_code
from modekeeper.state.config import KeywordConfig
from modekeeper.state.models import DetectionAction


@pytest.fixture
def detector() -> KeywordDetector:
    return KeywordDetector()


def test_explicit_keyword_activates(detector):
    result = detector.detect("please use ralph to fix the flaky tests")

    assert result.detected
    assert result.mode == "ralph"
    assert result.action is DetectionAction.ACTIVATE
    assert result.matched_keywords == ("ralph",)
    assert 0.8 <= result.confidence < 0.9


def test_opening_keyword_and_prefix_raise_confidence(detector):
    mid = detector.detect("please run ultrawork on this refactor")
    opening = detector.detect("ultrawork on this refactor")
    prefixed = detector.detect("ultrawork: refactor the parser")

    assert mid.confidence < opening.confidence < prefixed.confidence
    assert prefixed.confidence <= 1.0


def test_keywords_inside_code_are_ignored(detector):
    prompt = "what does this do?\n```\nralph = autopilot()\n```\nand `ultrawork` here"

    assert detector.detect(prompt).detected is False


def test_strip_code_removes_fenced_and_inline():
    assert "ralph" not in strip_code("x ```ralph``` y `ralph` z")


def test_short_prompt_is_rejected(detector):
    assert detector.detect("ok").detected is False
    assert detector.detect("").detected is False
    assert detector.detect(None).detected is False


def test_highest_priority_wins(detector):
    result = detector.detect("ralph and ultrawork together, autopilot please")

    assert result.mode == "autopilot"


def test_phrases_alone_are_below_threshold(detector):
    assert detector.detect("don't stop, keep going until it works").detected is False


def test_word_boundaries(detector):
    assert detector.detect("the ralphie function is broken").detected is False
    assert detector.detect("use the ultraworker module").detected is False


@pytest.mark.parametrize("prompt,mode", [("/ultrawork refactor", "ultrawork"), ("/omd:ralph fix it", "ralph"), ("/oh-my-droid:autopilot build", "autopilot"), ("/ulw go", "ultrawork")])
def test_slash_commands_have_full_confidence(detector, prompt, mode):
    result = detector.detect(prompt)

    assert result.mode == mode
    assert result.confidence == 1.0
    assert result.action is DetectionAction.ACTIVATE


def test_cancel_commands(detector):
    everything = detector.detect("/cancel")
    single = detector.detect("/cancel-ralph")

    assert everything.action is DetectionAction.CANCEL and everything.mode is None
    assert single.action is DetectionAction.CANCEL and single.mode == "ralph"


def test_unknown_slash_command_falls_back_to_keywords(detector):
    assert detector.detect("/review the code").detected is False


def test_injection_intents(detector):
    result = detector.detect("search for the config loader")

    assert result.action is DetectionAction.INJECT
    assert result.mode == "deepsearch"
    assert "<search-mode>" in result.injection


def test_incidental_search_is_not_an_intent(detector):
    assert detector.detect("please search my calendar").detected is False


def test_ultrawork_example(detector):
    result = detector.detect("ultrawork fix the login bug")

    assert result.mode == "ultrawork"
    assert result.confidence >= 0.8
    assert "ultrawork" in result.matched_keywords
    assert detector.detect("```\nultrawork fix the login bug\n```").detected is False


def test_mode_beats_injection(detector):
    assert detector.detect("ultrawork: search for every caller").mode == "ultrawork"


def test_threshold_is_configurable():
    strict = KeywordConfig(threshold=0.95)

    assert detect_keywords("please use ralph here", strict).detected is False
    assert detect_keywords("ralph: fix it", strict).detected is True


def test_disabled_keyword_sets():
    config = KeywordConfig(disabled_keywords=("ralph",))

    assert detect_keywords("ralph fix everything", config).detected is False
    assert detect_keywords("/ralph fix everything", config).detected is False


def test_custom_patterns_extend_a_set():
    config = KeywordConfig.from_dict({"custom_patterns": [{"mode": "ultraqa", "keywords": ["greenlight"]}]})

    result = detect_keywords("greenlight the release branch", config)

    assert result.mode == "ultraqa"
    assert result.matched_keywords == ("greenlight",)
