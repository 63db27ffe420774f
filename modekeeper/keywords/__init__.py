"""Prompt keyword detection."""
from modekeeper.keywords.detector import KeywordDetector, KeywordSet, detect_keywords, strip_code

__all__ = ["KeywordDetector", "KeywordSet", "detect_keywords", "strip_code"]
