"""
Rule-based prompt analysis.

Classifies a free-text prompt along four axes (shot type, angle, mood,
setting) using the priority-ordered dictionaries in config.generation,
and pulls out its content words for keyword matching against references.
"""

import re
from typing import Optional

from ...config.generation import (
    ANGLE_TERMS,
    MOOD_TERMS,
    NEUTRAL_MOOD,
    NEUTRAL_SETTING,
    SETTING_TERMS,
    SHOT_TYPE_TERMS,
    STOP_WORDS,
)
from ..types import PromptProfile

AxisTerms = tuple[tuple[str, tuple[str, ...]], ...]

_WORD_RE = re.compile(r"[a-z0-9][a-z0-9'-]*")


def _compile_axis(axis: AxisTerms) -> tuple[tuple[str, re.Pattern], ...]:
    # Terms match case-insensitively anywhere in the prompt, bounded at word
    # edges so "back" does not fire on "background".
    compiled = []
    for category, terms in axis:
        alternatives = "|".join(re.escape(t) for t in sorted(terms, key=len, reverse=True))
        compiled.append((category, re.compile(rf"(?<![\w-])(?:{alternatives})(?![\w-])", re.IGNORECASE)))
    return tuple(compiled)


class PromptAnalyzer:
    """
    Extract a PromptProfile from a prompt.

    Pure and total: an empty or unrecognized prompt yields a profile with
    no shot type or angle, neutral mood and setting, and no keywords.
    """

    def __init__(
        self,
        shot_types: AxisTerms = SHOT_TYPE_TERMS,
        angles: AxisTerms = ANGLE_TERMS,
        moods: AxisTerms = MOOD_TERMS,
        settings: AxisTerms = SETTING_TERMS,
        stop_words: frozenset[str] = STOP_WORDS,
    ):
        self._shot_types = _compile_axis(shot_types)
        self._angles = _compile_axis(angles)
        self._moods = _compile_axis(moods)
        self._settings = _compile_axis(settings)
        self.stop_words = stop_words

    def analyze(self, prompt: str) -> PromptProfile:
        text = prompt or ""
        return PromptProfile(
            shot_type=self._classify(text, self._shot_types),
            angle=self._classify(text, self._angles),
            mood=self._classify(text, self._moods) or NEUTRAL_MOOD,
            setting=self._classify(text, self._settings) or NEUTRAL_SETTING,
            keywords=self.extract_keywords(text),
        )

    def extract_keywords(self, text: str) -> frozenset[str]:
        """Content words of the text: lowercased, stop-words and 1-char tokens removed."""
        words = (w.strip("'-") for w in _WORD_RE.findall(text.lower()))
        return frozenset(w for w in words if len(w) > 1 and w not in self.stop_words)

    @staticmethod
    def _classify(text: str, axis: tuple[tuple[str, re.Pattern], ...]) -> Optional[str]:
        for category, pattern in axis:
            if pattern.search(text):
                return category
        return None
