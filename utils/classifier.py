"""Rule-based complaint classification.

``KeywordClassifier`` decides three things about a new complaint:

- whether the description is spam (too short, filler words, gibberish,
  or one word repeated over and over),
- the broad category label, by the first keyword rule that matches,
- the priority, by emergency keywords first and minor-issue keywords last.

Category and priority look at the description together with the location;
spam detection only looks at the description. The category labels here are
classifier labels, not catalogue rows; ``utils.category_routing`` maps them
onto the seeded catalogue.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

OTHER_CATEGORY = "Other"
DEFAULT_PRIORITY = "medium"
MIN_DESCRIPTION_LENGTH = 10

SPAM_TOKENS: tuple[str, ...] = (
    "test",
    "testing",
    "dummy",
    "random",
    "asdf",
    "qwerty",
    "lorem ipsum",
    "irrelevant",
    "nothing",
    "hello world",
)

CATEGORY_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Roads & Infrastructure", ("road", "pothole")),
    ("Water & Drainage", ("water", "drain")),
    ("Electricity & Street Lighting", ("electric", "streetlight")),
    ("Sanitation & Waste", ("garbage", "waste")),
    ("Fire & Emergency", ("fire", "accident")),
    ("Property & Tax", ("tax", "property")),
    ("Environment & Gardens", ("garden", "environment")),
    ("Encroachment & Illegal Activity", ("illegal", "encroachment")),
)

PRIORITY_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("high", ("fire", "flood", "accident")),
    ("medium", ("electric", "water", "drainage", "drain", "garbage")),
    ("low", ("garden", "cleaning", "minor")),
)

_SPAM_PATTERN = re.compile(r"\b(?:" + "|".join(re.escape(token) for token in SPAM_TOKENS) + r")\b")
_VOWEL = re.compile(r"[aeiou]")
_REPEATED_CHAR_RUN = re.compile(r"(.)\1{3,}")
_DIGIT_RUN = re.compile(r"\d{4,}")
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class Classification:
    category: str
    priority: str
    is_spam: bool


class ComplaintClassifier:
    """Interface for classification engines kept in ``app.extensions``."""

    def classify(self, description: str, location: str = "") -> Classification:
        raise NotImplementedError


def _normalize(text: str | None) -> str:
    return _WHITESPACE.sub(" ", (text or "").lower()).strip()


def _has_any(text: str, needles: Iterable[str]) -> bool:
    return any(needle in text for needle in needles)


def _is_gibberish(word: str) -> bool:
    return not _VOWEL.search(word) or bool(_REPEATED_CHAR_RUN.search(word)) or bool(_DIGIT_RUN.search(word))


def detect_category(text: str) -> str:
    normalized = _normalize(text)
    for label, keywords in CATEGORY_RULES:
        if _has_any(normalized, keywords):
            return label
    return OTHER_CATEGORY


def detect_priority(text: str) -> str:
    normalized = _normalize(text)
    for level, keywords in PRIORITY_RULES:
        if _has_any(normalized, keywords):
            return level
    return DEFAULT_PRIORITY


def detect_spam(description: str) -> bool:
    if len((description or "").strip()) < MIN_DESCRIPTION_LENGTH:
        return True

    text = _normalize(description)
    if _SPAM_PATTERN.search(text):
        return True

    words = text.split(" ")
    no_civic_signal = detect_category(text) == OTHER_CATEGORY
    if len(words) < 6 and no_civic_signal:
        return True

    gibberish_ratio = sum(1 for word in words if _is_gibberish(word)) / len(words)
    if gibberish_ratio >= 0.5:
        return True

    unique_ratio = len(set(words)) / len(words)
    return len(words) >= 4 and unique_ratio <= 0.35


class KeywordClassifier(ComplaintClassifier):
    def classify(self, description: str, location: str = "") -> Classification:
        text = f"{description or ''} {location or ''}"
        return Classification(
            category=detect_category(text),
            priority=detect_priority(text),
            is_spam=detect_spam(description),
        )
