"""Heuristic drug-name matchers for clinical documents and live transcripts.

Every matcher is a pure function of its input text. Document extraction takes
the union of its rules (first detection wins, duplicates dropped by lower-cased
key); transcript extraction is gated on prescription intent and returns the
first rule that produces a candidate.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable

from .models import dedupe_drugs, is_candidate_name

_DOCUMENT_SUFFIXES = (
    "olol",
    "pril",
    "cin",
    "dipine",
    "statin",
    "cycline",
    "mycin",
    "prazole",
    "formin",
    "artan",
    "azepam",
    "oxetine",
    "olone",
    "ide",
    "tide",
    "dine",
    "pine",
    "done",
    "tadine",
)
_TRANSCRIPT_SUFFIXES = (
    "olol",
    "pril",
    "cin",
    "dipine",
    "statin",
    "cycline",
    "mycin",
    "prazole",
    "formin",
    "artan",
    "azepam",
    "oxetine",
    "ide",
    "done",
    "pine",
    "tidine",
    "olone",
    "tadine",
)
_DOSAGE_WORDS = ("mg", "mcg", "ml", "tablets", "tablet", "capsules", "capsule", "daily", "twice", "once")

_SUFFIX_RE = re.compile(
    r"(?:^|(?<=[\s,;]))([A-Z][a-zA-Z]*(?i:" + "|".join(_DOCUMENT_SUFFIXES) + r"))(?=[\s,;.]|$)"
)
_DOSAGE_CONTEXT_RE = re.compile(
    r"^\s*([A-Z][a-zA-Z\-]+)\s+(?:\d+\s*)?(?i:" + "|".join(_DOSAGE_WORDS) + r")",
    re.MULTILINE,
)

_TRIGGER_RE = re.compile(
    r"\b(?:prescrib\w*|recommend\w*|take\s+\w+|start\s+\w+|put you on|give you|we'll add|adding)\b",
    re.IGNORECASE,
)
_TRANSCRIPT_SUFFIX_RE = re.compile(r"(?:" + "|".join(_TRANSCRIPT_SUFFIXES) + r")$", re.IGNORECASE)
_AFTER_TRIGGER_RE = re.compile(
    r"(?:prescrib\w*|recommend\w*|take|start|put you on|give you|we'll add|adding)\s+"
    r"(?:you\s+)?(?:some\s+)?([A-Za-z]{4,})",
    re.IGNORECASE,
)
_NON_LETTER_RE = re.compile(r"[^a-zA-Z]")
_TRANSCRIPT_STOP_WORDS = {
    "the",
    "a",
    "an",
    "and",
    "for",
    "with",
    "you",
    "your",
    "some",
    "twice",
    "once",
    "daily",
    "mg",
    "mcg",
    "tablet",
    "tablets",
    "capsule",
    "capsules",
    "medicine",
    "medication",
    "drug",
}
_MIN_FRAGMENT_CHARS = 4


@dataclass(frozen=True)
class MatcherRule:
    name: str
    extract: Callable[[str], list[str]]


def _suffix_matches(text: str) -> list[str]:
    return [match.group(1).strip() for match in _SUFFIX_RE.finditer(text)]


def _dosage_context_matches(text: str) -> list[str]:
    return [match.group(1).strip() for match in _DOSAGE_CONTEXT_RE.finditer(text)]


def _transcript_words(text: str) -> list[tuple[int, str]]:
    words: list[tuple[int, str]] = []
    for index, raw in enumerate(text.split()):
        word = _NON_LETTER_RE.sub("", raw)
        if len(word) < 3 or word.lower() in _TRANSCRIPT_STOP_WORDS:
            continue
        words.append((index, word))
    return words


def _transcript_suffix_matches(text: str) -> list[str]:
    return [word for _, word in _transcript_words(text) if _TRANSCRIPT_SUFFIX_RE.search(word)]


def _capitalized_matches(text: str) -> list[str]:
    # Position 0 is usually just the capitalised start of the sentence. Later
    # capitalised words are all accepted, contractions such as "I'll" included.
    return [word for index, word in _transcript_words(text) if index > 0 and word[0].isupper()]


def _after_trigger_matches(text: str) -> list[str]:
    match = _AFTER_TRIGGER_RE.search(text)
    if not match or match.group(1).lower() in _TRANSCRIPT_STOP_WORDS:
        return []
    return [match.group(1)]


DOCUMENT_RULES: tuple[MatcherRule, ...] = (
    MatcherRule("suffix", _suffix_matches),
    MatcherRule("dosage_context", _dosage_context_matches),
)
TRANSCRIPT_RULES: tuple[MatcherRule, ...] = (
    MatcherRule("transcript_suffix", _transcript_suffix_matches),
    MatcherRule("capitalized", _capitalized_matches),
    MatcherRule("after_trigger", _after_trigger_matches),
)


def union_of_rules(rules: tuple[MatcherRule, ...], text: str) -> list[str]:
    collected: list[str] = []
    for rule in rules:
        collected.extend(rule.extract(text))
    return dedupe_drugs(collected)


def first_rule_match(rules: tuple[MatcherRule, ...], text: str) -> str | None:
    for rule in rules:
        for candidate in rule.extract(text):
            if candidate:
                return candidate
    return None


def has_prescription_intent(text: Any) -> bool:
    if not isinstance(text, str):
        return False
    return bool(_TRIGGER_RE.search(text))


def extract_drugs(text: Any) -> list[str]:
    """Return candidate drug names found in a document, in order of first detection."""
    if not isinstance(text, str) or not text:
        return []
    return union_of_rules(DOCUMENT_RULES, text)


def extract_from_transcript(text: Any) -> str | None:
    """Return the single most likely drug named in a spoken fragment, or None.

    Fragments without prescription intent ("prescribe", "take X", "put you on",
    ...) never produce a candidate.
    """
    if not isinstance(text, str):
        return None
    cleaned = text.strip()
    if len(cleaned) < _MIN_FRAGMENT_CHARS or not has_prescription_intent(cleaned):
        return None
    candidate = first_rule_match(TRANSCRIPT_RULES, cleaned)
    if candidate is None or not is_candidate_name(candidate):
        return None
    return candidate
