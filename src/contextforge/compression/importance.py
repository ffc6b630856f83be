# src/contextforge/compression/importance.py
"""
Salient-token extraction and the quality heuristic built on it.

The extracted set is only used to score how much of the important
information survived a compression; it never influences the prompt.
"""

import re
from typing import List, Set

MAX_IMPORTANT_WORDS = 50
MAX_PROPER_NOUNS = 10
MAX_ACRONYMS = 5
DEFAULT_QUALITY = 0.8

_NUMBER_RE = re.compile(r"\b\d+(?:\.\d+)?\b")
_PROPER_NOUN_RE = re.compile(r"\b[A-Z][a-z]+\b")
_ACRONYM_RE = re.compile(r"\b[A-Z]{2,}\b")

STOP_WORDS = frozenset({
    "the", "is", "at", "which", "on", "a", "an", "and", "or", "but", "in",
    "with", "to", "for", "of", "as", "by", "from", "that", "this", "these",
    "those", "it", "are", "was", "were", "be", "been", "being", "have",
    "has", "had", "do", "does", "did", "will", "would", "should", "could",
    "may", "might", "can",
})


def _unique(words: List[str]) -> List[str]:
    seen: Set[str] = set()
    ordered = []
    for word in words:
        if word not in seen:
            seen.add(word)
            ordered.append(word)
    return ordered


def _without_stop_words(words: List[str]) -> List[str]:
    return [w for w in words if w.lower() not in STOP_WORDS]


def extract_important_words(text: str) -> Set[str]:
    """
    Extract salient tokens from ``text``.

    Collects numeric literals, capitalized words (proper-noun heuristic,
    first 10) and all-caps acronyms of two or more letters (first 5), after
    dropping stop words. The result is deduplicated and capped at 50 entries.
    """
    numbers = _unique(_NUMBER_RE.findall(text))
    proper_nouns = _unique(_without_stop_words(_PROPER_NOUN_RE.findall(text)))[:MAX_PROPER_NOUNS]
    acronyms = _unique(_without_stop_words(_ACRONYM_RE.findall(text)))[:MAX_ACRONYMS]

    important = _unique(numbers + proper_nouns + acronyms)[:MAX_IMPORTANT_WORDS]
    return set(important)


def estimate_quality(original: str, compressed: str) -> float:
    """
    Fraction of the original's important words found in ``compressed``.

    Matching is a case-insensitive substring test. Returns 0.8 when the
    original has no important words to check.
    """
    important = extract_important_words(original)
    if not important:
        return DEFAULT_QUALITY

    compressed_lower = compressed.lower()
    preserved = sum(1 for word in important if word.lower() in compressed_lower)
    return min(1.0, preserved / len(important))
