"""Text helpers shared by the chunker, tagger, aggregator and query engine.

1. **Sentence splitting** -- abbreviation-aware, so "Dr. Reyes" or
   "Mr. Hale" never ends a sentence.

2. **Tokenising** -- lowercase words with stopwords dropped and plural
   endings stripped, shared by the hashing embedder and snippet matching.

3. **Tag normalisation** -- whitespace collapsing and case-insensitive
   de-duplication that keeps the first-seen casing.
"""

from __future__ import annotations

import re
from typing import Iterable

# Common abbreviations that should NOT trigger a sentence split.
ABBREVIATIONS = frozenset(
    {
        "Dr",
        "Mr",
        "Mrs",
        "Ms",
        "Prof",
        "Jr",
        "Sr",
        "St",
        "Ave",
        "Capt",
        "Col",
        "Gen",
        "Lt",
        "Sgt",
        "Rev",
        "Vol",
        "No",
        "vs",
        "etc",
        "approx",
        "dept",
        "est",
        "inc",
        "ltd",
        "co",
        "ft",
    }
)

# Sentence-ending punctuation, optionally followed by closing quotes/brackets.
_SENTENCE_END_RE = re.compile(r"[.!?]+[\"'”’)\]]*$")

_WHITESPACE_RE = re.compile(r"\s+")


def ends_sentence(word: str) -> bool:
    """Return True if *word* (a whitespace-free token) closes a sentence."""
    if not _SENTENCE_END_RE.search(word):
        return False
    stem = word.rstrip("\"'”’)]").rstrip(".!?")
    stem = stem.lstrip("\"'“‘([")
    if word.rstrip("\"'”’)]").endswith(".") and stem in ABBREVIATIONS:
        return False
    return True


def split_sentences(text: str) -> list[str]:
    """Split *text* at sentence boundaries while respecting abbreviations.

    Handles ``.``, ``!``, ``?`` followed by whitespace or end-of-string, and
    line breaks.  Periods after known abbreviations are masked first (same
    length, so indices stay aligned with the original text).
    """
    masked = text
    for abbr in ABBREVIATIONS:
        masked = re.sub(rf"\b{abbr}\.", f"{abbr}\x00", masked)

    sentences: list[str] = []
    last = 0
    for match in re.finditer(r"[.!?]+[\"'”’)\]]*(?:\s|$)|\n", masked):
        end = match.end()
        sentence = text[last:end].strip()
        if sentence:
            sentences.append(sentence)
        last = end

    remainder = text[last:].strip()
    if remainder:
        sentences.append(remainder)
    return sentences


def count_words(text: str) -> int:
    """Count maximal non-whitespace runs."""
    return len(text.split())


def normalize_tag(value: object) -> str:
    """Collapse internal whitespace and strip surrounding punctuation noise."""
    text = _WHITESPACE_RE.sub(" ", str(value)).strip()
    return text.strip(" \t-*•\"'`.,;:")


def dedupe_casefold(values: Iterable[object]) -> list[str]:
    """Normalise, drop empties, and de-duplicate case-insensitively.

    The first-seen casing of each value wins, and input order is preserved.
    """
    seen: set[str] = set()
    result: list[str] = []
    for raw in values:
        value = normalize_tag(raw)
        if not value:
            continue
        key = value.casefold()
        if key in seen:
            continue
        seen.add(key)
        result.append(value)
    return result


_TOKEN_RE = re.compile(r"[a-z][a-z']*")

_STOPWORDS: frozenset[str] = frozenset(
    {
        "a", "an", "and", "are", "as", "at", "be", "but", "by", "for", "from",
        "had", "has", "have", "he", "her", "his", "i", "in", "is", "it", "its",
        "of", "on", "or", "she", "that", "the", "their", "them", "they", "this",
        "to", "was", "were", "with", "you",
    }
)


def _stem(token: str) -> str:
    if token.endswith("'s"):
        token = token[:-2]
    token = token.strip("'")
    if len(token) > 4 and token.endswith("ies"):
        return token[:-3] + "y"
    if len(token) > 3 and token.endswith("s") and not token.endswith("ss"):
        return token[:-1]
    return token


def tokenize(text: str) -> list[str]:
    """Lowercase, split into words, drop stopwords, strip plural endings."""
    tokens = (_stem(t) for t in _TOKEN_RE.findall(text.lower()))
    return [t for t in tokens if t and t not in _STOPWORDS]
