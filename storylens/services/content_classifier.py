"""Heuristic text classification used at index time and by the aggregator.

* :func:`classify_content_type` -- dialogue / character / setting / plot /
  notes / theme / narrative, from quote density and cue phrases.
* :func:`calculate_importance` -- 1 to 5, from length, tag richness and
  dialogue presence.
* :func:`analyze_writing_style` / :func:`analyze_tone` -- project-level
  descriptors from sentence length, dialogue ratio and tone keywords.
"""

from __future__ import annotations

import re

from storylens.models.tags import ChunkTags, ContentType

_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_QUOTE_RE = re.compile(r"[\"“”]")

TONE_KEYWORDS: dict[str, tuple[str, ...]] = {
    "dark": ("death", "kill", "murder", "blood", "evil", "nightmare"),
    "light": ("joy", "happy", "laugh", "smile", "bright", "wonderful"),
    "mysterious": ("secret", "hidden", "mystery", "unknown", "strange"),
    "romantic": ("love", "kiss", "heart", "romantic", "passion"),
    "action": ("fight", "chase", "battle", "attack", "escape"),
    "melancholic": ("sad", "cry", "tears", "lonely", "sorrow", "grief"),
    "humorous": ("funny", "joke", "silly", "ridiculous"),
    "tense": ("nervous", "worry", "anxious", "tension", "stress"),
}


def _sentences(text: str) -> list[str]:
    return [s for s in _SENTENCE_SPLIT_RE.split(text) if s.strip()]


def dialogue_ratio(text: str) -> float:
    """Quoted passages per sentence (a pair of quote marks is one passage)."""
    sentences = _sentences(text)
    if not sentences:
        return 0.0
    return (len(_QUOTE_RE.findall(text)) / 2) / len(sentences)


def classify_content_type(text: str) -> ContentType:
    if dialogue_ratio(text) > 0.5:
        return ContentType.DIALOGUE

    lower = text.lower()
    if "character" in lower or len(re.findall(r"\b(?:he|she|they)\s+(?:is|was|are|were)\b", lower)) > 2:
        return ContentType.CHARACTER
    if re.search(r"\b(?:in|at|near|outside|inside) the\b", lower):
        return ContentType.SETTING
    if re.search(r"\b(?:then|next|after|before|when|suddenly)\b", lower):
        return ContentType.PLOT
    if len(text) < 200 or text.count("\n") + 1 > len(text) / 50:
        return ContentType.NOTES
    if re.search(r"\b(?:theme|meaning|represents|symboli[sz]es|about)\b", lower):
        return ContentType.THEME
    return ContentType.NARRATIVE


def calculate_importance(text: str, tags: ChunkTags) -> float:
    importance = 1.0
    if len(text) > 1000:
        importance += 1
    if len(text) > 2000:
        importance += 1
    importance += 0.1 * (len(tags.characters) + len(tags.themes) + len(tags.plot_elements))
    if len(_QUOTE_RE.findall(text)) > 4:
        importance += 0.5
    return round(min(5.0, max(1.0, importance)), 2)


def analyze_writing_style(text: str) -> str:
    sentences = _sentences(text)
    if not sentences:
        return "Not enough text to determine"

    average_length = sum(len(s.split()) for s in sentences) / len(sentences)
    parts: list[str] = []
    if average_length > 25:
        parts.append("complex, detailed")
    elif average_length < 15:
        parts.append("concise, direct")
    else:
        parts.append("balanced")

    ratio = dialogue_ratio(text)
    if ratio > 0.3:
        parts.append("dialogue-heavy")
    elif ratio < 0.1:
        parts.append("narrative-focused")

    if re.search(r"!{2,}|\?{2,}", text):
        parts.append("dramatic")
    return " ".join(parts)


def analyze_tone(text: str) -> str:
    """Return the tone family with the most keyword hits, or "neutral"."""
    lower = text.lower()
    scores = {
        tone: sum(len(re.findall(rf"\b{word}", lower)) for word in words)
        for tone, words in TONE_KEYWORDS.items()
    }
    best = max(scores, key=lambda tone: scores[tone])
    return best if scores[best] > 0 else "neutral"
