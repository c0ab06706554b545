"""Deterministic keyword-table tagger.

Used when no analysis provider is configured, and as the fallback when a
provider call fails.  Themes, emotions, plot elements and genre-style
semantic tags come from fixed keyword tables matched on word prefixes
("betray" matches "betrayed").  Characters come from a capitalised-name
heuristic: a capitalised word counts as a name when it sits next to a
speech verb ("Sarah said", "asked Marcus"), or when it appears mid-sentence
at least twice and is never introduced by a place preposition.
"""

from __future__ import annotations

import re
from collections import Counter

from storylens.models.tags import ChunkTags
from storylens.utils.text import dedupe_casefold

THEME_KEYWORDS: dict[str, tuple[str, ...]] = {
    "love": ("love", "romance", "affection", "dating"),
    "friendship": ("friend", "companion", "buddy"),
    "betrayal": ("betray", "deceiv", "backstab", "cheat"),
    "revenge": ("revenge", "vengeance", "payback", "retribution"),
    "sacrifice": ("sacrific", "give up", "selfless"),
    "redemption": ("redemption", "forgiv", "second chance"),
    "power": ("power", "control", "authority", "dominance"),
    "justice": ("justice", "fairness", "moral"),
    "family": ("family", "mother", "father", "sibling", "parent", "sister", "brother"),
    "death": ("death", "dying", "kill", "murder", "grave"),
    "hope": ("hope", "optimism", "dream"),
    "fear": ("fear", "afraid", "terror", "anxiety", "worry"),
    "growth": ("learn", "grow", "mature"),
    "trust": ("trust", "loyal", "promise"),
}

EMOTION_KEYWORDS: dict[str, tuple[str, ...]] = {
    "joy": ("joy", "happy", "glad", "cheerful", "delight"),
    "sadness": ("sad", "sorrow", "grief", "melanchol", "despair"),
    "anger": ("angry", "furious", "rage", "irritat"),
    "fear": ("fear", "afraid", "terrified", "scared", "anxious"),
    "surprise": ("surprised", "shocked", "amazed", "astonish"),
    "love": ("love", "affection", "adoration", "fondness"),
    "hope": ("hope", "optimistic", "confident"),
    "excitement": ("excited", "thrilled", "enthusias", "eager"),
    "confusion": ("confused", "puzzled", "bewilder", "perplex"),
    "pride": ("proud", "accomplished", "satisfied"),
    "guilt": ("guilt", "ashamed", "regret"),
}

PLOT_KEYWORDS: dict[str, tuple[str, ...]] = {
    "meeting": ("meet", "met ", "encounter", "introduc", "first time"),
    "conflict": ("fight", "argue", "argument", "disagree", "conflict", "confront"),
    "resolution": ("resolv", "solution", "reconcil"),
    "revelation": ("reveal", "discover", "realiz", "truth", "confess"),
    "journey": ("travel", "journey", "adventure", "quest", "expedition"),
    "transformation": ("transform", "evolution"),
    "chase": ("chase", "pursu", "hunt"),
    "escape": ("escape", "flee", "fled", "run away", "get away"),
    "betrayal": ("betray", "deceiv", "trick", "lie to", "lied to"),
    "sacrifice": ("sacrific", "surrender"),
}

GENRE_KEYWORDS: dict[str, tuple[str, ...]] = {
    "fantasy": ("magic", "wizard", "dragon", "spell", "enchant"),
    "scifi": ("spaceship", "robot", "alien", "starship"),
    "mystery": ("mystery", "detective", "clue", "investigat"),
    "romance": ("romance", "romantic", "kiss"),
    "horror": ("horror", "nightmare", "monster"),
    "thriller": ("thriller", "suspense", "danger"),
    "comedy": ("funny", "humor", "joke", "silly"),
    "action": ("battle", "explosion", "gunfire"),
}

SPEECH_VERBS = (
    "said|asked|replied|whispered|shouted|muttered|answered|snapped|"
    "murmured|called|cried|added|told|laughed|sighed|insisted"
)

# Capitalised words that are never character names.
_NON_NAMES = frozenset(
    {
        "I", "A", "An", "The", "He", "She", "It", "We", "They", "You", "His", "Her",
        "Their", "Our", "My", "Your", "This", "That", "These", "Those", "There",
        "Then", "When", "What", "Where", "Why", "How", "Who", "But", "And", "Or",
        "If", "So", "Yes", "No", "Not", "Oh", "Well", "Now", "Just", "Maybe",
        "Chapter", "Part", "Prologue", "Epilogue", "Book", "Mr", "Mrs", "Ms", "Dr",
        "God", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday",
        "Sunday", "January", "February", "March", "April", "May", "June", "July",
        "August", "September", "October", "November", "December", "Okay", "OK",
        "After", "Before", "As", "At", "In", "On", "Of", "For", "From", "To",
        "With", "Without", "By", "Even", "Still", "Everyone", "Nobody", "Someone",
    }
)

_PLACE_PREPOSITIONS = frozenset(
    {"in", "at", "on", "near", "to", "from", "into", "inside", "outside", "across", "toward"}
)

_CAPITALISED_RE = re.compile(r"\b[A-Z][a-z]+(?:['’]s)?\b")
_SPEECH_RE = re.compile(
    rf"\b([A-Z][a-z]+)\s+(?:{SPEECH_VERBS})\b|\b(?:{SPEECH_VERBS})\s+([A-Z][a-z]+)\b"
)


def _matches(text_lower: str, keywords: tuple[str, ...]) -> bool:
    return any(re.search(rf"\b{re.escape(keyword)}", text_lower) for keyword in keywords)


def _table_hits(text_lower: str, table: dict[str, tuple[str, ...]], limit: int) -> list[str]:
    return [label for label, keywords in table.items() if _matches(text_lower, keywords)][:limit]


def extract_character_names(text: str, limit: int = 10) -> list[str]:
    """Return likely character names, most frequent first."""
    speakers: list[str] = []
    for match in _SPEECH_RE.finditer(text):
        name = match.group(1) or match.group(2)
        if name not in _NON_NAMES:
            speakers.append(name)

    mid_sentence: Counter[str] = Counter()
    place_like: set[str] = set()
    for match in _CAPITALISED_RE.finditer(text):
        word = re.sub(r"['’]s$", "", match.group(0))
        if word in _NON_NAMES:
            continue
        before = text[: match.start()].rstrip()
        if not before or before[-1] in ".!?\"“”'‘’:\n":
            # Sentence-initial capitals say nothing about names.
            continue
        previous_word = before.rsplit(None, 1)[-1].lower().strip("\"'“”,;")
        if previous_word in _PLACE_PREPOSITIONS or previous_word == "the":
            place_like.add(word)
            continue
        mid_sentence[word] += 1

    counts: Counter[str] = Counter(speakers)
    for word, count in mid_sentence.items():
        if word in counts or (count >= 2 and word not in place_like):
            counts[word] += count

    ordered = sorted(counts, key=lambda w: (-counts[w], text.find(w)))
    return ordered[:limit]


class KeywordTagger:
    """Tags chunk text from fixed keyword tables; no network, never fails."""

    def tag(self, text: str) -> ChunkTags:
        text_lower = text.lower()

        semantic = _table_hits(text_lower, GENRE_KEYWORDS, limit=8)
        if '"' in text or "“" in text or re.search(rf"\b(?:{SPEECH_VERBS})\b", text_lower):
            semantic.append("dialogue")
        if re.search(r"[.!?]{3,}|!{2,}", text):
            semantic.append("dramatic")
        if len(text) > 1000:
            semantic.append("long-form")
        if len(re.split(r"\n\s*\n", text.strip())) > 3:
            semantic.append("multi-paragraph")

        return ChunkTags(
            characters=dedupe_casefold(extract_character_names(text)),
            themes=_table_hits(text_lower, THEME_KEYWORDS, limit=8),
            emotions=_table_hits(text_lower, EMOTION_KEYWORDS, limit=6),
            plot_elements=_table_hits(text_lower, PLOT_KEYWORDS, limit=8),
            semantic_tags=dedupe_casefold(semantic)[:10],
        )
