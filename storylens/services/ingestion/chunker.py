"""Text chunking with overlapping windows and paragraph boundary preservation.

Splits a document version into ordered :class:`~storylens.models.document.Chunk`
objects of roughly ``target_words`` words each.

The chunking strategy has three goals:

1. **Boundary-preserving** -- A chunk ends at the paragraph break nearest
   the target size.  If no paragraph break falls within the tolerance
   window, the nearest sentence end is used (abbreviation-aware, so
   "Dr. Reyes" never ends a sentence), and only then a plain word break.

2. **Overlapping windows** -- Each chunk after the first starts
   ``round(overlap * target_words)`` words before the previous one ended,
   so a scene straddling a boundary is retrievable from either side.

3. **Complete coverage** -- Offsets are character positions into the
   source text.  The first chunk starts at 0, the last ends at
   ``len(text)``, and every chunk extends to the start of the next word,
   so the union of chunk spans covers every character.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import structlog

from storylens.models.document import Chunk, Document
from storylens.utils.errors import ConfigurationError
from storylens.utils.text import ends_sentence

logger = structlog.get_logger(logger_name=__name__)

_WORD_RE = re.compile(r"\S+")
_PARAGRAPH_GAP_RE = re.compile(r"\n[ \t\r\f\v]*\n")

_NUMBER_WORDS = (
    "one|two|three|four|five|six|seven|eight|nine|ten|eleven|twelve|thirteen|"
    "fourteen|fifteen|sixteen|seventeen|eighteen|nineteen|twenty|thirty|forty|fifty"
)

# "Chapter 3", "CHAPTER IV: The Fall", "# Chapter One", "Part Two", "Prologue".
_HEADING_RE = re.compile(
    rf"""^[ \t]*(?:\#{{1,6}}[ \t]*)?
    (?P<label>
        (?:chapter|part|book)[ \t]+(?:\d+|[ivxlcdm]+|(?:{_NUMBER_WORDS})(?:[- ](?:{_NUMBER_WORDS}))?)\b[^\n]{{0,80}}
      | (?:prologue|epilogue|interlude|afterword|foreword)\b[^\n]{{0,80}}
    )[ \t]*$""",
    re.IGNORECASE | re.MULTILINE | re.VERBOSE,
)

# Boundary kinds, strongest first.
_PARAGRAPH = 2
_SENTENCE = 1
_WORD = 0


@dataclass(frozen=True)
class ChapterHeading:
    offset: int
    label: str


def find_chapter_headings(text: str) -> list[ChapterHeading]:
    """Return chapter headings in *text* with the offset of their first character."""
    return [
        ChapterHeading(offset=match.start("label"), label=match.group("label").strip())
        for match in _HEADING_RE.finditer(text)
    ]


class TextChunker:
    """Splits text into overlapping, boundary-aligned chunks.

    Parameters
    ----------
    target_words:
        Target chunk size in words.  Must be positive.
    overlap:
        Fraction of ``target_words`` shared by consecutive chunks,
        ``0 <= overlap < 0.5``.
    tolerance:
        Fraction of ``target_words`` a chunk may deviate from the target to
        land on a paragraph or sentence boundary, ``0 <= tolerance < 0.5``.

    Raises
    ------
    ConfigurationError
        If any parameter is out of range.
    """

    def __init__(
        self,
        target_words: int = 800,
        overlap: float = 0.2,
        tolerance: float = 0.15,
    ) -> None:
        if not isinstance(target_words, int) or target_words <= 0:
            raise ConfigurationError(f"target_words must be a positive integer, got {target_words!r}")
        if not 0 <= overlap < 0.5:
            raise ConfigurationError(f"overlap must be in [0, 0.5), got {overlap}")
        if not 0 <= tolerance < 0.5:
            raise ConfigurationError(f"tolerance must be in [0, 0.5), got {tolerance}")
        self._target = target_words
        self._overlap_words = round(overlap * target_words)
        self._tolerance_words = round(tolerance * target_words)

    @property
    def target_words(self) -> int:
        return self._target

    @property
    def overlap_words(self) -> int:
        return self._overlap_words

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk_document(self, document: Document) -> list[Chunk]:
        return self.chunk(document.text, document.document_id, document.version)

    def chunk(self, text: str, document_id: str, version: int) -> list[Chunk]:
        """Split *text* into ordered chunks.

        Empty or whitespace-only text yields an empty list.
        """
        words = [(m.start(), m.end()) for m in _WORD_RE.finditer(text)]
        if not words:
            return []

        boundary_kinds = self._classify_boundaries(text, words)
        spans = self._plan_spans(len(words), boundary_kinds)
        headings = find_chapter_headings(text)

        chunks: list[Chunk] = []
        for order, (first, last) in enumerate(spans):
            start_offset = 0 if order == 0 else words[first][0]
            end_offset = len(text) if last == len(words) else words[last][0]
            chunks.append(
                Chunk(
                    chunk_id=Chunk.make_id(document_id, version, order),
                    document_id=document_id,
                    version=version,
                    order=order,
                    start_offset=start_offset,
                    end_offset=end_offset,
                    text=text[start_offset:end_offset],
                    chapter_label=self._chapter_for(headings, start_offset, end_offset),
                )
            )

        logger.debug(
            "chunking_complete",
            document_id=document_id,
            version=version,
            num_chunks=len(chunks),
            total_words=len(words),
        )
        return chunks

    # ------------------------------------------------------------------
    # Boundary detection
    # ------------------------------------------------------------------

    @staticmethod
    def _classify_boundaries(text: str, words: list[tuple[int, int]]) -> list[int]:
        """Return the kind of break *before* each word (index 0 is unused)."""
        kinds = [_WORD] * len(words)
        for i in range(1, len(words)):
            prev_start, prev_end = words[i - 1]
            gap = text[prev_end : words[i][0]]
            if _PARAGRAPH_GAP_RE.search(gap):
                kinds[i] = _PARAGRAPH
            elif "\n" in gap or ends_sentence(text[prev_start:prev_end]):
                kinds[i] = _SENTENCE
        return kinds

    # ------------------------------------------------------------------
    # Span planning
    # ------------------------------------------------------------------

    def _plan_spans(self, n_words: int, kinds: list[int]) -> list[tuple[int, int]]:
        """Return ``(first_word, end_word_exclusive)`` pairs covering all words."""
        spans: list[tuple[int, int]] = []
        start = 0
        while True:
            if n_words - start <= self._target + self._tolerance_words:
                spans.append((start, n_words))
                return spans
            end = self._choose_end(start, n_words, kinds)
            spans.append((start, end))
            start = max(end - self._overlap_words, start + 1)

    def _choose_end(self, start: int, n_words: int, kinds: list[int]) -> int:
        ideal = start + self._target
        low = max(ideal - self._tolerance_words, start + self._overlap_words + 1, start + 1)
        high = min(ideal + self._tolerance_words, n_words - 1)

        for kind in (_PARAGRAPH, _SENTENCE):
            candidates = [i for i in range(low, high + 1) if kinds[i] >= kind]
            if candidates:
                # Nearest to the target wins; min() keeps the earlier one on ties.
                return min(candidates, key=lambda i: abs(i - ideal))
        return min(ideal, n_words - 1)

    @staticmethod
    def _chapter_for(headings: list[ChapterHeading], start: int, end: int) -> str | None:
        label: str | None = None
        for heading in headings:
            if heading.offset <= start:
                label = heading.label
            else:
                break
        if label is not None:
            return label
        for heading in headings:
            if start <= heading.offset < end:
                return heading.label
        return None
