"""LLM-powered metadata tag extraction for chunks.

Uses an :class:`~storylens.interfaces.llm_provider.ILLMProvider` to extract
characters, themes, emotions, plot elements and semantic tags from chunk
text.  Tags power the category filters and project analytics.

The extraction flow:
1. Look the chunk up in the ``metadata`` cache, keyed by a digest of the
   chunk text and the prompt version.
2. On a miss, send the chunk to the provider (semaphore-bounded, with a
   timeout) and parse the response with the tagged-variant parser.
3. If there is no provider, the call fails, or the response is
   unstructured, tag with the keyword tables instead and cache that result
   with the short fallback TTL so a recovered provider gets another chance.

Extraction never raises: tagging is not needed for search correctness.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from storylens.models.tags import ChunkTags
from storylens.services.cache_service import CacheKeys
from storylens.services.ingestion.keyword_tagger import KeywordTagger
from storylens.services.ingestion.response_parser import (
    PROMPT_VERSION,
    UnstructuredResponse,
    parse_tag_response,
)
from storylens.utils.concurrency import call_with_timeout

if TYPE_CHECKING:
    from storylens.interfaces.llm_provider import ILLMProvider
    from storylens.services.cache_service import CacheService

logger = structlog.get_logger(logger_name=__name__)

_EXTRACTION_SYSTEM_PROMPT = (
    "You are a literary analysis assistant. You read passages from a writer's "
    "manuscript and tag what is explicitly present in them."
)

_EXTRACTION_USER_PROMPT = """\
Read this passage and extract:
1. characters -- names of people speaking or mentioned
2. themes -- deeper ideas (e.g. betrayal, friendship)
3. emotions -- feelings expressed or evoked
4. plotElements -- events, conflicts, resolutions
5. semanticTags -- genre, topic and style keywords

Return ONLY a JSON object with these five arrays of short strings:
{{"characters": [], "themes": [], "emotions": [], "plotElements": [], "semanticTags": []}}
{context}
Passage:
{text}"""

_MAX_PROMPT_CHARS = 6000


class MetadataExtractor:
    """Extracts chunk tags with an LLM, falling back to keyword tables.

    Parameters
    ----------
    llm:
        Analysis provider, or ``None`` to always use the keyword tagger.
    cache:
        ``metadata`` namespace cache.  Optional; without it every call
        reaches the provider.
    max_concurrent:
        Maximum number of concurrent provider calls.
    timeout:
        Per-call timeout in seconds.
    fallback_ttl:
        TTL for keyword-fallback results.
    fallback_to_keywords:
        When ``False``, failed extractions yield empty tags instead of
        keyword tags.
    """

    def __init__(
        self,
        llm: ILLMProvider | None = None,
        cache: CacheService | None = None,
        max_concurrent: int = 4,
        timeout: float = 30.0,
        fallback_ttl: float = 900,
        fallback_to_keywords: bool = True,
        keyword_tagger: KeywordTagger | None = None,
        prompt_version: str = PROMPT_VERSION,
    ) -> None:
        self._llm = llm
        self._cache = cache
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._timeout = timeout
        self._fallback_ttl = fallback_ttl
        self._fallback_to_keywords = fallback_to_keywords
        self._keyword_tagger = keyword_tagger or KeywordTagger()
        self._prompt_version = prompt_version

    @property
    def prompt_version(self) -> str:
        return self._prompt_version

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def extract(self, chunk_text: str, context_window: str | None = None) -> ChunkTags:
        """Return tags for *chunk_text*.  Never raises."""
        if not chunk_text.strip():
            return ChunkTags()

        key = CacheKeys.metadata(chunk_text, self._prompt_version)
        if self._cache is not None:
            cached = await self._cache.get(key)
            if isinstance(cached, ChunkTags):
                return cached

        tags, from_provider = await self._extract_uncached(chunk_text, context_window)

        if self._cache is not None:
            ttl = None if from_provider else self._fallback_ttl
            await self._cache.set(key, tags, ttl=ttl)
        return tags

    async def extract_batch(
        self, texts: list[str], context_window: str | None = None
    ) -> list[ChunkTags]:
        """Extract tags for every text, at most ``max_concurrent`` provider calls at once."""
        if not texts:
            return []
        results: list[ChunkTags] = await asyncio.gather(
            *(self.extract(text, context_window) for text in texts)
        )
        logger.info(
            "batch_extraction_complete",
            total=len(results),
            tagged=sum(1 for tags in results if not tags.is_empty()),
        )
        return results

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _extract_uncached(
        self, chunk_text: str, context_window: str | None
    ) -> tuple[ChunkTags, bool]:
        if self._llm is None:
            return self._fallback(chunk_text), False

        context = f"\nKnown story elements (keep naming consistent):\n{context_window}\n" if context_window else ""
        try:
            async with self._semaphore:
                response = await call_with_timeout(
                    self._llm.complete(
                        system_prompt=_EXTRACTION_SYSTEM_PROMPT,
                        user_prompt=_EXTRACTION_USER_PROMPT.format(
                            context=context, text=chunk_text[:_MAX_PROMPT_CHARS]
                        ),
                        temperature=0.1,
                        max_tokens=600,
                    ),
                    timeout=self._timeout,
                    provider_name=self._llm.get_provider_name(),
                )
        except Exception as exc:
            logger.warning(
                "metadata_extraction_failed",
                provider=self._llm.get_provider_name(),
                error=str(exc),
                text_preview=chunk_text[:80],
            )
            return self._fallback(chunk_text), False

        parsed = parse_tag_response(response)
        if isinstance(parsed, UnstructuredResponse):
            return self._fallback(chunk_text), False
        return parsed.to_tags(), True

    def _fallback(self, chunk_text: str) -> ChunkTags:
        if not self._fallback_to_keywords:
            return ChunkTags()
        return self._keyword_tagger.tag(chunk_text)
