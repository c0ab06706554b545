"""Shared pytest fixtures for the StoryLens test suite."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest
import structlog

from storylens.interfaces.embedding_provider import IEmbeddingProvider
from storylens.interfaces.llm_provider import ILLMProvider
from storylens.models.cache import CacheNamespace
from storylens.providers.cache.memory_cache import MemoryCacheProvider
from storylens.providers.embedding.hashing_embedding_provider import HashingEmbeddingProvider
from storylens.services.cache_service import CacheService


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo configure_logging() so no logger stays bound to a closed capture stream."""
    yield
    structlog.reset_defaults()


# ---------------------------------------------------------------------------
# Sample manuscripts
# ---------------------------------------------------------------------------

DIALOGUE_SCENE = """\
"I never meant to hurt you," Sarah said, turning away from the window.

Marcus laughed without humor. "You keep saying that. Our relationship \
was built on promises, Sarah, and you broke every one of them."

"That is not fair," Sarah whispered. "I trusted you with everything. \
Our friendship was the only thing I had left."

"Then why did you lie to me?" Marcus asked. He wanted to forgive her, \
but the betrayal still burned. Their relationship had always been \
complicated, two characters circling the same old wound."""

SETTING_SCENE = """\
The harbor lay under a thin grey fog. Fishing boats rocked against \
the wooden pier, their ropes creaking with each slow swell of the tide. \
Beyond the breakwater the lighthouse stood on its rocky point, white \
paint peeling from the tower, the great lamp dark for the first time in \
forty years.

Salt had crusted on the windows of the old customs house. Gulls wheeled \
above the empty market stalls, and the smell of tar and seaweed drifted \
up the cobbled lane toward the chapel on the hill."""


@pytest.fixture
def dialogue_scene() -> str:
    return DIALOGUE_SCENE


@pytest.fixture
def setting_scene() -> str:
    return SETTING_SCENE


@pytest.fixture
def manuscript() -> str:
    """A short two-chapter manuscript mixing dialogue and setting description."""
    return (
        "Chapter 1\n\n"
        + SETTING_SCENE
        + "\n\nChapter 2\n\n"
        + DIALOGUE_SCENE
        + "\n\n"
        + SETTING_SCENE.replace("harbor", "bay").replace("forty", "fifty")
    )


def make_words(count: int, prefix: str = "word") -> str:
    """``count`` distinct words separated by single spaces, no sentence ends."""
    return " ".join(f"{prefix}{i}" for i in range(count))


@pytest.fixture
def words() -> Any:
    return make_words


# ---------------------------------------------------------------------------
# Fake providers
# ---------------------------------------------------------------------------


class FakeEmbeddingProvider(IEmbeddingProvider):
    """Deterministic embedder backed by the hashing provider.

    Records every ``embed`` call; raises ``fail_with`` for any batch that
    contains a text with ``fail_marker`` in it, or for the next
    ``fail_times`` calls regardless of content.  A non-zero ``delay``
    suspends each call so other tasks interleave with it.
    """

    def __init__(
        self,
        dimension: int = 64,
        fail_marker: str | None = None,
        fail_with: Exception | None = None,
        fail_times: int = 0,
        batch_limit: int = 64,
        version: str | None = None,
        delay: float = 0.0,
    ) -> None:
        self._inner = HashingEmbeddingProvider(dimension=dimension)
        self._fail_marker = fail_marker
        self._fail_with = fail_with
        self._fail_times = fail_times
        self._batch_limit = batch_limit
        self._version = version
        self._delay = delay
        self.calls: list[list[str]] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._fail_times > 0:
            self._fail_times -= 1
            raise self._fail_with or RuntimeError("embed failed")
        if self._fail_marker and any(self._fail_marker in t for t in texts):
            raise self._fail_with or RuntimeError("embed failed")
        return await self._inner.embed(texts)

    def get_dimension(self) -> int:
        return self._inner.get_dimension()

    def get_provider_name(self) -> str:
        return "fake"

    def get_version(self) -> str:
        return self._version or f"fake/{self.get_dimension()}"

    def get_batch_limit(self) -> int:
        return self._batch_limit

    def is_available(self) -> bool:
        return True


class FakeLLMProvider(ILLMProvider):
    """Analysis provider returning a canned response (or raising)."""

    def __init__(self, response: str | dict[str, Any] = "", error: Exception | None = None) -> None:
        self._response = json.dumps(response) if isinstance(response, dict) else response
        self._error = error
        self.calls: list[str] = []

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
        max_tokens: int = 800,
    ) -> str:
        self.calls.append(user_prompt)
        if self._error is not None:
            raise self._error
        return self._response

    def get_provider_name(self) -> str:
        return "fake-llm"

    def is_available(self) -> bool:
        return True


@pytest.fixture
def fake_embedder() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def embedder_factory() -> type[FakeEmbeddingProvider]:
    return FakeEmbeddingProvider


@pytest.fixture
def llm_factory() -> type[FakeLLMProvider]:
    return FakeLLMProvider


# ---------------------------------------------------------------------------
# Cache fixtures
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced monotonic clock for TTL tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache_provider(clock: FakeClock) -> MemoryCacheProvider:
    return MemoryCacheProvider(max_size=1000, timer=clock)


@pytest.fixture
def search_cache(cache_provider: MemoryCacheProvider) -> CacheService:
    return CacheService(cache_provider, CacheNamespace.SEARCH)
