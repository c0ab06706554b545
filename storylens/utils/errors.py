"""Custom exception hierarchy for StoryLens.

All application exceptions inherit from :class:`StoryLensError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "ollama") caused the failure.

The hierarchy is organized by engine concern:

    StoryLensError  (base -- catch-all for any StoryLens error)
    +-- ConfigurationError        (bad chunk parameters / settings)
    +-- ProviderError             (embedding or analysis provider failure)
    |   +-- RateLimitError        (provider rate-limit exceeded)
    |   +-- ProviderUnavailableError (provider down / unreachable / timed out)
    +-- DimensionMismatchError    (vector dimension differs from the index)
    +-- IndexingFailedError       (no chunk of a document could be indexed)
    +-- SearchFailedError         (query embedding or index lookup failed)
    +-- CacheKeyError             (malformed cache key)

An empty index or a query with zero matches is never an error: those paths
return empty lists.
"""

from __future__ import annotations


class StoryLensError(Exception):
    """Base exception for all StoryLens errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  ``__str__`` prefixes the provider name in brackets for
    structured log output, e.g. ``[openai] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


class ConfigurationError(StoryLensError):
    """Raised when configuration or chunking parameters are invalid."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# External provider errors
# ---------------------------------------------------------------------------


class ProviderError(StoryLensError):
    """Raised when an embedding or analysis provider call fails."""

    def __init__(
        self,
        message: str = "Provider call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RateLimitError(ProviderError):
    """Raised when a provider rate limit is exceeded.

    ``retry_after`` carries the provider's suggested wait in seconds when it
    sent one.  Callers back off exponentially and retry a capped number of
    times.
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._retry_after = retry_after

    @property
    def retry_after(self) -> float | None:
        return self._retry_after


class ProviderUnavailableError(ProviderError):
    """Raised when a provider is unreachable or did not answer in time."""

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Index / query errors
# ---------------------------------------------------------------------------


class DimensionMismatchError(StoryLensError):
    """Raised when a vector's dimension differs from the one the index holds."""

    def __init__(
        self,
        expected: int,
        actual: int,
        provider_name: str | None = None,
    ) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            message=f"Embedding dimension mismatch: expected {expected}, got {actual}",
            provider_name=provider_name,
        )


class IndexingFailedError(StoryLensError):
    """Raised when a document could not be indexed at all.

    Per-chunk failures never raise this; it is reserved for the case where
    every chunk failed to embed, or the publish step was rejected.
    """

    def __init__(
        self,
        message: str = "Document indexing failed",
        provider_name: str | None = None,
        project_id: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self.project_id = project_id


class SearchFailedError(StoryLensError):
    """Raised when a search could not be answered.

    Carries a ``retry_hint`` suitable for showing to the writer, plus an
    optional ``retry_after`` in seconds.
    """

    def __init__(
        self,
        message: str = "Search failed",
        provider_name: str | None = None,
        retry_after: float | None = None,
        retry_hint: str = "The search service is temporarily unavailable. Try again shortly.",
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._retry_after = retry_after
        self._retry_hint = retry_hint

    @property
    def retry_after(self) -> float | None:
        return self._retry_after

    @property
    def retry_hint(self) -> str:
        return self._retry_hint


class CacheKeyError(StoryLensError):
    """Raised when a cache key is malformed (empty, non-string, too long)."""

    def __init__(
        self,
        message: str = "Malformed cache key",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
