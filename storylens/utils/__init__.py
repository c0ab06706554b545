"""Utility modules for StoryLens.

Available utility modules (all re-exported here for convenience):

- **errors** -- Domain exception hierarchy rooted at StoryLensError; provider
  failures, indexing failures and search failures each have their own
  subclass so callers can handle them without broad ``except`` blocks.
- **concurrency** -- asyncio semaphore throttling, exponential backoff and
  per-call timeouts that keep provider calls under rate limits.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **text** -- abbreviation-aware sentence splitting, tokenising and tag
  normalisation shared by the chunker, tagger and query engine.
"""

# -- Domain exception hierarchy --------------------------------------------
from storylens.utils.errors import (
    CacheKeyError,
    ConfigurationError,
    DimensionMismatchError,
    IndexingFailedError,
    ProviderError,
    ProviderUnavailableError,
    RateLimitError,
    SearchFailedError,
    StoryLensError,
)

# -- Async concurrency helpers ---------------------------------------------
from storylens.utils.concurrency import call_with_timeout, retry_with_backoff, throttled_gather

# -- Structured logging setup ----------------------------------------------
from storylens.utils.logging import configure_logging, get_logger

# -- Text helpers ----------------------------------------------------------
from storylens.utils.text import count_words, dedupe_casefold, split_sentences, tokenize

__all__ = [
    "CacheKeyError",
    "ConfigurationError",
    "DimensionMismatchError",
    "IndexingFailedError",
    "ProviderError",
    "ProviderUnavailableError",
    "RateLimitError",
    "SearchFailedError",
    "StoryLensError",
    "call_with_timeout",
    "configure_logging",
    "count_words",
    "dedupe_casefold",
    "get_logger",
    "retry_with_backoff",
    "split_sentences",
    "throttled_gather",
    "tokenize",
]
