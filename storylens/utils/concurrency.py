"""Shared concurrency primitives for the indexing and query paths.

Three patterns are exposed:

1. **throttled_gather** -- ``asyncio.gather`` with every awaitable wrapped
   in a semaphore acquire/release, so at most N provider calls run at once.

2. **retry_with_backoff** -- re-invokes a coroutine factory on
   :class:`RateLimitError` / :class:`ProviderUnavailableError` with
   exponential backoff and a capped retry count.

3. **call_with_timeout** -- bounds a single external call; a timeout
   becomes a typed :class:`ProviderUnavailableError` rather than blocking
   the caller indefinitely.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

import structlog

from storylens.utils.errors import ProviderUnavailableError, RateLimitError
from storylens.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)

# Errors worth retrying.  Anything else (auth failures, bad requests) is
# surfaced immediately.
RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (RateLimitError, ProviderUnavailableError)


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """Run awaitables concurrently, at most ``semaphore`` slots at a time.

    Results come back in input order.  With ``return_exceptions=True``
    (the default) failures are returned in place rather than raised,
    mirroring ``asyncio.gather``.
    """

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    tasks = [_wrapped(c) for c in coros]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)


def backoff_delay(attempt: int, base: float, cap: float) -> float:
    """Return the exponential backoff delay for the given 0-indexed *attempt*."""
    return min(cap, base * (2**attempt))


async def retry_with_backoff(
    factory: Callable[[], Awaitable[_T]],
    *,
    max_retries: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 8.0,
    operation: str = "provider_call",
    logger: structlog.BoundLogger | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> _T:
    """Await ``factory()`` and retry retryable provider errors.

    The first call plus up to *max_retries* retries are made.  A
    :class:`RateLimitError` carrying ``retry_after`` waits at least that
    long.  The last error is re-raised once retries are exhausted.
    """
    log = logger or _logger
    attempt = 0
    while True:
        try:
            return await factory()
        except RETRYABLE_ERRORS as exc:
            if attempt >= max_retries:
                log.warning(
                    "retries_exhausted",
                    operation=operation,
                    attempts=attempt + 1,
                    error=str(exc),
                )
                raise
            delay = backoff_delay(attempt, base_delay, max_delay)
            if isinstance(exc, RateLimitError) and exc.retry_after:
                delay = max(delay, min(exc.retry_after, max_delay))
            log.info(
                "retrying_after_backoff",
                operation=operation,
                attempt=attempt + 1,
                delay_s=delay,
                error=str(exc),
            )
            await sleep(delay)
            attempt += 1


async def call_with_timeout(
    awaitable: Awaitable[_T],
    timeout: float,
    provider_name: str | None = None,
) -> _T:
    """Await *awaitable* for at most *timeout* seconds.

    Raises
    ------
    ProviderUnavailableError
        If the call did not finish in time.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise ProviderUnavailableError(
            message=f"Provider call timed out after {timeout:.1f}s",
            provider_name=provider_name,
        ) from exc
