"""Unit tests for the shared concurrency helpers."""

from __future__ import annotations

import asyncio

import pytest

from storylens.utils.concurrency import (
    backoff_delay,
    call_with_timeout,
    retry_with_backoff,
    throttled_gather,
)
from storylens.utils.errors import ProviderError, ProviderUnavailableError, RateLimitError


class _Recorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def sleep(self, delay: float) -> None:
        self.delays.append(delay)


class TestThrottledGather:
    @pytest.mark.asyncio
    async def test_bounds_concurrency_and_keeps_order(self) -> None:
        active = 0
        peak = 0

        async def work(i: int) -> int:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return i * 2

        results = await throttled_gather([work(i) for i in range(8)], asyncio.Semaphore(2))

        assert results == [i * 2 for i in range(8)]
        assert peak <= 2

    @pytest.mark.asyncio
    async def test_exceptions_returned_in_place(self) -> None:
        async def ok() -> str:
            return "ok"

        async def bad() -> str:
            raise ValueError("nope")

        results = await throttled_gather([ok(), bad()], asyncio.Semaphore(1))
        assert results[0] == "ok"
        assert isinstance(results[1], ValueError)

    @pytest.mark.asyncio
    async def test_exceptions_raised_when_requested(self) -> None:
        async def bad() -> str:
            raise ValueError("nope")

        with pytest.raises(ValueError):
            await throttled_gather([bad()], asyncio.Semaphore(1), return_exceptions=False)


class TestBackoff:
    def test_exponential_with_cap(self) -> None:
        assert [backoff_delay(i, 0.5, 3.0) for i in range(5)] == [0.5, 1.0, 2.0, 3.0, 3.0]

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self) -> None:
        recorder = _Recorder()
        attempts = 0

        async def flaky() -> str:
            nonlocal attempts
            attempts += 1
            if attempts < 3:
                raise ProviderUnavailableError()
            return "done"

        result = await retry_with_backoff(flaky, base_delay=0.5, sleep=recorder.sleep)

        assert result == "done"
        assert recorder.delays == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_retry_after_respected(self) -> None:
        recorder = _Recorder()
        attempts = 0

        async def limited() -> str:
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise RateLimitError(retry_after=4.0)
            return "done"

        await retry_with_backoff(limited, base_delay=0.5, max_delay=8.0, sleep=recorder.sleep)
        assert recorder.delays == [4.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self) -> None:
        recorder = _Recorder()

        async def always_limited() -> str:
            raise RateLimitError()

        with pytest.raises(RateLimitError):
            await retry_with_backoff(always_limited, max_retries=2, sleep=recorder.sleep)
        assert len(recorder.delays) == 2

    @pytest.mark.asyncio
    async def test_non_retryable_errors_raise_immediately(self) -> None:
        recorder = _Recorder()

        async def broken() -> str:
            raise ProviderError("bad request")

        with pytest.raises(ProviderError):
            await retry_with_backoff(broken, sleep=recorder.sleep)
        assert recorder.delays == []


class TestCallWithTimeout:
    @pytest.mark.asyncio
    async def test_returns_result(self) -> None:
        async def quick() -> int:
            return 7

        assert await call_with_timeout(quick(), timeout=1.0) == 7

    @pytest.mark.asyncio
    async def test_timeout_becomes_provider_unavailable(self) -> None:
        with pytest.raises(ProviderUnavailableError) as exc_info:
            await call_with_timeout(asyncio.sleep(1.0), timeout=0.01, provider_name="slow")
        assert exc_info.value.provider_name == "slow"
