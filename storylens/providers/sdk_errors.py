"""Translation of provider SDK exceptions into StoryLens errors.

The ``openai`` and ``anthropic`` SDKs share an exception layout (both are
generated from the same client toolkit), so one mapping serves both:

    SDK RateLimitError               -> RateLimitError (with retry_after)
    SDK APITimeoutError /
        APIConnectionError /
        InternalServerError          -> ProviderUnavailableError
    any other SDK APIError           -> ProviderError
"""

from __future__ import annotations

from types import ModuleType

import anthropic
import openai

from storylens.utils.errors import ProviderError, ProviderUnavailableError, RateLimitError


def _retry_after_seconds(exc: Exception) -> float | None:
    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None)
    if not headers:
        return None
    raw = headers.get("retry-after")
    if raw is None:
        return None
    try:
        return max(0.0, float(raw))
    except (TypeError, ValueError):
        return None


def _translate(sdk: ModuleType, exc: Exception, provider_name: str, action: str) -> ProviderError:
    if isinstance(exc, sdk.RateLimitError):
        return RateLimitError(
            message=f"{action} rate limited: {exc}",
            provider_name=provider_name,
            retry_after=_retry_after_seconds(exc),
        )
    if isinstance(exc, (sdk.APITimeoutError, sdk.APIConnectionError, sdk.InternalServerError)):
        return ProviderUnavailableError(
            message=f"{action} unavailable: {exc}",
            provider_name=provider_name,
        )
    return ProviderError(message=f"{action} API error: {exc}", provider_name=provider_name)


def translate_openai_error(
    exc: openai.APIError, provider_name: str, action: str = "request"
) -> ProviderError:
    """Map an ``openai`` SDK exception onto the StoryLens provider errors."""
    return _translate(openai, exc, provider_name, action)


def translate_anthropic_error(
    exc: anthropic.APIError, provider_name: str, action: str = "request"
) -> ProviderError:
    """Map an ``anthropic`` SDK exception onto the StoryLens provider errors."""
    return _translate(anthropic, exc, provider_name, action)
