"""Provider error classification and backoff for throttling-class errors."""

import asyncio
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

import httpx
import structlog

from teegen.services.exceptions import (
    ContentPolicyError,
    ProviderError,
    ProviderThrottledError,
    ProviderUnavailableError,
    ServiceError,
    TransientError,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def classify_error(exception: Exception, status_code: int | None = None) -> ServiceError:
    """Classify a provider exception into retry category.

    Args:
        exception: Original exception from a provider SDK or the network layer
        status_code: HTTP status reported by the SDK, when it exposes one

    Classification rules:
        - 429 / rate limit / quota / throttling → ProviderThrottledError
        - 500, 503, 504, 529 / overloaded / unavailable / timeout → ProviderUnavailableError
        - Content policy violations → ContentPolicyError
        - Connection errors → ProviderUnavailableError
        - Everything else (auth, validation, other 4xx) → ProviderError
    """
    error_message = str(exception)
    error_message_lower = error_message.lower()

    if (
        status_code == 429
        or "429" in error_message
        or "rate limit" in error_message_lower
        or "rate_limit" in error_message_lower
        or "quota" in error_message_lower
        or "throttl" in error_message_lower
        or "resource_exhausted" in error_message_lower
    ):
        return ProviderThrottledError(f"Rate limit exceeded: {error_message}")

    if (
        status_code in (500, 503, 504, 529)
        or "503" in error_message
        or "service unavailable" in error_message_lower
        or "overloaded" in error_message_lower
        or "timeout" in error_message_lower
        or "timed out" in error_message_lower
    ):
        return ProviderUnavailableError(f"Service unavailable: {error_message}")

    if (
        "content policy" in error_message_lower
        or "nsfw" in error_message_lower
        or "safety" in error_message_lower
        or "inappropriate" in error_message_lower
    ):
        return ContentPolicyError(f"Content policy violation: {error_message}")

    if isinstance(exception, (ConnectionError, TimeoutError, httpx.TransportError)):
        return ProviderUnavailableError(f"Connection error: {error_message}")

    return ProviderError(f"Permanent error: {error_message}")


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff schedule: min(base * 2**attempt, max) plus up to `jitter` seconds."""

    max_attempts: int = 5
    base_delay: float = 2.0
    max_delay: float = 30.0
    jitter: float = 1.0

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number attempt + 1 (attempt is zero-based)."""
        return min(self.base_delay * (2**attempt), self.max_delay) + random.uniform(0, self.jitter)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    operation_name: str,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run operation, retrying only TransientError.

    Any other exception propagates immediately. When attempts run out the last
    TransientError propagates so the queue can redeliver the job.

    Args:
        operation: Zero-argument coroutine function to run
        policy: Backoff schedule
        operation_name: Name used in log events
        sleep: Awaitable sleep (tests inject a recorder)
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except TransientError as e:
            attempt += 1
            if attempt >= policy.max_attempts:
                logger.error(
                    "provider.retries_exhausted",
                    operation=operation_name,
                    attempts=attempt,
                    error=str(e),
                )
                raise
            delay = policy.delay_for(attempt - 1)
            logger.warning(
                "provider.retry",
                operation=operation_name,
                attempt=attempt,
                max_attempts=policy.max_attempts,
                delay_seconds=round(delay, 2),
                error=str(e),
            )
            await sleep(delay)
