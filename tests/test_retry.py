"""Tests for provider error classification and retry with backoff."""

import httpx
import pytest

from teegen.services.exceptions import (
    ContentPolicyError,
    ProviderError,
    ProviderThrottledError,
    ProviderUnavailableError,
)
from teegen.services.image_generation.retry import RetryPolicy, classify_error, with_retry


class TestClassifyError:
    @pytest.mark.parametrize(
        "message,status_code",
        [
            ("Too many requests", 429),
            ("429 Client Error", None),
            ("Rate limit exceeded for model", None),
            ("RESOURCE_EXHAUSTED: quota", None),
            ("ThrottlingException: slow down", None),
        ],
    )
    def test_throttling(self, message, status_code):
        assert isinstance(classify_error(Exception(message), status_code), ProviderThrottledError)

    @pytest.mark.parametrize(
        "message,status_code",
        [
            ("boom", 503),
            ("internal", 500),
            ("Model is overloaded", None),
            ("error", 529),
            ("Request timed out", None),
        ],
    )
    def test_unavailable(self, message, status_code):
        assert isinstance(classify_error(Exception(message), status_code), ProviderUnavailableError)

    def test_content_policy(self):
        error = classify_error(Exception("Prompt flagged by safety system"))

        assert isinstance(error, ContentPolicyError)

    def test_connection_errors_are_transient(self):
        error = classify_error(httpx.ConnectError("connection refused"))

        assert isinstance(error, ProviderUnavailableError)

    def test_everything_else_is_permanent(self):
        error = classify_error(Exception("Invalid API key"), 401)

        assert type(error) is ProviderError


class TestRetryPolicy:
    def test_delay_doubles_and_caps(self):
        policy = RetryPolicy(base_delay=2.0, max_delay=30.0, jitter=0.0)

        assert [policy.delay_for(n) for n in range(6)] == [2.0, 4.0, 8.0, 16.0, 30.0, 30.0]

    def test_jitter_bounded(self):
        policy = RetryPolicy(base_delay=1.0, max_delay=10.0, jitter=0.5)

        assert all(1.0 <= policy.delay_for(0) <= 1.5 for _ in range(20))


@pytest.mark.asyncio
class TestWithRetry:
    async def test_retries_transient_then_succeeds(self):
        sleeps: list[float] = []
        attempts = {"count": 0}

        async def record_sleep(delay: float) -> None:
            sleeps.append(delay)

        async def operation() -> str:
            attempts["count"] += 1
            if attempts["count"] < 3:
                raise ProviderThrottledError("429")
            return "done"

        policy = RetryPolicy(max_attempts=5, base_delay=2.0, jitter=0.0)
        result = await with_retry(operation, policy, "test.op", sleep=record_sleep)

        assert result == "done"
        assert attempts["count"] == 3
        assert sleeps == [2.0, 4.0]

    async def test_gives_up_after_max_attempts(self):
        attempts = {"count": 0}

        async def no_sleep(delay: float) -> None:
            return None

        async def operation() -> str:
            attempts["count"] += 1
            raise ProviderUnavailableError("503")

        with pytest.raises(ProviderUnavailableError):
            await with_retry(operation, RetryPolicy(max_attempts=3), "test.op", sleep=no_sleep)

        assert attempts["count"] == 3

    async def test_permanent_errors_are_not_retried(self):
        attempts = {"count": 0}

        async def operation() -> str:
            attempts["count"] += 1
            raise ContentPolicyError("blocked")

        with pytest.raises(ContentPolicyError):
            await with_retry(operation, RetryPolicy(), "test.op")

        assert attempts["count"] == 1
