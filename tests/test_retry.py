"""Tests for retry policies."""

import pytest

from sajilo_client import (
    DecodeError,
    NetworkError,
    NotFoundError,
    RetryPolicy,
    ServerError,
    ValidationError,
)
from sajilo_client.hiring import CHAT_HISTORY_RETRY, START_CHAT_RETRY
from sajilo_client.retry import call_with_retry


def failing(*errors: Exception, result: object = "ok"):
    """Coroutine function raising ``errors`` in order, then returning ``result``."""
    pending = list(errors)
    calls = []

    async def fn() -> object:
        calls.append(1)
        if pending:
            raise pending.pop(0)
        return result

    return fn, calls


class TestRetryPolicy:
    """Tests for RetryPolicy decisions."""

    def test_delay_for(self) -> None:
        """Test the capped exponential delays."""
        assert [START_CHAT_RETRY.delay_for(n) for n in range(5)] == [
            1000,
            2000,
            4000,
            5000,
            5000,
        ]
        assert CHAT_HISTORY_RETRY.delay_for(5) == 30000

    def test_should_retry(self) -> None:
        """Test which errors are retryable."""
        policy = RetryPolicy()
        assert policy.should_retry(ServerError("x", status=500))
        assert policy.should_retry(NetworkError("x"))
        assert not policy.should_retry(NotFoundError("x", status=404))
        assert not policy.should_retry(ValidationError("x", status=422))
        assert not policy.should_retry(DecodeError("x", status=200))
        assert not policy.should_retry(RuntimeError("x"))


class TestCallWithRetry:
    """Tests for the tenacity-backed retry loop."""

    async def test_backoff_then_surface_error(self, sleep) -> None:
        """Four failures: three retries at 1s, 2s, 4s, then the error."""
        fn, calls = failing(*(ServerError("boom", status=500) for _ in range(4)))

        with pytest.raises(ServerError):
            await call_with_retry(fn, START_CHAT_RETRY, sleep=sleep)

        assert len(calls) == 4
        assert sleep.delays == [1.0, 2.0, 4.0]

    async def test_backoff_is_capped(self, sleep) -> None:
        """Test that the delay stops growing at the cap."""
        policy = RetryPolicy(retries=5, base_delay=1000, max_delay="5s")
        fn, calls = failing(*(NetworkError("down") for _ in range(6)))

        with pytest.raises(NetworkError):
            await call_with_retry(fn, policy, sleep=sleep)

        assert sleep.delays == [1.0, 2.0, 4.0, 5.0, 5.0]

    async def test_recovers_after_failures(self, sleep) -> None:
        """Test that a later success is returned."""
        fn, calls = failing(ServerError("a", status=502), ServerError("b", status=503))

        assert await call_with_retry(fn, CHAT_HISTORY_RETRY, sleep=sleep) == "ok"
        assert len(calls) == 3
        assert sleep.delays == [1.0, 2.0]

    async def test_not_found_is_never_retried(self, sleep) -> None:
        """Test that a 404 surfaces at once."""
        fn, calls = failing(NotFoundError("missing", status=404))

        with pytest.raises(NotFoundError):
            await call_with_retry(fn, CHAT_HISTORY_RETRY, sleep=sleep)

        assert len(calls) == 1
        assert sleep.delays == []

    async def test_validation_error_is_not_retried(self, sleep) -> None:
        """Test that a 4xx surfaces at once."""
        fn, calls = failing(ValidationError("bad", status=422))

        with pytest.raises(ValidationError):
            await call_with_retry(fn, START_CHAT_RETRY, sleep=sleep)

        assert len(calls) == 1

    async def test_no_policy_calls_once(self, sleep) -> None:
        """Test that no policy means one attempt."""
        fn, calls = failing(ServerError("boom", status=500))

        with pytest.raises(ServerError):
            await call_with_retry(fn, None, sleep=sleep)

        assert len(calls) == 1
        assert sleep.delays == []
