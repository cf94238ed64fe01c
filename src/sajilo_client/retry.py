"""Retry policies for reads and mutations, built on tenacity."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from sajilo_client.duration import parse_duration
from sajilo_client.errors import ApiError, NotFoundError
from sajilo_client.types import Duration

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[Any]]

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Exponential backoff: delay before retry n is ``min(base * 2**n, cap)``."""

    retries: int = 3
    base_delay: Duration = 1000
    max_delay: Duration = "30s"
    retry_not_found: bool = False

    def should_retry(self, exc: BaseException) -> bool:
        if isinstance(exc, NotFoundError):
            return self.retry_not_found
        return isinstance(exc, ApiError) and exc.retryable

    def delay_for(self, attempt: int) -> int:
        """Backoff in ms after the failed ``attempt`` (0-based)."""
        base = parse_duration(self.base_delay)
        return min(base * 2**attempt, parse_duration(self.max_delay))


NO_RETRY = RetryPolicy(retries=0)


def _log_before_sleep(name: str) -> Callable[[RetryCallState], None]:
    def before_sleep(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        logger.warning(
            "retry.scheduled",
            call=name,
            attempt=state.attempt_number,
            delay_ms=int((state.next_action.sleep if state.next_action else 0) * 1000),
            error=repr(exc),
        )

    return before_sleep


def retrying(
    policy: RetryPolicy,
    *,
    name: str = "call",
    sleep: Sleep = asyncio.sleep,
) -> AsyncRetrying:
    """Build the tenacity controller for a policy."""
    base_s = parse_duration(policy.base_delay) / 1000
    cap_s = parse_duration(policy.max_delay) / 1000
    return AsyncRetrying(
        stop=stop_after_attempt(policy.retries + 1),
        wait=wait_exponential(multiplier=base_s, exp_base=2, max=cap_s),
        retry=retry_if_exception(policy.should_retry),
        before_sleep=_log_before_sleep(name),
        sleep=sleep,
        reraise=True,
    )


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None,
    *,
    name: str = "call",
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Run ``fn`` under ``policy``; the last error is re-raised on exhaustion."""
    if policy is None or policy.retries <= 0:
        return await fn()
    async for attempt in retrying(policy, name=name, sleep=sleep):
        with attempt:
            return await fn()
    raise AssertionError("unreachable")  # pragma: no cover


def with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None,
    *,
    name: str = "call",
    sleep: Sleep = asyncio.sleep,
) -> Callable[[], Awaitable[T]]:
    """Wrap a zero-argument coroutine function so every call retries."""

    async def wrapper() -> T:
        return await call_with_retry(fn, policy, name=name, sleep=sleep)

    return wrapper


__all__ = ["NO_RETRY", "RetryPolicy", "call_with_retry", "retrying", "with_retry"]
