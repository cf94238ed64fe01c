"""Content-driven polling of cached resources."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Collection
from functools import partial
from typing import Any

import structlog

from sajilo_client.cache import ResourceCache
from sajilo_client.duration import parse_duration
from sajilo_client.keys import serialize_key
from sajilo_client.retry import Sleep
from sajilo_client.types import (
    CacheEntry,
    CacheEvent,
    Duration,
    PollingRule,
    ResourceKey,
    Transition,
)

logger = structlog.get_logger(__name__)


def every(interval: Duration) -> PollingRule:
    """Poll unconditionally at a fixed interval."""
    delay = parse_duration(interval)

    def rule(value: Any) -> int | None:
        return delay

    return rule


def while_status(
    field: str,
    statuses: Collection[str],
    interval: Duration,
) -> PollingRule:
    """Poll at ``interval`` while ``value[field]`` is one of ``statuses``."""
    delay = parse_duration(interval)
    active = frozenset(statuses)

    def rule(value: Any) -> int | None:
        if isinstance(value, dict) and value.get(field) in active:
            return delay
        return None

    return rule


class PollingController:
    """Re-fetches keys on a schedule derived from their last value.

    At most one timer is pending per key. A key is only polled while it has
    an active subscriber in the cache; releasing the last one detaches.
    """

    def __init__(self, cache: ResourceCache, *, sleep: Sleep = asyncio.sleep) -> None:
        self._cache = cache
        self._sleep = sleep
        self._rules: dict[ResourceKey, PollingRule] = {}
        self._timers: dict[ResourceKey, asyncio.Task[None]] = {}
        self._unsubscribes: dict[ResourceKey, Callable[[], None]] = {}

    def attach(self, key: ResourceKey, rule: PollingRule) -> None:
        """Poll ``key`` according to ``rule``, replacing any previous rule."""
        self.detach(key)
        self._rules[key] = rule
        self._unsubscribes[key] = self._cache.subscribe(
            key, partial(self._on_event, key), passive=True
        )
        entry = self._cache.get(key)
        if entry is not None and entry.has_value and not entry.is_fetching:
            self._evaluate(key, entry)

    def detach(self, key: ResourceKey) -> None:
        self._cancel_timer(key)
        self._rules.pop(key, None)
        unsubscribe = self._unsubscribes.pop(key, None)
        if unsubscribe is not None:
            unsubscribe()

    def is_attached(self, key: ResourceKey) -> bool:
        return key in self._rules

    def has_pending_timer(self, key: ResourceKey) -> bool:
        return key in self._timers

    def close(self) -> None:
        """Detach every key."""
        for key in list(self._rules):
            self.detach(key)

    def _on_event(self, key: ResourceKey, event: CacheEvent[Any]) -> None:
        transition = event.transition
        if transition is Transition.FETCH_STARTED:
            # the next success reschedules
            self._cancel_timer(key)
        elif transition in (Transition.SUCCESS, Transition.ERROR):
            self._evaluate(key, event.entry)
        elif transition is Transition.RELEASED:
            logger.debug("polling.released", key=serialize_key(key))
            self.detach(key)

    def _evaluate(self, key: ResourceKey, entry: CacheEntry[Any]) -> None:
        rule = self._rules.get(key)
        if rule is None:
            return

        # a failed first read is evaluated as None
        delay = rule(entry.value if entry.has_value else None)
        if delay is None:
            logger.info("polling.stopped", key=serialize_key(key), reason="rule")
            self.detach(key)
            return
        if not self._cache.is_observed(key):
            return
        self._schedule(key, delay)

    def _schedule(self, key: ResourceKey, delay: int) -> None:
        self._cancel_timer(key)
        self._timers[key] = asyncio.get_running_loop().create_task(self._fire(key, delay))
        logger.debug("polling.scheduled", key=serialize_key(key), delay_ms=delay)

    async def _fire(self, key: ResourceKey, delay: int) -> None:
        await self._sleep(delay / 1000)
        if self._timers.get(key) is asyncio.current_task():
            del self._timers[key]
        self._cache.refetch(key)

    def _cancel_timer(self, key: ResourceKey) -> None:
        timer = self._timers.pop(key, None)
        if timer is not None and timer is not _current_task():
            timer.cancel()


def _current_task() -> asyncio.Task[Any] | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


__all__ = ["PollingController", "every", "while_status"]
