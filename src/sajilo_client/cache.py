"""ResourceCache - keyed store for eventually-consistent API resources.

This module provides the resource cache operations:
- read(): synchronous snapshot, schedules a fetch when the entry is stale
- invalidate(): pattern based invalidation, subscribed entries refetch
- subscribe(): transition listeners (active or passive)
- ensure(), fetch(), refetch(): awaitable helpers built on read()

All entry transitions are synchronous single-step updates on the event loop
thread, so no locking is needed. Each key carries a request sequence number;
a completion whose sequence number is not the latest issued for its key is
discarded.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import Any

import structlog

from sajilo_client.duration import parse_duration
from sajilo_client.keys import matches, serialize_key
from sajilo_client.types import (
    CacheEntry,
    CacheEvent,
    Duration,
    Fetcher,
    KeyPattern,
    Listener,
    ResourceKey,
    StalenessPolicy,
    Transition,
)

logger = structlog.get_logger(__name__)

_MISSING: Any = object()


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class _Slot:
    """Mutable bookkeeping behind one key. Never handed out."""

    key: ResourceKey
    entry: CacheEntry[Any]
    released_at: int | None
    fetcher: Fetcher | None = None
    policy: StalenessPolicy = field(default_factory=StalenessPolicy)
    listeners: list[Listener] = field(default_factory=list)
    observers: list[Listener] = field(default_factory=list)
    seq_issued: int = 0
    task: asyncio.Task[None] | None = None
    # seq_issued at the last invalidation; only later fetches clear the flag
    invalidated_seq: int = -1
    # seq of the refetch an invalidation started, while it is in flight
    invalidation_fetch_seq: int | None = None


class ResourceCache:
    """Owned store of fetched resources with in-flight de-duplication."""

    def __init__(
        self,
        *,
        clock: Callable[[], int] | None = None,
        gc_time: Duration = 0,
    ) -> None:
        self._clock = clock or _now_ms
        self._gc_time = parse_duration(gc_time)
        self._slots: dict[ResourceKey, _Slot] = {}

    # -------------------------------------------------------------------------
    # Core operations
    # -------------------------------------------------------------------------

    def read(
        self,
        key: ResourceKey,
        fetcher: Fetcher,
        policy: StalenessPolicy | None = None,
    ) -> CacheEntry[Any]:
        """Return the current snapshot, scheduling a fetch if it is stale.

        A fetch is scheduled when the entry is absent, invalidated or older
        than ``policy.max_age``, and no fetch for the key is in flight.
        Must be called from a running event loop.
        """
        slot = self._slot(key)
        slot.fetcher = fetcher
        if policy is not None:
            slot.policy = policy
        if slot.task is None and self._needs_fetch(slot):
            self._start_fetch(slot)
        return slot.entry

    def invalidate(self, *patterns: KeyPattern) -> int:
        """Mark entries matching any pattern as outdated.

        Subscribed entries refetch immediately; a fetch that was in flight
        before the invalidation is superseded. Entries whose invalidation
        refetch is still running are left alone, so back-to-back
        invalidations cause a single refetch. Returns the number of matched
        entries.
        """
        matched = 0
        for slot in list(self._slots.values()):
            if not any(matches(pattern, slot.key) for pattern in patterns):
                continue
            matched += 1
            if slot.task is not None and slot.invalidation_fetch_seq == slot.seq_issued:
                continue

            slot.invalidated_seq = slot.seq_issued
            self._update(slot, Transition.INVALIDATED, is_invalidated=True)
            if slot.listeners and slot.fetcher is not None:
                self._start_fetch(slot, for_invalidation=True)

        if matched:
            logger.debug(
                "cache.invalidated",
                patterns=[serialize_key(p) for p in patterns],
                matched=matched,
            )
        return matched

    def subscribe(
        self,
        key: ResourceKey,
        listener: Listener,
        *,
        passive: bool = False,
    ) -> Callable[[], None]:
        """Register a transition listener and return its unsubscribe callable.

        Passive listeners observe the key without keeping it subscribed:
        they do not trigger invalidation refetches and do not hold off the
        RELEASED transition.
        """
        slot = self._slot(key)
        bucket = slot.observers if passive else slot.listeners
        bucket.append(listener)
        if not passive:
            slot.released_at = None

        subscribed = True

        def unsubscribe() -> None:
            nonlocal subscribed
            if not subscribed:
                return
            subscribed = False
            bucket.remove(listener)
            if not passive and not slot.listeners:
                slot.released_at = self._clock()
                self._notify(slot, Transition.RELEASED)

        return unsubscribe

    # -------------------------------------------------------------------------
    # Helpers built on the core operations
    # -------------------------------------------------------------------------

    def get(self, key: ResourceKey) -> CacheEntry[Any] | None:
        """Current snapshot without side effects."""
        slot = self._slots.get(key)
        return slot.entry if slot is not None else None

    async def ensure(
        self,
        key: ResourceKey,
        fetcher: Fetcher,
        policy: StalenessPolicy | None = None,
    ) -> CacheEntry[Any]:
        """Read, then wait for any in-flight fetch and return the settled snapshot."""
        self.read(key, fetcher, policy)
        slot = self._slots[key]
        while slot.task is not None:
            # asyncio.wait does not raise when a superseded task is cancelled
            await asyncio.wait({slot.task})
        return slot.entry

    async def fetch(
        self,
        key: ResourceKey,
        fetcher: Fetcher,
        policy: StalenessPolicy | None = None,
    ) -> Any:
        """Like ensure(), but return the value or raise the fetch error."""
        entry = await self.ensure(key, fetcher, policy)
        if entry.error is not None:
            raise entry.error
        return entry.value

    def refetch(self, key: ResourceKey) -> bool:
        """Force a fetch with the last fetcher used for ``key``.

        Returns False when the key is unknown or a fetch is already in flight.
        """
        slot = self._slots.get(key)
        if slot is None or slot.fetcher is None or slot.task is not None:
            return False
        self._start_fetch(slot)
        return True

    def set_value(self, key: ResourceKey, value: Any) -> CacheEntry[Any]:
        """Seed an entry with a known value, as if a fetch had just succeeded."""
        slot = self._slot(key)
        self._update(
            slot,
            Transition.SUCCESS,
            value=value,
            fetched_at=self._clock(),
            error=None,
            is_invalidated=False,
        )
        return slot.entry

    def is_observed(self, key: ResourceKey) -> bool:
        """True while at least one active subscriber holds the key."""
        slot = self._slots.get(key)
        return bool(slot and slot.listeners)

    def keys(self) -> list[ResourceKey]:
        return list(self._slots)

    def collect_garbage(self) -> int:
        """Drop idle entries past the retention window; returns how many."""
        now = self._clock()
        idle = [
            key
            for key, slot in self._slots.items()
            if not slot.listeners
            and not slot.observers
            and slot.task is None
            and slot.released_at is not None
            and now - slot.released_at >= self._gc_time
        ]
        for key in idle:
            del self._slots[key]
        if idle:
            logger.debug("cache.collected", count=len(idle))
        return len(idle)

    def clear(self) -> None:
        """Cancel in-flight fetches and drop every entry."""
        for slot in self._slots.values():
            if slot.task is not None:
                slot.task.cancel()
                slot.task = None
        self._slots.clear()

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _slot(self, key: ResourceKey) -> _Slot:
        slot = self._slots.get(key)
        if slot is None:
            self.collect_garbage()
            slot = _Slot(key=key, entry=CacheEntry(key=key), released_at=self._clock())
            self._slots[key] = slot
        return slot

    def _needs_fetch(self, slot: _Slot) -> bool:
        if slot.entry.is_invalidated:
            return True
        return slot.policy.is_stale(slot.entry.fetched_at, self._clock())

    def _start_fetch(self, slot: _Slot, *, for_invalidation: bool = False) -> None:
        assert slot.fetcher is not None
        if slot.task is not None:
            slot.task.cancel()
        slot.seq_issued += 1
        seq = slot.seq_issued
        slot.invalidation_fetch_seq = seq if for_invalidation else None
        slot.task = asyncio.get_running_loop().create_task(
            self._run_fetch(slot, seq, slot.fetcher)
        )
        self._update(slot, Transition.FETCH_STARTED, is_fetching=True)

    async def _run_fetch(self, slot: _Slot, seq: int, fetcher: Fetcher) -> None:
        try:
            value = await fetcher()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._settle(slot, seq, error=exc)
        else:
            self._settle(slot, seq, value=value)

    def _settle(
        self,
        slot: _Slot,
        seq: int,
        *,
        value: Any = _MISSING,
        error: Exception | None = None,
    ) -> None:
        if seq != slot.seq_issued or self._slots.get(slot.key) is not slot:
            logger.debug(
                "cache.fetch_discarded",
                key=serialize_key(slot.key),
                seq=seq,
                latest=slot.seq_issued,
            )
            return

        slot.task = None
        slot.invalidation_fetch_seq = None
        if error is not None:
            logger.warning(
                "cache.fetch_failed",
                key=serialize_key(slot.key),
                seq=seq,
                error=repr(error),
            )
            self._update(slot, Transition.ERROR, is_fetching=False, error=error)
            return

        self._update(
            slot,
            Transition.SUCCESS,
            value=value,
            fetched_at=self._clock(),
            is_fetching=False,
            error=None,
            is_invalidated=seq <= slot.invalidated_seq,
        )

    def _update(self, slot: _Slot, transition: Transition, **changes: Any) -> None:
        slot.entry = replace(slot.entry, **changes)
        self._notify(slot, transition)

    def _notify(self, slot: _Slot, transition: Transition) -> None:
        event = CacheEvent(transition=transition, entry=slot.entry)
        for listener in [*slot.listeners, *slot.observers]:
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "cache.listener_failed",
                    key=serialize_key(slot.key),
                    transition=transition.value,
                )


__all__ = ["ResourceCache"]
