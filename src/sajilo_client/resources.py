"""ResourceSet - declarative cached resources.

Provides:
- ResourceSet: Base class grouping cached resource methods
- @resource(kind, ...): Decorator declaring a method as a cached resource
  with its staleness policy, polling rule and retry policy
- Bound resources expose read(), ensure(), subscribe(), poll() and
  invalidate() on top of the shared ResourceCache
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable, Mapping
from typing import Any

from sajilo_client.cache import ResourceCache
from sajilo_client.duration import parse_max_age
from sajilo_client.keys import resource_key
from sajilo_client.polling import PollingController
from sajilo_client.retry import RetryPolicy, Sleep, with_retry
from sajilo_client.types import (
    CacheEntry,
    Duration,
    Fetcher,
    KeyPattern,
    Listener,
    PollingRule,
    ResourceKey,
    StalenessPolicy,
)


class ResourceDescriptor:
    """Descriptor that wraps cached resource methods."""

    def __init__(
        self,
        fn: Any,
        kind: str,
        max_age: Duration | None,
        poll: PollingRule | None,
        retry: RetryPolicy | None,
    ) -> None:
        if not kind:
            raise TypeError(f"@resource on {fn.__name__}: kind must be non-empty")
        if not inspect.iscoroutinefunction(fn):
            raise TypeError(f"@resource on {fn.__name__}: method must be async")

        self._fn = fn
        self._kind = kind
        self._policy = StalenessPolicy(parse_max_age(max_age))
        self._poll = poll
        self._retry = retry
        self._signature = inspect.signature(fn)
        self._name = fn.__name__

    @property
    def kind(self) -> str:
        return self._kind

    def __set_name__(self, owner: type, name: str) -> None:
        self._name = name

    def __get__(self, obj: Any, owner: type) -> Any:
        if obj is None:
            return self
        return BoundResource(self, obj)


class BoundResource:
    """A resource method bound to a ResourceSet instance."""

    __slots__ = ("_descriptor", "_owner")

    def __init__(self, descriptor: ResourceDescriptor, owner: ResourceSet) -> None:
        self._descriptor = descriptor
        self._owner = owner

    @property
    def kind(self) -> str:
        return self._descriptor._kind

    @property
    def policy(self) -> StalenessPolicy:
        return self._owner.policy_for(self._descriptor._kind, self._descriptor._policy)

    def key(self, *args: Any, **kwargs: Any) -> ResourceKey:
        """Full key, defaults applied: dashboard(3) -> ("dashboard", 3, False)."""
        bound = self._descriptor._signature.bind(self._owner, *args, **kwargs)
        bound.apply_defaults()
        params = list(bound.arguments.values())[1:]
        return resource_key(self._descriptor._kind, *params)

    def pattern(self, *args: Any) -> KeyPattern:
        """Prefix pattern: no args matches every key of this kind."""
        return (self._descriptor._kind, *args)

    def fetcher(self, *args: Any, **kwargs: Any) -> Fetcher:
        descriptor = self._descriptor
        owner = self._owner

        async def fetch() -> Any:
            return await descriptor._fn(owner, *args, **kwargs)

        return with_retry(fetch, descriptor._retry, name=descriptor._kind, sleep=owner.sleep)

    def read(self, *args: Any, **kwargs: Any) -> CacheEntry[Any]:
        return self._owner.cache.read(
            self.key(*args, **kwargs), self.fetcher(*args, **kwargs), self.policy
        )

    async def ensure(self, *args: Any, **kwargs: Any) -> CacheEntry[Any]:
        return await self._owner.cache.ensure(
            self.key(*args, **kwargs), self.fetcher(*args, **kwargs), self.policy
        )

    async def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return await self._owner.cache.fetch(
            self.key(*args, **kwargs), self.fetcher(*args, **kwargs), self.policy
        )

    def subscribe(
        self, listener: Listener, *args: Any, **kwargs: Any
    ) -> Callable[[], None]:
        return self._owner.cache.subscribe(self.key(*args, **kwargs), listener)

    def poll(self, *args: Any, **kwargs: Any) -> ResourceKey:
        """Attach this resource's polling rule to the key for these arguments."""
        rule = self._descriptor._poll
        if rule is None:
            raise TypeError(f"resource {self._descriptor._kind!r} has no polling rule")
        if self._owner.polling is None:
            raise RuntimeError("ResourceSet was created without a PollingController")
        key = self.key(*args, **kwargs)
        self._owner.polling.attach(key, rule)
        return key

    def invalidate(self, *args: Any) -> int:
        return self._owner.cache.invalidate(self.pattern(*args))


def resource(
    kind: str,
    *,
    max_age: Duration | None = 0,
    poll: PollingRule | None = None,
    retry: RetryPolicy | None = None,
) -> Any:
    """Decorator for cached resource methods.

    Usage:
        class Queries(ResourceSet):
            @resource("candidate", max_age="1m")
            async def candidate(self, person_id: int) -> dict:
                return await self.api.candidate(person_id)

    The method's arguments (after self, defaults applied) become the key
    parameters after ``kind``.
    """

    def decorator(fn: Any) -> ResourceDescriptor:
        return ResourceDescriptor(fn, kind, max_age, poll, retry)

    return decorator


class ResourceSet:
    """Base class for groups of @resource methods sharing a cache.

    ``staleness`` overrides the declared max age per kind (ms, duration
    strings, or None for never).
    """

    def __init__(
        self,
        cache: ResourceCache,
        *,
        polling: PollingController | None = None,
        staleness: Mapping[str, Duration | None] | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._cache = cache
        self._polling = polling
        self._sleep = sleep
        self._overrides = {
            kind: StalenessPolicy(parse_max_age(max_age))
            for kind, max_age in (staleness or {}).items()
        }

    @property
    def cache(self) -> ResourceCache:
        return self._cache

    @property
    def polling(self) -> PollingController | None:
        return self._polling

    @property
    def sleep(self) -> Sleep:
        return self._sleep

    def policy_for(self, kind: str, default: StalenessPolicy) -> StalenessPolicy:
        return self._overrides.get(kind, default)

    @classmethod
    def kinds(cls) -> list[str]:
        kinds = []
        for name in dir(cls):
            attr = getattr(cls, name)
            if isinstance(attr, ResourceDescriptor):
                kinds.append(attr.kind)
        return kinds


__all__ = ["BoundResource", "ResourceSet", "resource"]
