"""Mutation dispatch with declarative invalidation.

Provides:
- Mutation: a state-changing call plus the key patterns it makes outdated
- MutationDispatcher: runs a mutation, then invalidates on success
- @mutation(...): decorator for mutation methods on a MutationSet
- MutationSet: base class binding decorated methods to a dispatcher
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import structlog

from sajilo_client.cache import ResourceCache
from sajilo_client.errors import ApiError
from sajilo_client.keys import serialize_key
from sajilo_client.retry import RetryPolicy, Sleep, call_with_retry
from sajilo_client.types import KeyPattern

T = TypeVar("T")

InvalidationFn = Callable[..., Iterable[KeyPattern]]

logger = structlog.get_logger(__name__)


def _no_invalidation(*args: Any, **kwargs: Any) -> Iterable[KeyPattern]:
    return ()


@dataclass(frozen=True, slots=True)
class Mutation(Generic[T]):
    """A state-changing call and the keys it invalidates on success.

    ``invalidates`` receives the same arguments as ``fn``.
    """

    name: str
    fn: Callable[..., Awaitable[T]]
    invalidates: InvalidationFn = _no_invalidation
    retry: RetryPolicy | None = None


class MutationDispatcher:
    """Executes mutations against the API and keeps the cache honest.

    Each ``mutate()`` call is independent: concurrent calls for the same
    target are not de-duplicated.
    """

    def __init__(self, cache: ResourceCache, *, sleep: Sleep = asyncio.sleep) -> None:
        self._cache = cache
        self._sleep = sleep

    async def mutate(self, mutation: Mutation[T], *args: Any, **kwargs: Any) -> T:
        """Run ``mutation`` and return its result.

        On success the invalidation set is applied before returning. On
        failure the cache is untouched and the error is re-raised.
        """

        async def call() -> T:
            return await mutation.fn(*args, **kwargs)

        try:
            result = await call_with_retry(
                call, mutation.retry, name=mutation.name, sleep=self._sleep
            )
        except ApiError as exc:
            logger.error(
                "mutation.failed",
                mutation=mutation.name,
                status=exc.status,
                error=exc.message,
            )
            raise
        except Exception as exc:
            logger.error("mutation.failed", mutation=mutation.name, error=repr(exc))
            raise

        patterns = list(mutation.invalidates(*args, **kwargs))
        self._cache.invalidate(*patterns)
        logger.info(
            "mutation.succeeded",
            mutation=mutation.name,
            invalidated=[serialize_key(p) for p in patterns],
        )
        return result


class MutationDescriptor:
    """Descriptor that wraps mutation methods."""

    def __init__(
        self,
        fn: Any,
        invalidates: InvalidationFn,
        retry: RetryPolicy | None,
    ) -> None:
        if not inspect.iscoroutinefunction(fn):
            raise TypeError(f"@mutation on {fn.__name__}: method must be async")
        self._fn = fn
        self._invalidates = invalidates
        self._retry = retry
        self._name = fn.__name__

    def __set_name__(self, owner: type, name: str) -> None:
        self._name = name

    def __get__(self, obj: Any, owner: type) -> Any:
        if obj is None:
            return self
        return BoundMutation(self, obj)


class BoundMutation:
    """A mutation method bound to a MutationSet instance."""

    __slots__ = ("_descriptor", "_owner")

    def __init__(self, descriptor: MutationDescriptor, owner: MutationSet) -> None:
        self._descriptor = descriptor
        self._owner = owner

    @property
    def mutation(self) -> Mutation[Any]:
        descriptor = self._descriptor
        owner = self._owner

        async def fn(*args: Any, **kwargs: Any) -> Any:
            return await descriptor._fn(owner, *args, **kwargs)

        return Mutation(
            name=descriptor._name,
            fn=fn,
            invalidates=descriptor._invalidates,
            retry=descriptor._retry,
        )

    def invalidation_set(self, *args: Any, **kwargs: Any) -> list[KeyPattern]:
        return list(self._descriptor._invalidates(*args, **kwargs))

    async def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return await self._owner.dispatcher.mutate(self.mutation, *args, **kwargs)


def mutation(
    *,
    invalidates: InvalidationFn = _no_invalidation,
    retry: RetryPolicy | None = None,
) -> Any:
    """Decorator for mutation methods.

    Usage:
        class Mutations(MutationSet):
            @mutation(invalidates=lambda person_id: [("chat", person_id)])
            async def start_chat(self, person_id: int) -> dict:
                return await self.api.start_chat(person_id)
    """

    def decorator(fn: Any) -> MutationDescriptor:
        return MutationDescriptor(fn, invalidates, retry)

    return decorator


class MutationSet:
    """Base class for groups of @mutation methods sharing a dispatcher."""

    def __init__(self, dispatcher: MutationDispatcher) -> None:
        self._dispatcher = dispatcher

    @property
    def dispatcher(self) -> MutationDispatcher:
        return self._dispatcher


__all__ = [
    "Mutation",
    "MutationDispatcher",
    "MutationSet",
    "mutation",
]
