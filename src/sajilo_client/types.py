"""Core types for the resource cache."""

from __future__ import annotations

import enum
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Any,
    Generic,
    NewType,
    TypeVar,
)

T = TypeVar("T")

# Branded key type - compile-time enforcement only
if TYPE_CHECKING:
    ResourceKey = NewType("ResourceKey", tuple[Any, ...])
else:
    ResourceKey = tuple

# A pattern is a key prefix: ("dashboard",) matches every dashboard key
KeyPattern = tuple[Any, ...]

Fetcher = Callable[[], Awaitable[Any]]

# value -> delay in ms before the next poll, or None to stop
PollingRule = Callable[[Any], "int | None"]

# Duration type alias
Duration = str | int  # "30s", "5m", "2h", "1d" or milliseconds


@dataclass(frozen=True, slots=True)
class CacheEntry(Generic[T]):
    """Snapshot of one cached resource."""

    key: ResourceKey
    value: T | None = None
    fetched_at: int | None = None  # Unix timestamp ms of the last success
    is_fetching: bool = False
    error: Exception | None = None
    is_invalidated: bool = False

    @property
    def has_value(self) -> bool:
        return self.fetched_at is not None

    @property
    def status(self) -> str:
        """``"success"`` once a value exists, ``"error"`` without one, else ``"pending"``."""
        if self.has_value:
            return "success"
        if self.error is not None:
            return "error"
        return "pending"


@dataclass(frozen=True, slots=True)
class StalenessPolicy:
    """How long a fetched value may be served before a read refetches it.

    ``max_age`` is in milliseconds: ``0`` always refetches, ``None`` fetches
    once and never refreshes on its own.
    """

    max_age: int | None = 0

    @classmethod
    def always(cls) -> StalenessPolicy:
        return cls(max_age=0)

    @classmethod
    def never(cls) -> StalenessPolicy:
        return cls(max_age=None)

    def is_stale(self, fetched_at: int | None, now: int) -> bool:
        if fetched_at is None:
            return True
        if self.max_age is None:
            return False
        return now - fetched_at >= self.max_age


class Transition(enum.Enum):
    """Entry transitions delivered to listeners."""

    FETCH_STARTED = "fetch_started"
    SUCCESS = "success"
    ERROR = "error"
    INVALIDATED = "invalidated"
    RELEASED = "released"  # last active subscriber left


@dataclass(frozen=True, slots=True)
class CacheEvent(Generic[T]):
    transition: Transition
    entry: CacheEntry[T]


Listener = Callable[[CacheEvent[Any]], None]
