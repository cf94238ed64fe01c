"""Shared pytest fixtures."""

import asyncio

import pytest

from sajilo_client import (
    MutationDispatcher,
    PollingController,
    ResourceCache,
    define_keys,
)


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = 1_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class RecordingSleep:
    """Stand-in for asyncio.sleep that records delays and returns at once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        await asyncio.sleep(0)


async def _drain(rounds: int = 50) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def drain():
    """Let pending tasks and callbacks run."""
    return _drain


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def cache(clock: FakeClock) -> ResourceCache:
    """Create a fresh ResourceCache on a fake clock for each test."""
    return ResourceCache(clock=clock)


@pytest.fixture
def polling(cache: ResourceCache, sleep: RecordingSleep) -> PollingController:
    return PollingController(cache, sleep=sleep)


@pytest.fixture
def dispatcher(cache: ResourceCache, sleep: RecordingSleep) -> MutationDispatcher:
    return MutationDispatcher(cache, sleep=sleep)


@pytest.fixture
def keys() -> dict:
    """Create common key definitions for tests."""
    return define_keys(
        {
            "candidate": lambda id: ("candidate", id),
            "chat": lambda id: ("chat", id),
            "dashboard": lambda job_id, borderline=False: ("dashboard", job_id, borderline),
        }
    )
