"""Tests for EnrichmentTracker."""

import asyncio

import pytest

from sajilo_client import (
    EnrichmentTracker,
    HiringQueries,
    NotFoundError,
    PollingController,
    ResourceCache,
    ServerError,
)


class FakeEnrichmentApi:
    """Answers status reads from a script; the last entry repeats."""

    def __init__(self, *script: str | Exception) -> None:
        self.script = list(script)
        self.calls = 0

    async def enrichment_status(self, person_id: int) -> dict:
        self.calls += 1
        outcome = self.script[min(self.calls, len(self.script)) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return {"person_id": person_id, "enrichment_status": outcome}


class BlockingSleep:
    async def __call__(self, seconds: float) -> None:
        await asyncio.Event().wait()


class TestEnrichmentTracker:
    """Tests for waiting on enrichment to finish."""

    async def test_waits_for_final_status(
        self, cache: ResourceCache, polling: PollingController, sleep
    ) -> None:
        """Test that [processing, processing, verified] resolves after two polls."""
        api = FakeEnrichmentApi("processing", "processing", "verified")
        queries = HiringQueries(api, cache, polling=polling)

        async with EnrichmentTracker(42, queries) as tracker:
            assert await tracker.wait_finished() == "verified"
            assert tracker.status == "verified"

        assert api.calls == 3
        assert sleep.delays == [3.0, 3.0]
        assert not polling.is_attached(("enrichment-status", 42))

    async def test_final_status_on_first_read(
        self, cache: ResourceCache, polling: PollingController, sleep
    ) -> None:
        """Test that a final first status resolves without polling."""
        api = FakeEnrichmentApi("needs_review")
        tracker = EnrichmentTracker(42, HiringQueries(api, cache, polling=polling))

        assert await tracker.wait_finished() == "needs_review"
        tracker.close()

        assert api.calls == 1
        assert sleep.delays == []

    async def test_status_before_open(self, cache: ResourceCache, polling) -> None:
        """Test that nothing is known before the tracker opens."""
        tracker = EnrichmentTracker(42, HiringQueries(FakeEnrichmentApi(), cache, polling=polling))
        assert tracker.status is None
        assert tracker.entry is None

    async def test_close_cancels_wait(self, cache: ResourceCache, drain) -> None:
        """Test that close() cancels a pending wait and the poll timer."""
        polling = PollingController(cache, sleep=BlockingSleep())
        api = FakeEnrichmentApi("processing")
        tracker = EnrichmentTracker(42, HiringQueries(api, cache, polling=polling))

        tracker.open()
        await drain()
        assert tracker.status == "processing"
        assert polling.has_pending_timer(("enrichment-status", 42))

        waiter = asyncio.ensure_future(tracker.wait_finished())
        await drain()
        tracker.close()

        with pytest.raises(asyncio.CancelledError):
            await waiter
        assert not polling.has_pending_timer(("enrichment-status", 42))

    async def test_unknown_person_fails_wait(
        self, cache: ResourceCache, polling: PollingController, sleep
    ) -> None:
        """Test that a 404 on the first status read fails wait_finished()."""
        api = FakeEnrichmentApi(NotFoundError("Person not found", status=404))
        tracker = EnrichmentTracker(42, HiringQueries(api, cache, polling=polling))

        with pytest.raises(NotFoundError):
            await asyncio.wait_for(tracker.wait_finished(), 1.0)
        tracker.close()

        assert api.calls == 1
        assert sleep.delays == []
        assert not polling.is_attached(("enrichment-status", 42))

    async def test_poll_error_after_value_keeps_waiting(
        self, cache: ResourceCache, polling: PollingController, sleep
    ) -> None:
        """Test that a failed poll with a known status keeps polling to the end."""
        api = FakeEnrichmentApi("processing", ServerError("busy", status=503), "failed")
        tracker = EnrichmentTracker(42, HiringQueries(api, cache, polling=polling))

        assert await asyncio.wait_for(tracker.wait_finished(), 1.0) == "failed"
        tracker.close()

        assert api.calls == 3
        assert sleep.delays == [3.0, 3.0]

    async def test_unknown_status_still_resolves(
        self, cache: ResourceCache, polling: PollingController
    ) -> None:
        """Test that a status outside the known set ends the wait."""
        api = FakeEnrichmentApi("processing", "archived")
        tracker = EnrichmentTracker(42, HiringQueries(api, cache, polling=polling))

        assert await asyncio.wait_for(tracker.wait_finished(), 1.0) == "archived"
        tracker.close()
