"""Tracking of background enrichment jobs."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import structlog

from sajilo_client.hiring import ENRICHMENT_FINAL_STATUSES, ENRICHMENT_PROCESSING
from sajilo_client.types import CacheEntry, CacheEvent, Transition

if TYPE_CHECKING:
    from sajilo_client.hiring import HiringQueries

logger = structlog.get_logger(__name__)


class EnrichmentTracker:
    """Follows one applicant's enrichment status until it leaves ``processing``.

    The status resource is polled every 3 seconds while processing; the
    polling stops on its own once any other status comes back. A first read
    that fails outright fails ``wait_finished()`` with the fetch error.
    """

    def __init__(self, person_id: int, queries: HiringQueries) -> None:
        self.person_id = person_id
        self._queries = queries
        self._unsubscribe: Callable[[], None] | None = None
        self._finished: asyncio.Future[str] | None = None

    @property
    def status(self) -> str | None:
        entry = self.entry
        if entry is None or not entry.has_value:
            return None
        return entry.value.get("enrichment_status")

    @property
    def entry(self) -> CacheEntry[Any] | None:
        return self._queries.cache.get(self._queries.enrichment_status.key(self.person_id))

    def open(self) -> CacheEntry[Any]:
        if self._unsubscribe is None:
            self._finished = asyncio.get_running_loop().create_future()
            self._unsubscribe = self._queries.enrichment_status.subscribe(
                self._on_event, self.person_id
            )
            self._queries.enrichment_status.poll(self.person_id)
        return self._queries.enrichment_status.read(self.person_id)

    async def wait_finished(self) -> str:
        """Resolve with the first status that is not ``processing``."""
        if self._finished is None:
            self.open()
        assert self._finished is not None
        return await self._finished

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._finished is not None and not self._finished.done():
            self._finished.cancel()

    async def __aenter__(self) -> EnrichmentTracker:
        self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    def _on_event(self, event: CacheEvent[Any]) -> None:
        if self._finished is None or self._finished.done():
            return
        entry = event.entry
        if event.transition is Transition.ERROR and not entry.has_value:
            logger.error(
                "enrichment.status_failed", person_id=self.person_id, error=repr(entry.error)
            )
            self._finished.set_exception(entry.error)
            return
        if event.transition is not Transition.SUCCESS:
            return

        status = (entry.value or {}).get("enrichment_status")
        if status == ENRICHMENT_PROCESSING:
            return
        if status not in ENRICHMENT_FINAL_STATUSES:
            logger.warning("enrichment.unknown_status", person_id=self.person_id, status=status)
        else:
            logger.info("enrichment.finished", person_id=self.person_id, status=status)
        self._finished.set_result(status)


__all__ = ["EnrichmentTracker"]
