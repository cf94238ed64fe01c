"""Client facade wiring the request client, cache, polling and mutations."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from sajilo_client.api import HiringApi
from sajilo_client.cache import ResourceCache
from sajilo_client.chat import ChatSession
from sajilo_client.config import Settings, get_settings
from sajilo_client.enrichment import EnrichmentTracker
from sajilo_client.hiring import HiringMutations, HiringQueries
from sajilo_client.logging import configure_logging
from sajilo_client.mutations import MutationDispatcher
from sajilo_client.polling import PollingController
from sajilo_client.retry import Sleep
from sajilo_client.transport import RequestClient


@dataclass(frozen=True, slots=True)
class ApiStatus:
    """Readiness of the backend as seen through the cached health resource."""

    is_loading: bool
    has_error: bool
    status: str | None

    @property
    def is_ready(self) -> bool:
        return not self.is_loading and not self.has_error


class SajiloClient:
    """Entry point for callers.

    Pass ``configure_logs=True`` to set up structlog at ``settings.log_level``.

    Usage:
        async with SajiloClient() as client:
            jobs = await client.queries.jobs()
            person = await client.mutations.create_person({...})
            async with client.chat_session(person["id"]) as chat:
                await chat.send_message("Hello")
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], int] | None = None,
        configure_logs: bool = False,
    ) -> None:
        self.settings = settings or get_settings()
        if configure_logs:
            configure_logging(self.settings.log_level)
        self.http = RequestClient(
            self.settings.base_url,
            timeout=self.settings.timeout_seconds,
            transport=transport,
        )
        self.api = HiringApi(self.http, prefix=self.settings.api_prefix)
        self.cache = ResourceCache(clock=clock, gc_time=self.settings.gc_time_ms)
        self.polling = PollingController(self.cache, sleep=sleep)
        self.dispatcher = MutationDispatcher(self.cache, sleep=sleep)
        self.queries = HiringQueries(
            self.api,
            self.cache,
            polling=self.polling,
            staleness=self.settings.staleness,
            sleep=sleep,
        )
        self.mutations = HiringMutations(self.api, self.dispatcher)
        self._sleep = sleep

    def chat_session(self, person_id: int) -> ChatSession:
        return ChatSession(
            person_id,
            self.queries,
            self.mutations,
            settle_delay=self.settings.chat_settle_delay_ms,
            sleep=self._sleep,
        )

    def track_enrichment(self, person_id: int) -> EnrichmentTracker:
        return EnrichmentTracker(person_id, self.queries)

    async def api_status(self) -> ApiStatus:
        entry = await self.queries.health.ensure()
        return ApiStatus(
            is_loading=entry.is_fetching,
            has_error=entry.error is not None,
            status=entry.value.get("status") if entry.has_value else None,
        )

    async def aclose(self) -> None:
        self.polling.close()
        self.cache.clear()
        await self.http.aclose()

    async def __aenter__(self) -> SajiloClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


__all__ = ["ApiStatus", "SajiloClient"]
