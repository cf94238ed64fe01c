"""Hiring-platform resources and mutations.

Staleness windows, polling rules and retry policies for every resource kind
the client reads, and the invalidation set of every mutation it performs.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

from sajilo_client.api import HiringApi
from sajilo_client.cache import ResourceCache
from sajilo_client.mutations import MutationDispatcher, MutationSet, mutation
from sajilo_client.polling import PollingController, every, while_status
from sajilo_client.resources import ResourceSet, resource
from sajilo_client.retry import RetryPolicy, Sleep
from sajilo_client.types import Duration

ENRICHMENT_PROCESSING = "processing"
ENRICHMENT_FINAL_STATUSES = frozenset(
    {"not_started", "verified", "needs_review", "unverified", "failed"}
)

CHAT_HISTORY_POLL = every("5s")
ENRICHMENT_STATUS_POLL = while_status("enrichment_status", {ENRICHMENT_PROCESSING}, "3s")

CHAT_HISTORY_RETRY = RetryPolicy(retries=3, base_delay=1000, max_delay="30s")
START_CHAT_RETRY = RetryPolicy(retries=3, base_delay=1000, max_delay="5s")

INSIGHT_KINDS = ("social-intelligence", "professional-summary", "hr-recommendations")


class HiringQueries(ResourceSet):
    """Cached reads against the hiring API."""

    def __init__(
        self,
        api: HiringApi,
        cache: ResourceCache,
        *,
        polling: PollingController | None = None,
        staleness: Mapping[str, Duration | None] | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        super().__init__(cache, polling=polling, staleness=staleness, sleep=sleep)
        self.api = api

    @resource("health", max_age="2m")
    async def health(self) -> dict[str, Any]:
        return await self.api.health()

    @resource("jobs", max_age="5m")
    async def jobs(self) -> list[dict[str, Any]]:
        return await self.api.jobs()

    @resource("dashboard", max_age="5m")
    async def dashboard(self, job_id: int, include_borderline: bool = False) -> dict[str, Any]:
        return await self.api.dashboard(job_id, include_borderline)

    @resource("candidate", max_age="1m")
    async def candidate(self, person_id: int) -> dict[str, Any]:
        return await self.api.candidate(person_id)

    @resource("candidate-status", max_age="30s")
    async def candidate_status(self, person_id: int) -> dict[str, Any]:
        return await self.api.candidate_status(person_id)

    @resource("interview-readiness", max_age="1m")
    async def interview_readiness(self, person_id: int) -> dict[str, Any]:
        return await self.api.interview_readiness(person_id)

    @resource("scoring-analysis", max_age="5m")
    async def scoring_analysis(self, person_id: int) -> dict[str, Any]:
        return await self.api.scoring_analysis(person_id)

    @resource("job-profile", max_age="5m")
    async def job_profile(self, job_id: int) -> dict[str, Any]:
        return await self.api.job_profile(job_id)

    @resource("job-profile-context", max_age="5m")
    async def job_profile_context(self, job_id: int) -> dict[str, Any]:
        return await self.api.job_profile_context(job_id)

    @resource("job-skills-analysis", max_age="5m")
    async def job_skills_analysis(self, job_id: int) -> dict[str, Any]:
        return await self.api.job_skills_analysis(job_id)

    @resource("chat", max_age=0, poll=CHAT_HISTORY_POLL, retry=CHAT_HISTORY_RETRY)
    async def chat_history(self, person_id: int) -> dict[str, Any]:
        return await self.api.chat_history(person_id)

    @resource("enrichment-status", max_age=0, poll=ENRICHMENT_STATUS_POLL)
    async def enrichment_status(self, person_id: int) -> dict[str, Any]:
        return await self.api.enrichment_status(person_id)

    @resource("social-intelligence", max_age="10m")
    async def social_intelligence(self, person_id: int) -> dict[str, Any]:
        return await self.api.social_intelligence(person_id)

    @resource("professional-summary", max_age="10m")
    async def professional_summary(self, person_id: int) -> dict[str, Any]:
        return await self.api.professional_summary(person_id)

    @resource("hr-recommendations", max_age="10m")
    async def hr_recommendations(self, person_id: int) -> dict[str, Any]:
        return await self.api.hr_recommendations(person_id)


class HiringMutations(MutationSet):
    """State-changing calls and the resources each one makes outdated."""

    def __init__(self, api: HiringApi, dispatcher: MutationDispatcher) -> None:
        super().__init__(dispatcher)
        self.api = api

    @mutation(invalidates=lambda person: [("dashboard",)])
    async def create_person(self, person: dict[str, Any]) -> dict[str, Any]:
        return await self.api.create_person(person)

    @mutation(
        invalidates=lambda person_id, data: [
            ("candidate", person_id),
            ("enrichment-status", person_id),
            ("dashboard",),
        ]
    )
    async def extend_person(self, person_id: int, data: dict[str, Any]) -> dict[str, Any]:
        return await self.api.extend_person(person_id, data)

    @mutation(invalidates=lambda person_id: [("chat", person_id)], retry=START_CHAT_RETRY)
    async def start_chat(self, person_id: int) -> dict[str, Any]:
        return await self.api.start_chat(person_id)

    @mutation(
        invalidates=lambda person_id, message: [
            ("chat", person_id),
            ("candidate", person_id),
        ]
    )
    async def send_message(self, person_id: int, message: str) -> dict[str, Any]:
        return await self.api.send_message(person_id, message)

    @mutation(
        invalidates=lambda person_id: [
            ("candidate", person_id),
            ("candidate-status", person_id),
            ("enrichment-status", person_id),
            ("dashboard",),
        ]
    )
    async def trigger_enrichment(self, person_id: int) -> dict[str, Any]:
        return await self.api.trigger_enrichment(person_id)

    @mutation(
        invalidates=lambda person_id, force=False: [
            ("interview-readiness", person_id),
            ("candidate-status", person_id),
            ("candidate", person_id),
        ]
    )
    async def prepare_interview(self, person_id: int, force: bool = False) -> dict[str, Any]:
        return await self.api.prepare_interview(person_id, force)

    @mutation(
        invalidates=lambda person_id: [
            ("candidate", person_id),
            *((kind, person_id) for kind in INSIGHT_KINDS),
            ("dashboard",),
        ]
    )
    async def refresh_enrichment(self, person_id: int) -> dict[str, Any]:
        return await self.api.refresh_enrichment(person_id)


__all__ = [
    "CHAT_HISTORY_POLL",
    "CHAT_HISTORY_RETRY",
    "ENRICHMENT_FINAL_STATUSES",
    "ENRICHMENT_STATUS_POLL",
    "HiringMutations",
    "HiringQueries",
    "START_CHAT_RETRY",
]
