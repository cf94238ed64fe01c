"""SajiloHire API endpoints.

One coroutine per HTTP endpoint. Responses are returned as decoded JSON;
errors surface as ``ApiError`` subclasses from the request client.
"""

from __future__ import annotations

from typing import Any

from sajilo_client.transport import RequestClient


def _flag(value: bool) -> str:
    return "true" if value else "false"


class HiringApi:
    """Thin endpoint layer over ``RequestClient``."""

    def __init__(self, client: RequestClient, *, prefix: str = "/sajilo") -> None:
        self._client = client
        self._prefix = prefix.rstrip("/")

    def path(self, endpoint: str) -> str:
        return f"{self._prefix}{endpoint}"

    # Health

    async def health(self) -> dict[str, Any]:
        return await self._client.get("/health")

    # Jobs

    async def jobs(self) -> list[dict[str, Any]]:
        return await self._client.get(self.path("/jobs"))

    # Person management

    async def create_person(self, person: dict[str, Any]) -> dict[str, Any]:
        return await self._client.post(self.path("/person"), person)

    async def extend_person(self, person_id: int, data: dict[str, Any]) -> dict[str, Any]:
        return await self._client.post(self.path(f"/person/{person_id}/extend"), data)

    async def enrichment_status(self, person_id: int) -> dict[str, Any]:
        return await self._client.get(self.path(f"/person/{person_id}/enrichment-status"))

    # Chat

    async def start_chat(self, person_id: int) -> dict[str, Any]:
        return await self._client.post(self.path(f"/chat/{person_id}/start"))

    async def send_message(self, person_id: int, message: str) -> dict[str, Any]:
        return await self._client.post(self.path(f"/chat/{person_id}"), {"message": message})

    async def chat_history(self, person_id: int) -> dict[str, Any]:
        return await self._client.get(self.path(f"/chat/{person_id}/history"))

    # Dashboard

    async def dashboard(self, job_id: int, include_borderline: bool = False) -> dict[str, Any]:
        return await self._client.get(
            self.path(f"/dashboard/{job_id}"),
            params={"include_borderline": _flag(include_borderline)},
        )

    # Candidate details

    async def candidate(self, person_id: int) -> dict[str, Any]:
        return await self._client.get(self.path(f"/candidate/{person_id}/full"))

    async def candidate_status(self, person_id: int) -> dict[str, Any]:
        return await self._client.get(self.path(f"/candidate/{person_id}/status"))

    async def trigger_enrichment(self, person_id: int) -> dict[str, Any]:
        return await self._client.post(self.path(f"/candidate/{person_id}/trigger-enrichment"))

    async def interview_readiness(self, person_id: int) -> dict[str, Any]:
        return await self._client.get(self.path(f"/candidate/{person_id}/interview-readiness"))

    async def prepare_interview(self, person_id: int, force: bool = False) -> dict[str, Any]:
        return await self._client.post(
            self.path(f"/candidate/{person_id}/prepare-interview"),
            params={"force": _flag(force)},
        )

    async def scoring_analysis(self, person_id: int) -> dict[str, Any]:
        return await self._client.get(self.path(f"/candidate/{person_id}/scoring-analysis"))

    # Job profiles

    async def job_profile(self, job_id: int) -> dict[str, Any]:
        return await self._client.get(self.path(f"/job-profile/{job_id}"))

    async def job_profile_context(self, job_id: int) -> dict[str, Any]:
        return await self._client.get(self.path(f"/job-profile/{job_id}/context"))

    async def job_skills_analysis(self, job_id: int) -> dict[str, Any]:
        return await self._client.get(self.path(f"/job-profile/{job_id}/skills-analysis"))

    # Insights

    async def social_intelligence(self, person_id: int) -> dict[str, Any]:
        return await self._client.get(self.path(f"/insights/{person_id}/social-intelligence"))

    async def professional_summary(self, person_id: int) -> dict[str, Any]:
        return await self._client.get(self.path(f"/insights/{person_id}/professional-summary"))

    async def hr_recommendations(self, person_id: int) -> dict[str, Any]:
        return await self._client.get(self.path(f"/insights/{person_id}/hr-recommendations"))

    async def refresh_enrichment(self, person_id: int) -> dict[str, Any]:
        return await self._client.post(self.path(f"/insights/{person_id}/refresh-enrichment"))


__all__ = ["HiringApi"]
