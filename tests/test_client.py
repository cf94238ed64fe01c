"""Integration tests for SajiloClient using mocked HTTP responses."""

import httpx
import pytest
import respx

from sajilo_client import SajiloClient, Settings

BASE_URL = "https://api.test.dev"


@pytest.fixture
def settings() -> Settings:
    return Settings(base_url=BASE_URL)


@pytest.fixture
async def client(settings: Settings, clock, sleep):
    async with SajiloClient(settings, sleep=sleep, clock=clock) as client:
        yield client


class TestApiStatus:
    @respx.mock
    async def test_ready(self, client: SajiloClient) -> None:
        """Test that a healthy backend reports ready."""
        respx.get(f"{BASE_URL}/health").mock(
            return_value=httpx.Response(200, json={"status": "healthy"})
        )

        status = await client.api_status()

        assert status.is_ready
        assert status.status == "healthy"

    @respx.mock
    async def test_unreachable(self, client: SajiloClient) -> None:
        """Test that a failing health check reports an error."""
        respx.get(f"{BASE_URL}/health").mock(return_value=httpx.Response(503))

        status = await client.api_status()

        assert status.has_error
        assert not status.is_ready
        assert status.status is None


class TestCachedReads:
    @respx.mock
    async def test_fresh_reads_are_served_from_cache(self, client: SajiloClient) -> None:
        """Test that a fresh resource is read over HTTP once."""
        route = respx.get(f"{BASE_URL}/sajilo/jobs").mock(
            return_value=httpx.Response(200, json=[{"id": 1}])
        )

        assert await client.queries.jobs() == [{"id": 1}]
        assert await client.queries.jobs() == [{"id": 1}]
        assert route.call_count == 1

    @respx.mock
    async def test_stale_after_max_age(self, client: SajiloClient, clock) -> None:
        """Test that the candidate record refetches after one minute."""
        route = respx.get(f"{BASE_URL}/sajilo/candidate/4/full").mock(
            return_value=httpx.Response(200, json={"id": 4})
        )
        unsubscribe = client.queries.candidate.subscribe(lambda event: None, 4)

        await client.queries.candidate(4)
        clock.advance(59_000)
        await client.queries.candidate(4)
        assert route.call_count == 1

        clock.advance(1_000)
        await client.queries.candidate(4)
        assert route.call_count == 2
        unsubscribe()

    @respx.mock
    async def test_staleness_override(self, clock, sleep) -> None:
        """Test that Settings.staleness overrides a kind's max age."""
        route = respx.get(f"{BASE_URL}/sajilo/jobs").mock(
            return_value=httpx.Response(200, json=[])
        )
        settings = Settings(base_url=BASE_URL, staleness={"jobs": 0})

        async with SajiloClient(settings, sleep=sleep, clock=clock) as client:
            await client.queries.jobs()
            await client.queries.jobs()

        assert route.call_count == 2

    @respx.mock
    async def test_mutation_invalidates_dashboard(self, client: SajiloClient) -> None:
        """Test that creating a person refreshes the dashboard on next read."""
        dashboard = respx.get(f"{BASE_URL}/sajilo/dashboard/3").mock(
            return_value=httpx.Response(200, json={"candidates": []})
        )
        respx.post(f"{BASE_URL}/sajilo/person").mock(
            return_value=httpx.Response(200, json={"id": 11})
        )

        await client.queries.dashboard(3)
        await client.queries.dashboard(3)
        assert dashboard.call_count == 1

        assert await client.mutations.create_person({"name": "Asha"}) == {"id": 11}
        await client.queries.dashboard(3)
        assert dashboard.call_count == 2

    @respx.mock
    async def test_chat_history_retries_server_errors(
        self, client: SajiloClient, sleep
    ) -> None:
        """Test that chat history retries 5xx with 1s then 2s backoff."""
        route = respx.get(f"{BASE_URL}/sajilo/chat/5/history").mock(
            side_effect=[
                httpx.Response(500),
                httpx.Response(502),
                httpx.Response(200, json={"total_turns": 2, "turns": [{}, {}]}),
            ]
        )

        history = await client.queries.chat_history(5)

        assert history["total_turns"] == 2
        assert route.call_count == 3
        assert sleep.delays == [1.0, 2.0]

    @respx.mock
    async def test_chat_history_not_found_is_not_retried(
        self, client: SajiloClient, sleep
    ) -> None:
        """Test that a 404 on chat history is not retried."""
        route = respx.get(f"{BASE_URL}/sajilo/chat/5/history").mock(
            return_value=httpx.Response(404, json={"detail": "Person not found"})
        )

        entry = await client.queries.chat_history.ensure(5)

        assert entry.status == "error"
        assert entry.error.status == 404
        assert route.call_count == 1
        assert sleep.delays == []


class TestEnrichmentFlow:
    @respx.mock
    async def test_trigger_then_track(self, client: SajiloClient, sleep) -> None:
        """Test triggering enrichment and waiting for it to finish."""
        respx.post(f"{BASE_URL}/sajilo/candidate/8/trigger-enrichment").mock(
            return_value=httpx.Response(200, json={"enrichment_status": "processing"})
        )
        status_route = respx.get(f"{BASE_URL}/sajilo/person/8/enrichment-status").mock(
            side_effect=[
                httpx.Response(200, json={"enrichment_status": "processing"}),
                httpx.Response(200, json={"enrichment_status": "processing"}),
                httpx.Response(200, json={"enrichment_status": "verified"}),
            ]
        )

        await client.mutations.trigger_enrichment(8)
        async with client.track_enrichment(8) as tracker:
            assert await tracker.wait_finished() == "verified"

        assert status_route.call_count == 3
        assert sleep.delays == [3.0, 3.0]


class TestLogging:
    """Tests for applying Settings.log_level."""

    async def test_configure_logs_uses_log_level(
        self, monkeypatch: pytest.MonkeyPatch, clock, sleep
    ) -> None:
        """Test that configure_logs=True configures structlog at settings.log_level."""
        levels = []
        monkeypatch.setattr("sajilo_client.client.configure_logging", levels.append)
        settings = Settings(base_url=BASE_URL, log_level="debug")

        async with SajiloClient(settings, sleep=sleep, clock=clock, configure_logs=True):
            pass

        assert levels == ["DEBUG"]

    async def test_logging_left_alone_by_default(
        self, monkeypatch: pytest.MonkeyPatch, settings: Settings
    ) -> None:
        """Test that the client does not touch logging unless asked."""
        levels = []
        monkeypatch.setattr("sajilo_client.client.configure_logging", levels.append)

        async with SajiloClient(settings):
            pass

        assert levels == []
