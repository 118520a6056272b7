"""Tests for the calendar sync orchestrator."""

import logging
from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from schedule_sync.auth.google import GoogleOAuth
from schedule_sync.calendar.google_calendar import CalendarEvent
from schedule_sync.calendar.sync import (
    CalendarSyncService,
    event_date_from_start,
    extract_first_link,
)
from schedule_sync.config import Settings
from schedule_sync.database.encryption import decrypt_token
from schedule_sync.database.repository import EventRepository
from schedule_sync.enrichment.pipeline import EnrichmentPipeline
from schedule_sync.errors import FetchError, ProviderFetchError
from schedule_sync.extraction.engine import ExtractionEngine
from schedule_sync.logging_config import ENRICHMENT_OUTCOME_LOGGER


def _event(event_id, summary="DevConf", description=None, **kwargs) -> CalendarEvent:
    return CalendarEvent(
        id=event_id,
        summary=summary,
        description=description,
        start_date_time=kwargs.pop("start_date_time", "2024-03-05T09:00:00+01:00"),
        **kwargs,
    )


class TestHelpers:
    """Tests for link and date extraction."""

    def test_first_link(self):
        text = "Agenda: https://conf.example/agenda and http://other.example"
        assert extract_first_link(text) == "https://conf.example/agenda"

    def test_link_case_insensitive(self):
        assert extract_first_link("see HTTPS://Conf.Example/x") == "HTTPS://Conf.Example/x"

    def test_no_link(self):
        assert extract_first_link("ftp://files.example only") is None
        assert extract_first_link(None) is None

    def test_date_truncated_in_own_offset(self):
        """Test a late-evening timestamp keeps its local date."""
        assert event_date_from_start("2024-03-05T23:30:00-08:00", None) == date(2024, 3, 5)

    def test_utc_suffix(self):
        assert event_date_from_start("2024-03-05T01:00:00Z", None) == date(2024, 3, 5)

    def test_all_day(self):
        assert event_date_from_start(None, "2024-03-05") == date(2024, 3, 5)

    def test_unparseable(self):
        assert event_date_from_start("not-a-date", None) is None
        assert event_date_from_start(None, None) is None


@pytest.fixture
def calendar_client():
    client = MagicMock()
    client.list_events = AsyncMock(return_value=[])
    return client


@pytest.fixture
def page_fetcher():
    return AsyncMock(return_value="<html>Agenda</html>")


@pytest.fixture
def token_requests():
    return []


@pytest.fixture
def oauth(settings: Settings, token_requests) -> GoogleOAuth:
    """OAuth client whose token endpoint always issues a fresh token."""

    def handler(request: httpx.Request) -> httpx.Response:
        token_requests.append(request)
        return httpx.Response(
            200, json={"access_token": "refreshed-access", "expires_in": 3600}
        )

    return GoogleOAuth(settings=settings, transport=httpx.MockTransport(handler))


@pytest.fixture
def make_service(
    repository: EventRepository,
    settings: Settings,
    oauth: GoogleOAuth,
    calendar_client,
    page_fetcher,
    make_llm_client,
    agenda_json,
):
    """Factory for a sync service wired to test doubles."""
    tokens_seen = []

    def factory(token):
        tokens_seen.append(token)
        return calendar_client

    def _make_service(*llm_answers):
        llm_client = make_llm_client(*(llm_answers or (agenda_json,) * 5))
        pipeline = EnrichmentPipeline(
            repository,
            engine=ExtractionEngine(client=llm_client, settings=settings),
            settings=settings,
            fetcher=page_fetcher,
        )
        service = CalendarSyncService(
            repository,
            settings=settings,
            oauth=oauth,
            calendar_client_factory=factory,
            pipeline=pipeline,
        )
        service.tokens_seen = tokens_seen
        service.llm_client = llm_client
        return service

    return _make_service


class TestAccessToken:
    """Tests for token validation before syncing."""

    @pytest.mark.asyncio
    async def test_no_profile(self, make_service, calendar_client):
        result = await make_service().sync_calendar_events("user-1")

        assert result.success is False
        assert result.message == "No profile found for user. Please create a profile or sign up."
        calendar_client.list_events.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_token(self, make_service, repository, calendar_client):
        """Test a profile without an access token aborts the sync."""
        await repository.save_profile_tokens("user-1", "", None, None)

        result = await make_service().sync_calendar_events("user-1")

        assert result.success is False
        assert "connect your Google account" in result.message
        calendar_client.list_events.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_valid_token_used_as_is(self, make_service, make_profile, token_requests):
        await make_profile(access_token="still-valid")
        service = make_service()

        result = await service.sync_calendar_events("user-1")

        assert result.success is True
        assert service.tokens_seen == ["still-valid"]
        assert token_requests == []

    @pytest.mark.asyncio
    async def test_expired_token_refreshed_and_stored(
        self, make_service, make_profile, repository, token_requests
    ):
        """Test an expired token is refreshed and the new one persisted."""
        await make_profile(access_token="expired", expires_in=timedelta(minutes=-5))
        service = make_service()

        result = await service.sync_calendar_events("user-1")

        assert result.success is True
        assert len(token_requests) == 1
        assert service.tokens_seen == ["refreshed-access"]

        profile = await repository.get_profile("user-1")
        assert decrypt_token(profile.google_access_token_encrypted) == "refreshed-access"
        assert decrypt_token(profile.google_refresh_token_encrypted) == "stored-refresh-token"

    @pytest.mark.asyncio
    async def test_refresh_failure(self, repository, settings, make_profile, calendar_client):
        """Test a rejected refresh aborts with the refresh message."""
        await make_profile(expires_in=timedelta(minutes=-5))

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": "invalid_grant"})

        service = CalendarSyncService(
            repository,
            settings=settings,
            oauth=GoogleOAuth(settings=settings, transport=httpx.MockTransport(handler)),
            calendar_client_factory=lambda token: calendar_client,
            pipeline=MagicMock(),
        )

        result = await service.sync_calendar_events("user-1")

        assert result.success is False
        assert result.message == "Failed to refresh expired Google token. Please reconnect."
        calendar_client.list_events.assert_not_awaited()


class TestSyncCalendarEvents:
    """Tests for syncing events and triggering enrichment."""

    @pytest.mark.asyncio
    async def test_provider_error(self, make_service, make_profile, calendar_client):
        await make_profile()
        calendar_client.list_events.side_effect = ProviderFetchError()

        result = await make_service().sync_calendar_events("user-1")

        assert result.success is False
        assert result.message == "No valid events array received from Google Calendar."

    @pytest.mark.asyncio
    async def test_unexpected_error(self, make_service, make_profile, calendar_client):
        await make_profile()
        calendar_client.list_events.side_effect = RuntimeError("boom")

        result = await make_service().sync_calendar_events("user-1")

        assert result.success is False
        assert result.message == "Failed to sync Google Calendar events."

    @pytest.mark.asyncio
    async def test_client_build_failure(
        self, repository, settings, oauth, make_profile, make_llm_client
    ):
        """Test the default client failing to build reports a provider error."""
        await make_profile()
        service = CalendarSyncService(
            repository,
            settings=settings,
            oauth=oauth,
            pipeline=EnrichmentPipeline(
                repository,
                engine=ExtractionEngine(client=make_llm_client(), settings=settings),
                settings=settings,
            ),
        )

        with patch(
            "schedule_sync.calendar.google_calendar.build",
            side_effect=RuntimeError("discovery document unavailable"),
        ):
            result = await service.sync_calendar_events("user-1")

        assert result.success is False
        assert result.message == "Could not connect to Google Calendar."
        assert await repository.list_events("user-1") == []

    @pytest.mark.asyncio
    async def test_window_and_message(self, make_service, make_profile, calendar_client, settings):
        """Test the requested window is passed through and reported."""
        await make_profile()
        time_min = datetime(2024, 3, 4, tzinfo=timezone.utc)
        time_max = datetime(2024, 3, 11, tzinfo=timezone.utc)

        result = await make_service().sync_calendar_events("user-1", time_min, time_max)

        assert result.success is True
        assert result.message == (
            "Google Calendar events synced. Only date portion stored "
            "(Mon Mar 04 2024 to Mon Mar 11 2024)."
        )
        calendar_client.list_events.assert_awaited_once_with(
            time_min, time_max, max_results=settings.calendar_max_results
        )

    @pytest.mark.asyncio
    async def test_default_window(self, make_service, make_profile, settings):
        await make_profile()

        result = await make_service().sync_calendar_events("user-1")

        assert result.time_max - result.time_min == timedelta(days=settings.sync_window_days)

    @pytest.mark.asyncio
    async def test_events_stored_with_date_and_link(
        self, make_service, make_profile, repository, calendar_client
    ):
        """Test events are upserted with date-only starts and extracted links."""
        await make_profile()
        calendar_client.list_events.return_value = [
            _event(
                "gcal-1",
                description="Agenda: https://conf.example/agenda (slides later)",
                location="Berlin",
                start_date_time="2024-03-05T23:30:00-08:00",
            ),
            _event("gcal-2", summary="Dentist", description="no link here"),
        ]

        result = await make_service().sync_calendar_events("user-1")

        assert result.events_found == 2
        assert result.events_created == 2

        stored = {
            e.calendar_event_id: e for e in await repository.list_events("user-1")
        }
        assert stored["gcal-1"].start_date == date(2024, 3, 5)
        assert stored["gcal-1"].external_link == "https://conf.example/agenda"
        assert stored["gcal-2"].external_link is None

    @pytest.mark.asyncio
    async def test_items_without_id_or_title_skipped(
        self, make_service, make_profile, repository, calendar_client
    ):
        await make_profile()
        calendar_client.list_events.return_value = [
            _event(None),
            _event("gcal-1", summary=None),
            _event("gcal-2", summary=""),
            _event("gcal-3"),
        ]

        result = await make_service().sync_calendar_events("user-1")

        assert result.success is True
        assert result.events_skipped == 3
        assert [e.calendar_event_id for e in await repository.list_events("user-1")] == [
            "gcal-3"
        ]

    @pytest.mark.asyncio
    async def test_cancelled_events_skipped(
        self, make_service, make_profile, repository, calendar_client, page_fetcher
    ):
        """Test cancelled items are neither stored nor enriched."""
        await make_profile()
        calendar_client.list_events.return_value = [
            _event(
                "gcal-x",
                description="https://conf.example/agenda",
                status="cancelled",
            ),
            _event("gcal-y", status="confirmed"),
        ]

        result = await make_service().sync_calendar_events("user-1")

        assert result.success is True
        assert result.events_skipped == 1
        assert [e.calendar_event_id for e in await repository.list_events("user-1")] == [
            "gcal-y"
        ]
        page_fetcher.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_enrichment_runs_once_per_link(
        self, make_service, make_profile, repository, calendar_client, page_fetcher
    ):
        """Test a second sync with an unchanged link does not re-scrape."""
        await make_profile()
        calendar_client.list_events.return_value = [
            _event("gcal-1", description="https://conf.example/agenda")
        ]
        service = make_service()

        first = await service.sync_calendar_events("user-1")
        second = await service.sync_calendar_events("user-1")

        assert first.enrichments_attempted == 1
        assert second.enrichments_attempted == 0
        assert second.events_updated == 1
        page_fetcher.assert_awaited_once()

        [event] = await repository.list_events("user-1")
        assert len(await repository.list_sub_events(event.id)) == 2

    @pytest.mark.asyncio
    async def test_changed_link_re_enriches(
        self, make_service, make_profile, calendar_client, page_fetcher
    ):
        await make_profile()
        service = make_service()

        calendar_client.list_events.return_value = [
            _event("gcal-1", description="https://conf.example/v1")
        ]
        await service.sync_calendar_events("user-1")

        calendar_client.list_events.return_value = [
            _event("gcal-1", description="https://conf.example/v2")
        ]
        result = await service.sync_calendar_events("user-1")

        assert result.enrichments_attempted == 1
        assert page_fetcher.await_args_list[-1].args[0] == "https://conf.example/v2"

    @pytest.mark.asyncio
    async def test_enrichment_failure_does_not_fail_sync(
        self, make_service, make_profile, calendar_client, page_fetcher, caplog
    ):
        """Test scrape failures are counted and logged, not surfaced."""
        await make_profile()
        calendar_client.list_events.return_value = [
            _event("gcal-1", description="https://conf.example/agenda"),
            _event("gcal-2", description="https://other.example/agenda"),
        ]
        page_fetcher.side_effect = [
            FetchError("https://conf.example/agenda", 500, "Internal Server Error"),
            "<html>Agenda</html>",
        ]

        with caplog.at_level(logging.INFO, logger=ENRICHMENT_OUTCOME_LOGGER):
            result = await make_service().sync_calendar_events("user-1")

        assert result.success is True
        assert result.enrichments_attempted == 2
        assert result.enrichments_failed == 1

        outcomes = [r for r in caplog.records if r.name == ENRICHMENT_OUTCOME_LOGGER]
        assert [r.enrichment_success for r in outcomes] == [False, True]
        assert outcomes[0].levelno == logging.WARNING

    @pytest.mark.asyncio
    async def test_upsert_failure_counted(
        self, make_service, make_profile, repository, calendar_client, monkeypatch
    ):
        """Test one failing upsert does not stop the others."""
        await make_profile()
        calendar_client.list_events.return_value = [
            _event("bad"),
            _event("good"),
        ]
        real_upsert = repository.upsert_event

        async def flaky_upsert(user_id, calendar_event_id, fields):
            if calendar_event_id == "bad":
                raise RuntimeError("write failed")
            return await real_upsert(user_id, calendar_event_id, fields)

        monkeypatch.setattr(repository, "upsert_event", flaky_upsert)

        result = await make_service().sync_calendar_events("user-1")

        assert result.success is True
        assert result.events_failed == 1
        assert result.events_created == 1


class TestSyncWeek:
    """Tests for the one-week sync."""

    @pytest.mark.asyncio
    async def test_window_from_date(self, make_service, make_profile, calendar_client):
        await make_profile()

        result = await make_service().sync_week("user-1", "2024-03-04")

        assert result.time_min == datetime(2024, 3, 4, tzinfo=timezone.utc)
        assert result.time_max == datetime(2024, 3, 11, tzinfo=timezone.utc)
        calendar_client.list_events.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_invalid_date_defaults_to_now(self, make_service, make_profile):
        await make_profile()
        before = datetime.now(timezone.utc)

        result = await make_service().sync_week("user-1", "next tuesday")

        assert result.success is True
        assert before <= result.time_min <= datetime.now(timezone.utc)
        assert result.time_max - result.time_min == timedelta(days=7)
