"""Calendar synchronization service.

Syncs a user's Google Calendar events into the local store and enriches
events whose external link is new or changed.

## Sync Process

1. Token check: load the user's profile and stored access token
2. Token refresh: exchange the refresh token if the access token expired
3. Fetch the events in the time window (default: now to now + 30 days)
4. For each event, in provider order:
   a. Skip items without an id or title, and cancelled items
   b. Keep only the date of the start, and the first http(s) link of the
      description as the external link
   c. Upsert by (user_id, calendar event id)
   d. If the external link is new or changed, run the enrichment pipeline
5. Report success with the window covered

Failures in steps 1-3 abort the sync with a failed result. Enrichment
failures are logged (see `schedule_sync.logging_config`) and counted but
never turn a sync into a failure.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Callable

from schedule_sync.auth.google import GoogleOAuth
from schedule_sync.calendar.google_calendar import CalendarEvent, GoogleCalendarClient
from schedule_sync.config import Settings, get_settings
from schedule_sync.database.encryption import decrypt_token
from schedule_sync.database.repository import EventFields, EventRepository
from schedule_sync.enrichment.pipeline import EnrichmentPipeline
from schedule_sync.errors import NoProfileError, NoTokenError, ScheduleSyncError
from schedule_sync.logging_config import get_outcome_logger

logger = logging.getLogger(__name__)

LINK_PATTERN = re.compile(r"https?://\S+", re.IGNORECASE)


def extract_first_link(text: str | None) -> str | None:
    """Return the first http(s) URL in text, or None."""
    if not text:
        return None
    match = LINK_PATTERN.search(text)
    return match.group(0) if match else None


def event_date_from_start(
    start_date_time: str | None, start_date: str | None
) -> date | None:
    """Date-only value for an event start.

    Timestamps are truncated to their calendar date in their own offset;
    all-day dates are used as-is. Unparseable values give None.
    """
    try:
        if start_date_time:
            return datetime.fromisoformat(start_date_time.replace("Z", "+00:00")).date()
        if start_date:
            return date.fromisoformat(start_date)
    except ValueError:
        logger.warning(
            f"Unparseable event start: dateTime={start_date_time!r} date={start_date!r}"
        )
    return None


def _as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (e.g. from SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class SyncResult:
    """Result of a calendar sync.

    `success` only reflects token, window and provider stages. Enrichment
    counters are diagnostics and do not affect it.
    """

    success: bool
    message: str
    time_min: datetime | None = None
    time_max: datetime | None = None
    events_found: int = 0
    events_created: int = 0
    events_updated: int = 0
    events_skipped: int = 0
    events_failed: int = 0
    enrichments_attempted: int = 0
    enrichments_failed: int = 0
    enriched_event_ids: list[uuid.UUID] = field(default_factory=list)
    synced_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class CalendarSyncService:
    """Service for synchronizing a user's calendar.

    Example:
        ```python
        async with get_db() as session:
            service = CalendarSyncService(EventRepository(session), settings)
            result = await service.sync_calendar_events(user_id)
        ```
    """

    def __init__(
        self,
        repository: EventRepository,
        settings: Settings | None = None,
        oauth: GoogleOAuth | None = None,
        calendar_client_factory: Callable[[str], GoogleCalendarClient] | None = None,
        pipeline: EnrichmentPipeline | None = None,
    ):
        """Initialize the sync service.

        Args:
            repository: Persistence for profiles, events and sub-events
            settings: Configuration (defaults to environment settings)
            oauth: Token refresher
            calendar_client_factory: Builds a calendar client from an access token
            pipeline: Enrichment pipeline for events with a new/changed link
        """
        self.repository = repository
        self.settings = settings or get_settings()
        self.oauth = oauth or GoogleOAuth(settings=self.settings)
        self.calendar_client_factory = calendar_client_factory or (
            lambda token: GoogleCalendarClient(token, self.settings.google_calendar_id)
        )
        self.pipeline = pipeline or EnrichmentPipeline(repository, settings=self.settings)

    async def get_valid_access_token(self, user_id: str) -> str:
        """Return a usable access token, refreshing and storing it if expired.

        Raises:
            NoProfileError: No profile for the user
            NoTokenError: No access token was ever stored
            RefreshError: The token expired and could not be refreshed
        """
        profile = await self.repository.get_profile(user_id)
        if profile is None:
            raise NoProfileError(user_id)

        try:
            access_token = decrypt_token(profile.google_access_token_encrypted)
        except ValueError as e:
            logger.error(f"Stored access token for user {user_id} is unreadable")
            raise NoTokenError(user_id) from e
        if not access_token:
            raise NoTokenError(user_id)

        expires = profile.google_token_expires
        if expires is None or _as_utc(expires) >= datetime.now(timezone.utc):
            return access_token

        logger.info(f"Access token for user {user_id} expired, refreshing")
        try:
            refresh_token = decrypt_token(profile.google_refresh_token_encrypted)
        except ValueError:
            refresh_token = None

        tokens = await self.oauth.refresh_access_token(refresh_token)
        await self.repository.save_profile_tokens(
            user_id,
            tokens.access_token,
            tokens.refresh_token,
            tokens.expires_at,
        )
        return tokens.access_token

    async def sync_calendar_events(
        self,
        user_id: str,
        time_min: datetime | None = None,
        time_max: datetime | None = None,
    ) -> SyncResult:
        """Sync events in [time_min, time_max] for a user.

        Args:
            user_id: Opaque user identifier
            time_min: Window start (default: now)
            time_max: Window end (default: now + sync_window_days)

        Returns:
            SyncResult; failed only for token or provider errors
        """
        now = datetime.now(timezone.utc)
        used_min = _as_utc(time_min) if time_min else now
        used_max = (
            _as_utc(time_max)
            if time_max
            else now + timedelta(days=self.settings.sync_window_days)
        )

        try:
            access_token = await self.get_valid_access_token(user_id)

            client = self.calendar_client_factory(access_token)
            events = await client.list_events(
                used_min, used_max, max_results=self.settings.calendar_max_results
            )
        except ScheduleSyncError as e:
            logger.warning(f"Calendar sync aborted for user {user_id}: {e.message}")
            return SyncResult(
                success=False, message=e.message, time_min=used_min, time_max=used_max
            )
        except Exception as e:
            logger.exception(f"Error syncing Google Calendar events: {e}")
            return SyncResult(
                success=False,
                message="Failed to sync Google Calendar events.",
                time_min=used_min,
                time_max=used_max,
            )

        result = SyncResult(
            success=True,
            message=(
                "Google Calendar events synced. Only date portion stored "
                f"({used_min:%a %b %d %Y} to {used_max:%a %b %d %Y})."
            ),
            time_min=used_min,
            time_max=used_max,
            events_found=len(events),
        )

        for event in events:
            event_id = await self._upsert_event(user_id, event, result)
            if event_id is not None:
                await self._enrich(event_id, result)

        logger.info(
            f"Synced calendar for user {user_id}: "
            f"{result.events_found} found, "
            f"{result.events_created} created, "
            f"{result.events_updated} updated, "
            f"{result.enrichments_attempted} enriched "
            f"({result.enrichments_failed} failed)"
        )

        return result

    async def sync_week(self, user_id: str, start_date_str: str) -> SyncResult:
        """Sync a window of `sync_now_window_days` days from a date string.

        An unparseable date falls back to now.
        """
        try:
            start = datetime.fromisoformat(start_date_str.strip())
        except (ValueError, AttributeError):
            logger.warning(f"Invalid start date {start_date_str!r}, defaulting to now.")
            start = datetime.now(timezone.utc)

        start = _as_utc(start)
        end = start + timedelta(days=self.settings.sync_now_window_days)
        return await self.sync_calendar_events(user_id, start, end)

    async def _upsert_event(
        self,
        user_id: str,
        event: CalendarEvent,
        result: SyncResult,
    ) -> uuid.UUID | None:
        """Upsert one provider event.

        Returns:
            The stored event id when it needs enrichment, else None
        """
        if not event.id or not event.summary:
            result.events_skipped += 1
            return None

        if event.status == "cancelled":
            logger.debug(f"Skipping cancelled event {event.id}")
            result.events_skipped += 1
            return None

        fields = EventFields(
            event_title=event.summary,
            start_date=event_date_from_start(event.start_date_time, event.start_date),
            location=event.location or None,
            external_link=extract_first_link(event.description),
        )

        try:
            outcome = await self.repository.upsert_event(user_id, event.id, fields)
        except Exception as e:
            logger.exception(f"Error upserting event {event.id}: {e}")
            result.events_failed += 1
            return None

        if outcome.created:
            result.events_created += 1
        else:
            result.events_updated += 1

        if outcome.link_is_new_or_changed:
            return outcome.event.id
        return None

    async def _enrich(self, event_id: uuid.UUID, result: SyncResult) -> None:
        outcome_logger = get_outcome_logger()
        result.enrichments_attempted += 1
        result.enriched_event_ids.append(event_id)

        try:
            enrichment = await self.pipeline.process_external_link(event_id)
        except Exception as e:
            logger.exception(f"Unexpected error enriching event {event_id}: {e}")
            result.enrichments_failed += 1
            outcome_logger.warning(
                f"event={event_id} success=False message={e!s}",
                extra={"event_id": str(event_id), "enrichment_success": False},
            )
            return

        if not enrichment.success:
            result.enrichments_failed += 1
            logger.warning(
                f"Scrape/parse failed for event {event_id}: {enrichment.message}"
            )

        outcome_logger.log(
            logging.INFO if enrichment.success else logging.WARNING,
            f"event={event_id} success={enrichment.success} "
            f"sub_events={enrichment.sub_events_created} message={enrichment.message}",
            extra={
                "event_id": str(event_id),
                "enrichment_success": enrichment.success,
                "sub_events_created": enrichment.sub_events_created,
            },
        )
