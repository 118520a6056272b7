"""Google Calendar API client.

Lists the events of a user's calendar in a time window.

## API Documentation

https://developers.google.com/calendar/api/v3/reference/events/list

## Authentication

Uses an OAuth 2.0 access token already validated (and refreshed if needed)
by the sync service. The client itself never refreshes tokens.

## Response handling

Items are not validated here; events lacking an id or summary are passed
through and skipped by the sync. A response without an `items` array is
treated as a failed call.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from schedule_sync.errors import ProviderFetchError

logger = logging.getLogger(__name__)


@dataclass
class CalendarEvent:
    """A calendar event as returned by the provider."""

    id: str | None
    summary: str | None
    description: str | None = None
    location: str | None = None
    start_date_time: str | None = None  # RFC 3339 timestamp
    start_date: str | None = None  # All-day events (YYYY-MM-DD)
    status: str = "confirmed"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> CalendarEvent:
        """Create from Google Calendar API response."""
        start_data = data.get("start") or {}
        if not isinstance(start_data, dict):
            start_data = {}

        return cls(
            id=data.get("id"),
            summary=data.get("summary"),
            description=data.get("description"),
            location=data.get("location"),
            start_date_time=start_data.get("dateTime"),
            start_date=start_data.get("date"),
            status=data.get("status", "confirmed"),
        )


class GoogleCalendarClient:
    """Client for the Google Calendar API.

    Example:
        ```python
        client = GoogleCalendarClient(access_token)
        events = await client.list_events(time_min, time_max, max_results=100)
        ```
    """

    def __init__(self, access_token: str, calendar_id: str = "primary"):
        """Initialize the client.

        Args:
            access_token: Valid OAuth access token
            calendar_id: Calendar to read ('primary' for the user's main one)

        Raises:
            ProviderFetchError: If the API client cannot be built
        """
        self.calendar_id = calendar_id
        self._credentials = Credentials(token=access_token)
        try:
            self._service = build(
                "calendar", "v3", credentials=self._credentials, cache_discovery=False
            )
        except Exception as e:
            logger.exception(f"Error building Google Calendar service: {e}")
            raise ProviderFetchError("Could not connect to Google Calendar.") from e

    async def list_events(
        self,
        time_min: datetime,
        time_max: datetime,
        max_results: int = 100,
    ) -> list[CalendarEvent]:
        """List events starting in [time_min, time_max].

        Recurring events are expanded and results ordered by start time. Only
        the first page (up to `max_results` events) is read.

        Raises:
            ProviderFetchError: On API errors or a malformed response
        """
        request = self._service.events().list(
            calendarId=self.calendar_id,
            timeMin=time_min.isoformat(),
            timeMax=time_max.isoformat(),
            maxResults=max_results,
            singleEvents=True,
            orderBy="startTime",
        )

        try:
            result = await asyncio.to_thread(request.execute)
        except HttpError as e:
            logger.error(f"Google Calendar API error: {e}")
            raise ProviderFetchError(
                f"Google Calendar API error: {e.resp.status}",
                status_code=e.resp.status,
            ) from e
        except Exception as e:
            logger.exception(f"Error fetching calendar events from Google: {e}")
            raise ProviderFetchError() from e

        items = result.get("items") if isinstance(result, dict) else None
        if not isinstance(items, list):
            raise ProviderFetchError()

        return [CalendarEvent.from_api(item) for item in items if isinstance(item, dict)]
