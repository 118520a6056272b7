"""Calendar integration module.

Provides the Google Calendar client and the sync service that stores events
and triggers enrichment of their external links.

## Google Calendar API

Uses the Google Calendar API v3:
- https://developers.google.com/calendar/api/v3/reference

## Event Processing

1. Validate (and refresh) the user's access token
2. Fetch events in the requested window
3. Upsert each event, keeping only the start date
4. Enrich events whose external link is new or changed
"""

from schedule_sync.calendar.google_calendar import (
    CalendarEvent,
    GoogleCalendarClient,
)
from schedule_sync.calendar.sync import (
    CalendarSyncService,
    SyncResult,
    event_date_from_start,
    extract_first_link,
)

__all__ = [
    "GoogleCalendarClient",
    "CalendarEvent",
    "CalendarSyncService",
    "SyncResult",
    "event_date_from_start",
    "extract_first_link",
]
