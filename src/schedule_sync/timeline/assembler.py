"""Read-side timeline of sub-events.

Sub-events from all of a user's events are joined with their parent's
context, deduplicated, bucketed by the parent's date, and grouped into runs
of overlapping sessions for display.

## Overlap grouping

Within a date bucket, items are ordered by start (items without a start come
first, otherwise input order is kept). A group's running end is the latest
end seen so far, where an item without an end counts as ending at its start.
An item joins the current group when its start is at or before the running
end, so touching sessions share a group. An item without a start, or a group
whose running end is unknown, always opens a new group unless it is the
very first item.
"""

from __future__ import annotations

import re
import uuid
from datetime import date, datetime, time
from typing import Iterable, Sequence

from pydantic import BaseModel, Field

from schedule_sync.database.models import Event, SubEvent

UNKNOWN_DATE = "unknown"

_TIME_TOKEN = re.compile(r"^(\d{1,2})(?::(\d{2}))?\s*(am|pm)$", re.IGNORECASE)


class TimelineItem(BaseModel):
    """A sub-event with the context of its parent event."""

    id: uuid.UUID | str
    sub_event_name: str = "Untitled"
    speaker: str = ""
    speaker_position: str = ""
    speaker_company: str = ""
    parent_event_title: str = ""
    parent_location: str = ""
    parent_link: str = ""
    parent_date: date | None = Field(
        default=None, description="Parent event's date (no time of day)"
    )
    start: datetime | None = Field(
        default=None, description="Start token resolved against parent_date"
    )
    end: datetime | None = Field(
        default=None, description="End token resolved against parent_date"
    )


class DateBucket(BaseModel):
    """Overlap groups for one date key."""

    date_key: str
    groups: list[list[TimelineItem]]

    @property
    def label(self) -> str:
        return "No Date" if self.date_key == UNKNOWN_DATE else self.date_key


def parse_sub_event_time(parent_date: date | None, token: str | None) -> datetime | None:
    """Combine a parent date with a 12-hour token such as "9am" or "4:30pm".

    Returns None without a date, without a token, or for anything that is
    not a bare 12-hour time.
    """
    if parent_date is None or not token:
        return None

    match = _TIME_TOKEN.match(token.strip())
    if not match:
        return None

    hour = int(match.group(1))
    minute = int(match.group(2)) if match.group(2) else 0
    meridiem = match.group(3).lower()

    if meridiem == "pm" and hour < 12:
        hour += 12
    elif meridiem == "am" and hour == 12:
        hour = 0

    if hour > 23 or minute > 59:
        return None

    return datetime.combine(parent_date, time(hour, minute))


def build_timeline_items(
    events_with_sub_events: Iterable[tuple[Event, Sequence[SubEvent]]],
) -> list[TimelineItem]:
    """Flatten stored events and their sub-events into timeline items."""
    items: list[TimelineItem] = []

    for event, sub_events in events_with_sub_events:
        for sub in sub_events:
            items.append(
                TimelineItem(
                    id=sub.id,
                    sub_event_name=sub.sub_event_name or "Untitled",
                    speaker=sub.speaker or "",
                    speaker_position=sub.speaker_position or "",
                    speaker_company=sub.speaker_company or "",
                    parent_event_title=event.event_title,
                    parent_location=event.location or "",
                    parent_link=event.external_link or "",
                    parent_date=event.start_date,
                    start=parse_sub_event_time(event.start_date, sub.start_time),
                    end=parse_sub_event_time(event.start_date, sub.end_time),
                )
            )

    return items


def date_key(item: TimelineItem) -> str:
    """Bucket key: the parent date as YYYY-MM-DD, or "unknown"."""
    return item.parent_date.isoformat() if item.parent_date else UNKNOWN_DATE


def timeline_fingerprint(item: TimelineItem) -> tuple[str, ...]:
    """Display dedup key; ignores the row id and the parent link."""

    def norm(value: str) -> str:
        return (value or "").strip().lower()

    return (
        date_key(item),
        norm(item.sub_event_name),
        norm(item.speaker),
        norm(item.parent_event_title),
        norm(item.parent_location),
        item.start.isoformat() if item.start else "nostart",
        item.end.isoformat() if item.end else "noend",
    )


def deduplicate_timeline_items(items: Iterable[TimelineItem]) -> list[TimelineItem]:
    """Keep the first item for each fingerprint."""
    seen: set[tuple[str, ...]] = set()
    result: list[TimelineItem] = []

    for item in items:
        fingerprint = timeline_fingerprint(item)
        if fingerprint not in seen:
            seen.add(fingerprint)
            result.append(item)

    return result


def group_by_date(items: Iterable[TimelineItem]) -> dict[str, list[TimelineItem]]:
    """Bucket items by date key, preserving order within a bucket."""
    buckets: dict[str, list[TimelineItem]] = {}
    for item in items:
        buckets.setdefault(date_key(item), []).append(item)
    return buckets


def group_overlapping(items: Sequence[TimelineItem]) -> list[list[TimelineItem]]:
    """Partition one date's items into groups of overlapping sessions."""
    ordered = sorted(
        items,
        key=lambda item: (0,) if item.start is None else (1, item.start),
    )

    groups: list[list[TimelineItem]] = []
    current: list[TimelineItem] = []
    current_end: datetime | None = None

    for item in ordered:
        start = item.start
        end = item.end or start

        if not current:
            current = [item]
            current_end = end
        elif start is not None and current_end is not None and start <= current_end:
            current.append(item)
            if end is not None and end > current_end:
                current_end = end
        else:
            groups.append(current)
            current = [item]
            current_end = end

    if current:
        groups.append(current)

    return groups


def assemble_timeline(items: Iterable[TimelineItem]) -> list[DateBucket]:
    """Dedup, bucket by date (sorted as strings), and group overlaps."""
    buckets = group_by_date(deduplicate_timeline_items(items))
    return [
        DateBucket(date_key=key, groups=group_overlapping(buckets[key]))
        for key in sorted(buckets)
    ]


def format_time_range(start: datetime | None, end: datetime | None) -> str:
    """Human-readable range such as "9:00 AM - 10:30 AM"."""

    def fmt(value: datetime) -> str:
        return value.strftime("%I:%M %p").lstrip("0")

    if start and end:
        return f"{fmt(start)} - {fmt(end)}"
    if start:
        return f"Starts at {fmt(start)}"
    if end:
        return f"Ends at {fmt(end)}"
    return "No time"
