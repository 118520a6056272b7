"""Writing an extracted schedule under its parent event.

Sub-events are appended, never updated. Re-running extraction for the same
page duplicates rows; the orchestrator only enriches when an event's external
link is new or changed.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from schedule_sync.database.repository import EventRepository, SubEventFields
from schedule_sync.extraction.schemas import ExtractionCandidate, ParsedSchedule

logger = logging.getLogger(__name__)

LOCATION_SEPARATOR = " -- "
UNTITLED_SESSION = "Untitled Session"


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def merge_locations(parent: str | None, child: str | None) -> str | None:
    """Join parent and sub-event locations.

    "Room A" + "Booth 3" gives "Room A -- Booth 3"; with only one of them
    present that one is used; with neither the result is None.
    """
    parent = _clean(parent)
    child = _clean(child)
    if parent and child:
        return f"{parent}{LOCATION_SEPARATOR}{child}"
    return parent or child


def build_sub_event_fields(
    event_id: uuid.UUID,
    candidate: ExtractionCandidate,
    parent_location: str | None,
) -> SubEventFields:
    """Turn a candidate into row values. Time tokens are stored as given."""
    return SubEventFields(
        event_id=event_id,
        sub_event_name=_clean(candidate.title) or UNTITLED_SESSION,
        start_time=_clean(candidate.start_time),
        end_time=_clean(candidate.end_time),
        speaker=_clean(candidate.speaker),
        speaker_position=_clean(candidate.speaker_position),
        speaker_company=_clean(candidate.speaker_company),
        location=merge_locations(parent_location, candidate.location),
    )


@dataclass
class StoreResult:
    """Counts from storing one schedule."""

    location_updated: bool = False
    inserted: int = 0
    failed: int = 0


async def store_schedule(
    repository: EventRepository,
    event_id: uuid.UUID,
    schedule: ParsedSchedule,
) -> StoreResult:
    """Persist a merged schedule for an event.

    The parent location used for joining is the one stored before this call;
    a non-empty schedule location then overwrites the parent's location.
    A row that fails to insert is logged and skipped.
    """
    result = StoreResult()

    parent = await repository.get_event(event_id)
    parent_location = _clean(parent.location) if parent is not None else None

    new_location = _clean(schedule.location)
    if new_location:
        await repository.update_event_location(event_id, new_location)
        result.location_updated = True

    if not schedule.sub_events:
        logger.info(f"No sub-events found for event {event_id}")
        return result

    logger.info(f"Storing {len(schedule.sub_events)} sub-events for event {event_id}")

    for candidate in schedule.sub_events:
        fields = build_sub_event_fields(event_id, candidate, parent_location)
        try:
            await repository.insert_sub_event(fields)
            result.inserted += 1
        except Exception as e:
            logger.error(
                f"Sub-event insert failed for event {event_id} "
                f"({fields.sub_event_name!r}, chunk {candidate.chunk_index}): {e}"
            )
            result.failed += 1

    return result
