"""Loading a user's sub-events for the timeline."""

from __future__ import annotations

from schedule_sync.database.repository import EventRepository
from schedule_sync.timeline.assembler import (
    DateBucket,
    TimelineItem,
    assemble_timeline,
    build_timeline_items,
)


async def load_timeline_items(
    repository: EventRepository, user_id: str
) -> list[TimelineItem]:
    """Fetch every event of a user with its sub-events, as timeline items."""
    pairs = []
    for event in await repository.list_events(user_id):
        pairs.append((event, await repository.list_sub_events(event.id)))
    return build_timeline_items(pairs)


async def load_timeline(repository: EventRepository, user_id: str) -> list[DateBucket]:
    """Assembled timeline for a user."""
    return assemble_timeline(await load_timeline_items(repository, user_id))
