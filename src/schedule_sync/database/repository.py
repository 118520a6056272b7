"""Persistence interface for profiles, events and sub-events.

Every write commits immediately. A failed write is rolled back before the
exception propagates, so the session stays usable for the next row.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schedule_sync.database.encryption import encrypt_token
from schedule_sync.database.models import Event, Profile, SubEvent

logger = logging.getLogger(__name__)


@dataclass
class EventFields:
    """Mutable event fields written on every sync pass."""

    event_title: str
    start_date: date | None = None
    location: str | None = None
    external_link: str | None = None


@dataclass
class SubEventFields:
    """Column values for a new sub-event row."""

    event_id: uuid.UUID
    sub_event_name: str
    start_time: str | None = None
    end_time: str | None = None
    speaker: str | None = None
    speaker_position: str | None = None
    speaker_company: str | None = None
    location: str | None = None


@dataclass
class UpsertOutcome:
    """Result of an event upsert."""

    event: Event
    created: bool
    previous_link: str | None = None

    @property
    def link_is_new_or_changed(self) -> bool:
        """Whether the external link warrants (re-)enrichment.

        A new row counts when it has a link. An existing row counts when the
        incoming link is set and differs from the stored one; a link that
        disappears does not.
        """
        link = self.event.external_link
        if self.created:
            return bool(link)
        return link is not None and link != self.previous_link


class EventRepository:
    """Database access for the sync and enrichment pipeline.

    Example:
        ```python
        async with get_db() as session:
            repository = EventRepository(session)
            outcome = await repository.upsert_event(
                user_id, "google-event-id", EventFields(event_title="Conf")
            )
        ```
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    # Profiles

    async def get_profile(self, user_id: str) -> Profile | None:
        return await self.session.get(Profile, user_id)

    async def save_profile_tokens(
        self,
        user_id: str,
        access_token: str,
        refresh_token: str | None,
        expires_at: datetime | None,
    ) -> Profile:
        """Store (encrypted) Google tokens, creating the profile if needed."""
        profile = await self.get_profile(user_id)
        if profile is None:
            profile = Profile(user_id=user_id)
            self.session.add(profile)

        profile.google_access_token_encrypted = encrypt_token(access_token)
        if refresh_token:
            profile.google_refresh_token_encrypted = encrypt_token(refresh_token)
        profile.google_token_expires = expires_at

        await self._commit()
        return profile

    # Events

    async def get_event(self, event_id: uuid.UUID) -> Event | None:
        return await self.session.get(Event, event_id)

    async def get_event_by_calendar_id(
        self, user_id: str, calendar_event_id: str
    ) -> Event | None:
        result = await self.session.execute(
            select(Event).where(
                Event.user_id == user_id,
                Event.calendar_event_id == calendar_event_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_events(self, user_id: str) -> list[Event]:
        result = await self.session.execute(
            select(Event)
            .where(Event.user_id == user_id)
            .order_by(Event.created_at.desc())
        )
        return list(result.scalars().all())

    async def upsert_event(
        self,
        user_id: str,
        calendar_event_id: str,
        fields: EventFields,
    ) -> UpsertOutcome:
        """Insert or update the event keyed by (user_id, calendar_event_id).

        All mutable fields are overwritten on update.
        """
        existing = await self.get_event_by_calendar_id(user_id, calendar_event_id)

        if existing is not None:
            previous_link = existing.external_link
            existing.event_title = fields.event_title
            existing.start_date = fields.start_date
            existing.location = fields.location
            existing.external_link = fields.external_link
            await self._commit()
            return UpsertOutcome(
                event=existing, created=False, previous_link=previous_link
            )

        event = Event(
            user_id=user_id,
            calendar_event_id=calendar_event_id,
            event_title=fields.event_title,
            start_date=fields.start_date,
            location=fields.location,
            external_link=fields.external_link,
        )
        self.session.add(event)
        await self._commit()
        return UpsertOutcome(event=event, created=True)

    async def update_event_location(
        self, event_id: uuid.UUID, location: str
    ) -> Event | None:
        event = await self.get_event(event_id)
        if event is None:
            return None
        event.location = location
        await self._commit()
        return event

    # Sub-events

    async def insert_sub_event(self, fields: SubEventFields) -> SubEvent:
        sub_event = SubEvent(
            event_id=fields.event_id,
            sub_event_name=fields.sub_event_name,
            start_time=fields.start_time,
            end_time=fields.end_time,
            speaker=fields.speaker,
            speaker_position=fields.speaker_position,
            speaker_company=fields.speaker_company,
            location=fields.location,
        )
        self.session.add(sub_event)
        await self._commit()
        return sub_event

    async def list_sub_events(self, event_id: uuid.UUID) -> list[SubEvent]:
        result = await self.session.execute(
            select(SubEvent)
            .where(SubEvent.event_id == event_id)
            .order_by(SubEvent.start_time.asc())
        )
        return list(result.scalars().all())

    async def _commit(self) -> None:
        try:
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
