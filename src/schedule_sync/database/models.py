"""Database models for calendar sync and sub-event enrichment.

## Schema Overview

```
profiles (keyed by external user id) - encrypted Google tokens
events (unique per user_id + calendar_event_id)
└── sub_events (1:N, ON DELETE CASCADE)
```

Sub-event start/end times are stored as the raw tokens the extraction model
produced ("9am", "4:30pm"). They are only resolved against the parent event's
date at display time (see `schedule_sync.timeline`).
"""

from __future__ import annotations

import uuid
from datetime import date, datetime

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Index,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models."""


class Profile(Base):
    """Credential record for one user.

    The user id comes from the external identity layer and is opaque here.
    Tokens are encrypted in the repository layer, not by the database.
    """

    __tablename__ = "profiles"

    user_id: Mapped[str] = mapped_column(Text, primary_key=True)

    google_access_token_encrypted: Mapped[str | None] = mapped_column(Text)
    google_refresh_token_encrypted: Mapped[str | None] = mapped_column(Text)
    google_token_expires: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<Profile user_id={self.user_id}>"


class Event(Base):
    """A calendar event synced from Google Calendar.

    Only the date portion of the event's start is kept.
    """

    __tablename__ = "events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    event_title: Mapped[str] = mapped_column(Text, nullable=False)
    start_date: Mapped[date | None] = mapped_column(Date)
    location: Mapped[str | None] = mapped_column(Text)
    external_link: Mapped[str | None] = mapped_column(Text)
    calendar_event_id: Mapped[str | None] = mapped_column(Text)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    sub_events: Mapped[list["SubEvent"]] = relationship(
        back_populates="event",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id", "calendar_event_id", name="events_user_calendar_id_unique"
        ),
    )

    def __repr__(self) -> str:
        return f"<Event {self.event_title[:30]}>"


class SubEvent(Base):
    """A session or talk extracted from an event's external page."""

    __tablename__ = "sub_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )

    # Raw time tokens, e.g. "9am"
    start_time: Mapped[str | None] = mapped_column(Text)
    end_time: Mapped[str | None] = mapped_column(Text)

    sub_event_name: Mapped[str | None] = mapped_column(Text)
    speaker: Mapped[str | None] = mapped_column(Text)
    speaker_position: Mapped[str | None] = mapped_column(Text)
    speaker_company: Mapped[str | None] = mapped_column(Text)
    location: Mapped[str | None] = mapped_column(Text)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    event: Mapped["Event"] = relationship(back_populates="sub_events")

    __table_args__ = (Index("sub_events_event_id_idx", "event_id"),)

    def __repr__(self) -> str:
        return f"<SubEvent {(self.sub_event_name or '')[:30]}>"
