"""Pytest fixtures for schedule sync tests.

This module provides test fixtures that ensure:
1. No external API calls are made (Google APIs, the language model, event pages)
2. Each test gets its own in-memory SQLite database
3. Isolated test environment with controlled configuration
"""

import os
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

# Set test environment BEFORE importing application modules
# This ensures no real services are contacted during test collection
os.environ.setdefault("SECRET_KEY", "test-secret-key-at-least-32-characters-long")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client-id")
os.environ.setdefault("GOOGLE_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")
os.environ.setdefault("ENVIRONMENT", "development")

from sqlalchemy import event as sa_event
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from schedule_sync.config import Settings, get_settings
from schedule_sync.database.connection import create_session_factory
from schedule_sync.database.encryption import reset_cipher
from schedule_sync.database.models import Base
from schedule_sync.database.repository import EventFields, EventRepository


# =============================================================================
# Test Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Reset settings and the token cipher before each test."""
    get_settings.cache_clear()
    reset_cipher()
    yield
    get_settings.cache_clear()
    reset_cipher()


@pytest.fixture
def settings() -> Settings:
    """Settings with small, predictable enrichment limits."""
    return Settings(scrape_timeout_ms=1000, max_chars_per_chunk=100_000)


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
async def db_engine():
    """In-memory SQLite engine with foreign keys enforced."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @sa_event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def session(db_engine):
    """Database session bound to the test engine."""
    factory = create_session_factory(db_engine)
    async with factory() as session:
        yield session


@pytest.fixture
def repository(session) -> EventRepository:
    return EventRepository(session)


@pytest.fixture
def make_event(repository: EventRepository):
    """Factory storing an event for a user."""

    async def _make_event(
        user_id: str = "user-1",
        calendar_event_id: str = "gcal-1",
        title: str = "DevConf",
        start_date=None,
        location: str | None = None,
        external_link: str | None = "https://example.com/agenda",
    ):
        outcome = await repository.upsert_event(
            user_id,
            calendar_event_id,
            EventFields(
                event_title=title,
                start_date=start_date,
                location=location,
                external_link=external_link,
            ),
        )
        return outcome.event

    return _make_event


@pytest.fixture
def make_profile(repository: EventRepository):
    """Factory storing Google tokens for a user."""

    async def _make_profile(
        user_id: str = "user-1",
        access_token: str = "stored-access-token",
        refresh_token: str | None = "stored-refresh-token",
        expires_in: timedelta = timedelta(hours=1),
    ):
        return await repository.save_profile_tokens(
            user_id,
            access_token,
            refresh_token,
            datetime.now(timezone.utc) + expires_in,
        )

    return _make_profile


# =============================================================================
# Language Model Fixtures
# =============================================================================


def completion(content: str | None):
    """Shape of a chat completion response as returned by the OpenAI client."""
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
    )


@pytest.fixture
def make_llm_client():
    """Factory for a mock AsyncOpenAI client answering in order.

    Each answer is either the raw message content or an exception to raise.
    """

    def _make_llm_client(*answers):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(
            side_effect=[
                answer if isinstance(answer, Exception) else completion(answer)
                for answer in answers
            ]
        )
        return client

    return _make_llm_client


@pytest.fixture
def agenda_json() -> str:
    """A typical model answer for a small agenda page."""
    return """```json
{
  "location": "Main Hall",
  "subEvents": [
    {"startTime": "9am", "endTime": "10am", "title": "Keynote",
     "speaker": "Ada Lovelace", "speakerPosition": "CTO",
     "speakerCompany": "Engines Ltd", "location": "Room A"},
    {"startTime": "10:30am", "endTime": "11am", "title": "",
     "speaker": "Grace Hopper", "speakerPosition": "",
     "speakerCompany": "", "location": ""}
  ]
}
```"""
