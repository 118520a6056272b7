"""Database module for schedule sync.

This module provides:
- SQLAlchemy async database connection
- Profile, event and sub-event models
- Encrypted storage for OAuth tokens
- The repository consumed by the sync and enrichment pipeline
"""

from schedule_sync.database.connection import (
    close_db,
    create_tables,
    get_db,
    init_db,
)
from schedule_sync.database.models import Base, Event, Profile, SubEvent
from schedule_sync.database.repository import (
    EventFields,
    EventRepository,
    SubEventFields,
    UpsertOutcome,
)

__all__ = [
    # Connection
    "get_db",
    "init_db",
    "close_db",
    "create_tables",
    # Models
    "Base",
    "Profile",
    "Event",
    "SubEvent",
    # Repository
    "EventRepository",
    "EventFields",
    "SubEventFields",
    "UpsertOutcome",
]
