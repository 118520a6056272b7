"""Enrichment pipeline: scrape, extract, dedup, persist.

Run for one event at a time, after the sync has detected a new or changed
external link. Stage failures are reported in the returned result and never
raised, so the caller can carry on with the next event.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable

from schedule_sync.config import Settings, get_settings
from schedule_sync.database.repository import EventRepository
from schedule_sync.enrichment.persistence import store_schedule
from schedule_sync.errors import ExtractionParseError, FetchError, FetchTimeoutError
from schedule_sync.extraction.engine import ExtractionEngine
from schedule_sync.scraping.fetcher import fetch_page_content

logger = logging.getLogger(__name__)

PageFetcher = Callable[[str, int], Awaitable[str]]


@dataclass
class EnrichmentResult:
    """Outcome of enriching one event."""

    event_id: uuid.UUID
    success: bool
    message: str
    sub_events_created: int = 0
    chunk_count: int = 0
    failed_chunks: int = 0


class EnrichmentPipeline:
    """Scrapes an event's external link and stores the sessions found there.

    Example:
        ```python
        pipeline = EnrichmentPipeline(EventRepository(session))
        result = await pipeline.process_external_link(event.id)
        if not result.success:
            logger.warning(result.message)
        ```
    """

    def __init__(
        self,
        repository: EventRepository,
        engine: ExtractionEngine | None = None,
        settings: Settings | None = None,
        fetcher: PageFetcher | None = None,
    ):
        self.repository = repository
        self.settings = settings or get_settings()
        self.engine = engine or ExtractionEngine(settings=self.settings)
        self._fetcher = fetcher

    async def fetch(self, url: str) -> str:
        """Fetch page text with the configured deadline."""
        timeout_ms = self.settings.scrape_timeout_ms
        if self._fetcher is not None:
            return await self._fetcher(url, timeout_ms)
        return await fetch_page_content(
            url, timeout_ms, user_agent=self.settings.scrape_user_agent
        )

    async def parse_event_details(
        self, event_id: uuid.UUID, raw_text: str
    ) -> EnrichmentResult:
        """Extract sub-events from page text and store them."""
        try:
            outcome = await self.engine.extract_text(event_id, raw_text)
        except ExtractionParseError as e:
            return EnrichmentResult(
                event_id=event_id,
                success=False,
                message=f"Failed to parse event details: {e}",
                chunk_count=1,
                failed_chunks=1,
            )
        except Exception as e:
            logger.exception(f"Extraction failed for event {event_id}: {e}")
            return EnrichmentResult(
                event_id=event_id,
                success=False,
                message="Failed to parse event details from the language model.",
            )

        stored = await store_schedule(self.repository, event_id, outcome.schedule)

        if outcome.chunk_count == 1:
            message = "Successfully parsed sub-events from single chunk."
        else:
            message = f"Successfully parsed sub-events from {outcome.chunk_count} chunks."

        return EnrichmentResult(
            event_id=event_id,
            success=True,
            message=message,
            sub_events_created=stored.inserted,
            chunk_count=outcome.chunk_count,
            failed_chunks=len(outcome.failed_chunks),
        )

    async def process_external_link(self, event_id: uuid.UUID) -> EnrichmentResult:
        """Run the full pipeline for a stored event."""
        event = await self.repository.get_event(event_id)
        if event is None:
            return EnrichmentResult(
                event_id=event_id,
                success=False,
                message="Could not find event with the specified eventId.",
            )

        link = (event.external_link or "").strip()
        if not link:
            return EnrichmentResult(
                event_id=event_id,
                success=False,
                message="Event does not have a valid external link to process.",
            )

        try:
            page_content = await self.fetch(link)
        except (FetchError, FetchTimeoutError) as e:
            logger.error(f"Scraping failed for event {event_id}: {e}")
            return EnrichmentResult(
                event_id=event_id,
                success=False,
                message=f"Failed to scrape the external link. Reason: {e}",
            )

        result = await self.parse_event_details(event_id, page_content)
        if result.success:
            result.message = "Successfully scraped and parsed external link."
        return result
