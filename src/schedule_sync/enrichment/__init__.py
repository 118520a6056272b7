"""Event enrichment: scrape an event's link and store extracted sub-events."""

from schedule_sync.enrichment.persistence import (
    StoreResult,
    build_sub_event_fields,
    merge_locations,
    store_schedule,
)
from schedule_sync.enrichment.pipeline import EnrichmentPipeline, EnrichmentResult

__all__ = [
    "EnrichmentPipeline",
    "EnrichmentResult",
    "StoreResult",
    "build_sub_event_fields",
    "merge_locations",
    "store_schedule",
]
