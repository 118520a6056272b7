"""Display-side assembly of sub-events into a dated, grouped timeline."""

from schedule_sync.timeline.assembler import (
    UNKNOWN_DATE,
    DateBucket,
    TimelineItem,
    assemble_timeline,
    build_timeline_items,
    date_key,
    deduplicate_timeline_items,
    format_time_range,
    group_by_date,
    group_overlapping,
    parse_sub_event_time,
    timeline_fingerprint,
)
from schedule_sync.timeline.loader import load_timeline, load_timeline_items

__all__ = [
    "UNKNOWN_DATE",
    "DateBucket",
    "TimelineItem",
    "assemble_timeline",
    "build_timeline_items",
    "date_key",
    "deduplicate_timeline_items",
    "format_time_range",
    "group_by_date",
    "group_overlapping",
    "parse_sub_event_time",
    "timeline_fingerprint",
    "load_timeline",
    "load_timeline_items",
]
