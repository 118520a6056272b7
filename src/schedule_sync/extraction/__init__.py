"""Sub-event extraction from page text.

Chunking, the model-backed extraction engine, and candidate deduplication.
"""

from schedule_sync.extraction.chunker import MAX_CHARS_PER_CHUNK, chunk_text
from schedule_sync.extraction.dedup import (
    candidate_fingerprint,
    deduplicate_candidates,
    merge_chunk_schedules,
)
from schedule_sync.extraction.engine import (
    ExtractionEngine,
    ExtractionOutcome,
    build_messages,
    parse_schedule_response,
    strip_code_fences,
)
from schedule_sync.extraction.schemas import (
    ExtractionCandidate,
    Malformed,
    Parsed,
    ParsedSchedule,
)

__all__ = [
    "MAX_CHARS_PER_CHUNK",
    "chunk_text",
    "candidate_fingerprint",
    "deduplicate_candidates",
    "merge_chunk_schedules",
    "ExtractionEngine",
    "ExtractionOutcome",
    "build_messages",
    "parse_schedule_response",
    "strip_code_fences",
    "ExtractionCandidate",
    "ParsedSchedule",
    "Parsed",
    "Malformed",
]
