"""Deduplication and merging of extracted sub-events.

Candidates are considered the same session when speaker, start and end tokens
match after lower-casing and trimming. Title and location are not part of the
key, so two differently titled sessions with the same speaker and time slot
collapse into the first one. The display-side timeline uses its own, wider
key.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from schedule_sync.extraction.schemas import ExtractionCandidate, ParsedSchedule


def _norm(value: str | None) -> str:
    return (value or "").strip().lower()


def candidate_fingerprint(candidate: ExtractionCandidate) -> tuple[str, str, str]:
    """Dedup key: normalized (speaker, start_time, end_time)."""
    return (
        _norm(candidate.speaker),
        _norm(candidate.start_time),
        _norm(candidate.end_time),
    )


def deduplicate_candidates(
    candidates: Iterable[ExtractionCandidate],
) -> list[ExtractionCandidate]:
    """Drop candidates whose fingerprint was already seen; order is kept."""
    seen: set[tuple[str, str, str]] = set()
    unique: list[ExtractionCandidate] = []

    for candidate in candidates:
        key = candidate_fingerprint(candidate)
        if key in seen:
            continue
        seen.add(key)
        unique.append(candidate)

    return unique


def merge_chunk_schedules(
    schedules: Sequence[ParsedSchedule | None],
) -> ParsedSchedule:
    """Combine per-chunk schedules into one.

    `schedules` is in chunk order with None for chunks that failed. The
    location comes from chunk 1 only; if chunk 1 failed or reported none,
    the merged schedule has no location even when later chunks found one.
    Sub-events are concatenated in chunk order and then deduplicated.
    """
    location = None
    if schedules and schedules[0] is not None and schedules[0].location:
        location = schedules[0].location.strip() or None

    merged: list[ExtractionCandidate] = []
    for schedule in schedules:
        if schedule is not None:
            merged.extend(schedule.sub_events)

    return ParsedSchedule(location=location, sub_events=deduplicate_candidates(merged))
