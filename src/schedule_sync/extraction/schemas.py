"""Typed shapes for the extraction model's output.

The model is asked for:

```json
{
  "location": "string or null",
  "subEvents": [
    {"startTime": "9am", "endTime": "10:30am", "title": "...", "speaker": "...",
     "speakerPosition": "...", "speakerCompany": "...", "location": "..."}
  ]
}
```

Nothing about the answer is trusted. Every field is read individually and
anything missing or of the wrong type becomes None (or an empty list).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union


def _optional_str(value: Any) -> str | None:
    """Keep strings, turn numbers into strings, drop everything else."""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


@dataclass
class ExtractionCandidate:
    """A sub-event proposed by the model, before dedup and insert."""

    title: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    speaker: str | None = None
    speaker_position: str | None = None
    speaker_company: str | None = None
    location: str | None = None
    chunk_index: int | None = None  # diagnostics only

    @classmethod
    def from_llm(
        cls, data: dict[str, Any], chunk_index: int | None = None
    ) -> ExtractionCandidate:
        """Create from one entry of the model's `subEvents` array."""
        return cls(
            title=_optional_str(data.get("title")),
            start_time=_optional_str(data.get("startTime")),
            end_time=_optional_str(data.get("endTime")),
            speaker=_optional_str(data.get("speaker")),
            speaker_position=_optional_str(data.get("speakerPosition")),
            speaker_company=_optional_str(data.get("speakerCompany")),
            location=_optional_str(data.get("location")),
            chunk_index=chunk_index,
        )


@dataclass
class ParsedSchedule:
    """Event location plus candidate sub-events from one or more chunks."""

    location: str | None = None
    sub_events: list[ExtractionCandidate] = field(default_factory=list)

    @classmethod
    def from_llm(
        cls, data: dict[str, Any], chunk_index: int | None = None
    ) -> ParsedSchedule:
        """Create from the model's decoded root object."""
        raw_sub_events = data.get("subEvents")
        if not isinstance(raw_sub_events, list):
            raw_sub_events = []

        return cls(
            location=_optional_str(data.get("location")),
            sub_events=[
                ExtractionCandidate.from_llm(item, chunk_index)
                for item in raw_sub_events
                if isinstance(item, dict)
            ],
        )


@dataclass
class Parsed:
    """The model answered with usable JSON."""

    schedule: ParsedSchedule


@dataclass
class Malformed:
    """The model's answer could not be decoded into a schedule."""

    raw_text: str
    reason: str = ""


ParseResult = Union[Parsed, Malformed]
