"""LLM-based extraction of sub-events from page text.

## Process

1. Build a prompt that asks for JSON only, with bare 12-hour clock times
2. Call the chat model once per chunk (sequentially)
3. Strip code fences the model may add despite the instructions
4. Decode the JSON and coerce it field by field into a `ParsedSchedule`

Text at or below `max_chars_per_chunk` is sent in one call as chunk 1 and a
failure there is raised to the caller. Longer text is chunked; a failing
chunk is logged and skipped while the remaining chunks continue.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from openai import AsyncOpenAI

from schedule_sync.config import Settings, get_settings
from schedule_sync.errors import ExtractionParseError
from schedule_sync.extraction.chunker import chunk_text
from schedule_sync.extraction.dedup import merge_chunk_schedules
from schedule_sync.extraction.schemas import (
    Malformed,
    Parsed,
    ParsedSchedule,
    ParseResult,
)

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """
You are a scheduling assistant. You receive part of an event page as text.
Return valid JSON with the following structure:

{
  "location": string or null,
  "subEvents": [
    {
      "startTime": string,
      "endTime": string,
      "title": string,
      "speaker": string,
      "speakerPosition": string,
      "speakerCompany": string,
      "location": string
    }
  ]
}

Rules:
- "startTime" and "endTime" MUST be 12-hour times with am/pm.
  Examples: "9am", "4:30pm", "11:05am".
- No date, no time zone offset, no 24-hour format.
- If a time is unknown, use an empty string or null.
- If the speaker has details like "(Position @ Company)", split them into
  "speakerPosition" and "speakerCompany" as best as possible.
- Output must be strictly JSON, with NO extra commentary or code blocks.
"""

USER_PROMPT = '''
Chunk #{chunk_index} for event ID {event_id}.
Parse the following partial text into the JSON format.
If uncertain, do your best with 12-hour times.
Text:
"""
{chunk}
"""
'''

_LEADING_FENCE = re.compile(r"^```(\w+)?\n?")
_TRAILING_FENCE = re.compile(r"\n?```$")


def build_messages(event_id: object, chunk: str, chunk_index: int) -> list[dict[str, str]]:
    """Build the chat messages for one chunk."""
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {
            "role": "user",
            "content": USER_PROMPT.format(
                chunk_index=chunk_index, event_id=event_id, chunk=chunk
            ),
        },
    ]


def strip_code_fences(raw: str) -> str:
    """Remove a leading ``` / ```json fence and a trailing ``` fence."""
    text = raw.strip()
    text = _LEADING_FENCE.sub("", text, count=1)
    text = _TRAILING_FENCE.sub("", text, count=1)
    return text.strip()


def parse_schedule_response(raw: str, chunk_index: int | None = None) -> ParseResult:
    """Decode a model answer into a schedule without raising.

    Returns:
        Parsed with a fully defaulted schedule, or Malformed with the raw text
    """
    text = strip_code_fences(raw or "")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        return Malformed(raw_text=raw or "", reason=str(e))

    if not isinstance(data, dict):
        return Malformed(
            raw_text=raw or "", reason=f"expected a JSON object, got {type(data).__name__}"
        )

    return Parsed(schedule=ParsedSchedule.from_llm(data, chunk_index))


@dataclass
class ExtractionOutcome:
    """Merged schedule for a whole page plus chunk diagnostics."""

    schedule: ParsedSchedule
    chunk_count: int
    failed_chunks: list[int] = field(default_factory=list)


class ExtractionEngine:
    """Extracts a `ParsedSchedule` from page text with a chat model.

    Example:
        ```python
        engine = ExtractionEngine(settings=settings)
        outcome = await engine.extract_text(event.id, page_text)
        ```
    """

    def __init__(
        self,
        client: Any | None = None,
        settings: Settings | None = None,
    ):
        """Initialize the engine.

        Args:
            client: An `AsyncOpenAI`-compatible client; built from settings
                on first use when omitted
            settings: Model name, temperature and chunk size
        """
        self.settings = settings or get_settings()
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.settings.openai_api_key,
                base_url=self.settings.openai_base_url,
            )
        return self._client

    async def complete(self, messages: list[dict[str, str]]) -> str:
        """Send messages to the model and return the raw answer text."""
        response = await self._get_client().chat.completions.create(
            model=self.settings.openai_model,
            messages=messages,
            temperature=self.settings.openai_temperature,
        )
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def extract(
        self, event_id: object, chunk: str, chunk_index: int
    ) -> ParsedSchedule:
        """Extract the schedule contained in one chunk.

        Raises:
            ExtractionParseError: If the answer is not a JSON object
        """
        raw = await self.complete(build_messages(event_id, chunk, chunk_index))

        result = parse_schedule_response(raw, chunk_index)
        if isinstance(result, Malformed):
            logger.error(f"Chunk #{chunk_index} JSON parse error: {result.raw_text!r}")
            raise ExtractionParseError(chunk_index, result.raw_text, result.reason)

        return result.schedule

    async def extract_text(self, event_id: object, raw_text: str) -> ExtractionOutcome:
        """Extract and merge the schedule for a whole page."""
        max_chars = self.settings.max_chars_per_chunk

        if len(raw_text) <= max_chars:
            schedule = await self.extract(event_id, raw_text, 1)
            return ExtractionOutcome(
                schedule=merge_chunk_schedules([schedule]), chunk_count=1
            )

        chunks = chunk_text(raw_text, max_chars)
        schedules: list[ParsedSchedule | None] = []
        failed: list[int] = []

        for chunk_index, chunk in enumerate(chunks, start=1):
            try:
                schedules.append(await self.extract(event_id, chunk, chunk_index))
            except ExtractionParseError as e:
                logger.warning(f"Skipping chunk #{chunk_index} of event {event_id}: {e}")
                schedules.append(None)
                failed.append(chunk_index)
            except Exception as e:
                logger.exception(
                    f"Model call failed for chunk #{chunk_index} of event {event_id}: {e}"
                )
                schedules.append(None)
                failed.append(chunk_index)

        logger.info(
            f"Extracted event {event_id} from {len(chunks)} chunks "
            f"({len(failed)} failed)"
        )

        return ExtractionOutcome(
            schedule=merge_chunk_schedules(schedules),
            chunk_count=len(chunks),
            failed_chunks=failed,
        )
