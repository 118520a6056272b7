"""Splitting page text into model-sized chunks."""

from __future__ import annotations

MAX_CHARS_PER_CHUNK = 100_000


def chunk_text(text: str, max_len: int = MAX_CHARS_PER_CHUNK) -> list[str]:
    """Split text into consecutive slices of at most `max_len` characters.

    Every chunk but the last is exactly `max_len` long and joining the
    chunks gives back `text`. Empty text yields no chunks.

    Raises:
        ValueError: If max_len is not positive
    """
    if max_len <= 0:
        raise ValueError(f"max_len must be positive, got {max_len}")

    return [text[start : start + max_len] for start in range(0, len(text), max_len)]
