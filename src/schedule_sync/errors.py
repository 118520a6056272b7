"""Error taxonomy for calendar sync and event enrichment.

## Fatal (abort the sync)

- NoProfileError: no stored credential record for the user
- NoTokenError: a profile exists but no access token was ever recorded
- RefreshError: an expired access token could not be refreshed
- ProviderFetchError: the calendar provider call failed or was malformed

## Non-fatal (absorbed by the enrichment pipeline)

- FetchError / FetchTimeoutError: the external page could not be scraped
- ExtractionParseError: the model's answer for one chunk was not JSON
"""

from __future__ import annotations


class ScheduleSyncError(Exception):
    """Base exception for schedule sync errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NoProfileError(ScheduleSyncError):
    """Raised when the user has no stored credential profile."""

    def __init__(self, user_id: str):
        super().__init__(
            "No profile found for user. Please create a profile or sign up."
        )
        self.user_id = user_id


class NoTokenError(ScheduleSyncError):
    """Raised when the user never connected a Google account."""

    def __init__(self, user_id: str):
        super().__init__(
            "No Google token found. Please connect your Google account first."
        )
        self.user_id = user_id


class RefreshError(ScheduleSyncError):
    """Raised when an expired access token cannot be refreshed."""

    def __init__(
        self,
        message: str = "Failed to refresh expired Google token. Please reconnect.",
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class ProviderFetchError(ScheduleSyncError):
    """Raised when the calendar provider returns an error or a malformed body."""

    def __init__(
        self,
        message: str = "No valid events array received from Google Calendar.",
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code


class FetchError(ScheduleSyncError):
    """Raised when an external page responds with a non-2xx status."""

    def __init__(self, url: str, status_code: int | None = None, reason: str = ""):
        if status_code is not None:
            message = f"Failed to fetch {url}. Server responded with {status_code} {reason}".rstrip()
        else:
            message = f"Failed to fetch {url}: {reason}".rstrip(": ")
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class FetchTimeoutError(ScheduleSyncError, TimeoutError):
    """Raised when an external page does not respond before the deadline."""

    def __init__(self, url: str, timeout_ms: int):
        super().__init__(f"Request to {url} timed out after {timeout_ms} ms")
        self.url = url
        self.timeout_ms = timeout_ms


class ExtractionParseError(ScheduleSyncError):
    """Raised when the model's response for a chunk is not valid JSON."""

    def __init__(self, chunk_index: int, raw_text: str, reason: str = ""):
        super().__init__(
            f"Chunk #{chunk_index} response was not valid JSON"
            + (f": {reason}" if reason else ".")
        )
        self.chunk_index = chunk_index
        self.raw_text = raw_text
