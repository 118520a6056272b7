"""Page fetching for event enrichment.

Retrieves the raw content of an event's external page (conference agenda,
meetup page, ...) as text for the extraction model. No HTML processing or
retries happen here; a failure is reported to the caller.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from schedule_sync.errors import FetchError, FetchTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "schedule-sync/0.1.0"


async def fetch_page_content(
    url: str,
    timeout_ms: int | None = 0,
    *,
    client: httpx.AsyncClient | None = None,
    user_agent: str | None = None,
) -> str:
    """Fetch a page and return its body as text.

    Args:
        url: Page to fetch
        timeout_ms: Deadline in milliseconds; 0 or None waits indefinitely
        client: Optional shared client (left open); otherwise one is created
            and closed for this request
        user_agent: User-Agent header value

    Returns:
        The response body decoded as text

    Raises:
        FetchError: Non-2xx response, transport failure or an unusable URL
        FetchTimeoutError: The deadline passed; the request is cancelled
    """
    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(timeout=None, follow_redirects=True)

    headers = {"User-Agent": user_agent or DEFAULT_USER_AGENT}
    deadline = timeout_ms / 1000 if timeout_ms and timeout_ms > 0 else None

    try:
        response = await asyncio.wait_for(
            client.get(url, headers=headers), timeout=deadline
        )
    except (asyncio.TimeoutError, httpx.TimeoutException) as e:
        logger.warning(f"Fetching {url} timed out after {timeout_ms} ms")
        raise FetchTimeoutError(url, timeout_ms or 0) from e
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.warning(f"Fetching {url} failed: {e}")
        raise FetchError(url, reason=str(e)) from e
    finally:
        if owns_client:
            await client.aclose()

    if not response.is_success:
        raise FetchError(url, response.status_code, response.reason_phrase)

    logger.debug(f"Fetched {len(response.text)} characters from {url}")
    return response.text
