"""Fetching the text behind an event's external link."""

from schedule_sync.scraping.fetcher import fetch_page_content

__all__ = ["fetch_page_content"]
