"""Command-line interface for calendar sync and event enrichment."""

from __future__ import annotations

import argparse
import asyncio
import sys
import uuid
from datetime import datetime

from schedule_sync import __version__
from schedule_sync.calendar.sync import CalendarSyncService, SyncResult
from schedule_sync.database.connection import close_db, create_tables, get_db, init_db
from schedule_sync.database.repository import EventRepository
from schedule_sync.enrichment.pipeline import EnrichmentPipeline
from schedule_sync.logging_config import configure_logging
from schedule_sync.timeline import format_time_range, load_timeline


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="schedule-sync",
        description="Schedule Sync - Import calendar events and extract their sessions",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Init-db command
    subparsers.add_parser("init-db", help="Create database tables")

    # Sync command
    sync_parser = subparsers.add_parser(
        "sync", help="Sync a user's Google Calendar events"
    )
    sync_parser.add_argument("user_id", help="User whose calendar to sync")
    sync_parser.add_argument(
        "--from",
        dest="time_min",
        type=datetime.fromisoformat,
        help="Window start (ISO 8601, default: now)",
    )
    sync_parser.add_argument(
        "--to",
        dest="time_max",
        type=datetime.fromisoformat,
        help="Window end (ISO 8601, default: now + SYNC_WINDOW_DAYS)",
    )

    # Sync-week command
    week_parser = subparsers.add_parser(
        "sync-week", help="Sync one week starting at a date"
    )
    week_parser.add_argument("user_id", help="User whose calendar to sync")
    week_parser.add_argument("start_date", help="First day (YYYY-MM-DD)")

    # Enrich command
    enrich_parser = subparsers.add_parser(
        "enrich", help="Scrape and parse one event's external link"
    )
    enrich_parser.add_argument("event_id", type=uuid.UUID, help="Stored event id")

    # Timeline command
    timeline_parser = subparsers.add_parser(
        "timeline", help="Print a user's sessions grouped by date"
    )
    timeline_parser.add_argument("user_id", help="User whose sessions to show")

    return parser


def _print_sync_result(result: SyncResult) -> int:
    print(result.message)
    if result.success:
        print(
            f"  {result.events_found} found, {result.events_created} created, "
            f"{result.events_updated} updated, {result.events_skipped} skipped"
        )
        print(
            f"  {result.enrichments_attempted} enriched, "
            f"{result.enrichments_failed} enrichment failures"
        )
    return 0 if result.success else 1


async def _run(args: argparse.Namespace) -> int:
    await init_db()
    try:
        if args.command == "init-db":
            await create_tables()
            print("Database tables created.")
            return 0

        async with get_db() as session:
            repository = EventRepository(session)

            if args.command == "sync":
                service = CalendarSyncService(repository)
                result = await service.sync_calendar_events(
                    args.user_id, args.time_min, args.time_max
                )
                return _print_sync_result(result)

            if args.command == "sync-week":
                service = CalendarSyncService(repository)
                result = await service.sync_week(args.user_id, args.start_date)
                return _print_sync_result(result)

            if args.command == "enrich":
                enrichment = await EnrichmentPipeline(repository).process_external_link(
                    args.event_id
                )
                print(enrichment.message)
                if enrichment.success:
                    print(f"  {enrichment.sub_events_created} sub-events stored")
                return 0 if enrichment.success else 1

            if args.command == "timeline":
                for bucket in await load_timeline(repository, args.user_id):
                    print(bucket.label)
                    for group in bucket.groups:
                        for item in group:
                            print(
                                f"  {format_time_range(item.start, item.end):<22} "
                                f"{item.sub_event_name}"
                                + (f" ({item.speaker})" if item.speaker else "")
                            )
                        print()
                return 0
    finally:
        await close_db()

    return 2


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    configure_logging()
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
