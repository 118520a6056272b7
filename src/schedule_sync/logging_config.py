"""Logging setup.

Modules log through `logging.getLogger(__name__)`. Per-event enrichment
outcomes go to a dedicated logger so callers can observe them even though the
top-level sync result only reports success or failure.
"""

from __future__ import annotations

import logging

from schedule_sync.config import Settings, get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

ENRICHMENT_OUTCOME_LOGGER = "schedule_sync.enrichment.outcomes"

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings | None = None) -> None:
    """Configure root logging from settings.

    Debug mode forces DEBUG level regardless of `log_level`.
    """
    settings = settings or get_settings()
    level_name = "DEBUG" if settings.debug else settings.log_level.upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))

    logger.info(
        f"{settings.app_name} v{settings.app_version} ({settings.environment}), "
        f"log level {logging.getLevelName(level)}"
    )


def get_outcome_logger() -> logging.Logger:
    """Logger receiving one record per attempted enrichment."""
    return logging.getLogger(ENRICHMENT_OUTCOME_LOGGER)
