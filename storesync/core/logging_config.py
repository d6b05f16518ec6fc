# storesync/core/logging_config.py
"""
Centralized logging configuration for the sync pipeline.

Keeps sync progress visible at INFO while quieting the HTTP client,
database and scheduler libraries.
"""

import logging
import os
from typing import Optional


def configure_logging(level: Optional[str] = None):
    """
    Configure logging for the application.

    Sets appropriate log levels for different modules:
    - App code: INFO (or LOG_LEVEL)
    - HTTP clients (httpx, httpcore): WARNING only
    - Database: WARNING only
    - Scheduler: WARNING only
    """
    log_level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    resolved = getattr(logging, log_level, logging.INFO)

    logging.basicConfig(
        level=resolved,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )

    # Quiet noisy HTTP client loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    # Quiet database loggers
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("asyncpg").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

    logging.getLogger("apscheduler").setLevel(logging.WARNING)

    logging.getLogger("storesync").setLevel(resolved)
    logging.getLogger("__main__").setLevel(resolved)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured at level: {log_level}")
