"""
Loguru configuration for the service and CLI entry points.

The scheduler core never logs; only the service, repository and outer
surfaces do.
"""

from __future__ import annotations

import sys

from loguru import logger


def configure_logging(settings, level: str | None = None) -> None:
    """
    Replace loguru's default handler with the configured sinks.

    Args:
        settings: Application settings (log_level, log_file)
        level: Override for the stderr level (e.g. WARNING for the CLI)
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=level or settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        logger.add(
            settings.log_file,
            level=settings.log_level,
            rotation="10 MB",
            retention=5,
            encoding="utf-8",
        )
