"""Logging configuration for the accounts service."""

import logging
import sys

from accounts.config import Settings


def setup_logging(settings: Settings) -> int:
    """Configure stdlib logging for the process.

    Logfire handles structured events; this covers libraries and scripts
    that log through the standard ``logging`` module.

    Args:
        settings: Application settings

    Returns:
        The configured log level
    """
    if settings.debug:
        level = logging.DEBUG
    elif settings.environment in ("staging", "production"):
        level = logging.WARNING
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True,
    )

    # SQL echo is controlled by the engine; keep the pool quiet
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    logging.getLogger("accounts").setLevel(level)

    get_logger(__name__).info(
        "Logging configured: environment=%s, level=%s",
        settings.environment,
        logging.getLevelName(level),
    )
    return level


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Logger name (typically __name__)
    """
    return logging.getLogger(name)
