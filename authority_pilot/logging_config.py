"""Loguru setup shared by the entry points."""
import sys

from loguru import logger

from authority_pilot.config import settings

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def setup_logging(console: bool = False):
    """Configure logging to a rotating file, optionally also to stderr."""
    # Remove default handler that logs to console
    logger.remove()

    logger.add(
        "logs/authority_pilot_{time:YYYY-MM-DD}.log",
        rotation="1 day",
        retention="7 days",
        level=settings.log_level,
        format=LOG_FORMAT
    )
    if console:
        logger.add(sys.stderr, level=settings.log_level, format=LOG_FORMAT)
    logger.info(f"Logging configured ({'file and console' if console else 'file only'})")
