"""Loguru setup shared by the API, the CLI and the conversation services."""
import sys

from loguru import logger

from .config import settings

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
    "<level>{message}</level> {extra}"
)


def setup_logging(level: str | None = None):
    """
    Replace loguru's default sink with a single stderr sink.

    Keyword arguments passed to ``logger.info(...)`` end up in ``extra``
    and are rendered after the message.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=(level or settings.log_level).upper(),
        format=LOG_FORMAT,
        backtrace=False,
        diagnose=False,
    )
    return logger
