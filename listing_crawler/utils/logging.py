from __future__ import annotations

import logging
import os

_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Third-party loggers that are chatty at INFO/DEBUG and rarely useful for crawl triage.
_NOISY_LOGGERS = ("aiohttp.access", "aiohttp.client", "asyncio", "charset_normalizer")


def resolve_level(level: str | int | None) -> int:
    if level is None:
        level = os.getenv("CRAWLER_LOG_LEVEL", "INFO")
    if isinstance(level, str):
        return _LEVELS.get(level.upper(), logging.INFO)
    return level


def setup_logging(level: str | int | None = None) -> None:
    """
    Configure crawler logging. Page-level events (saved batches, blocked pages,
    empty pages) are logged under ``listing_crawler.*`` at INFO/WARNING.
    """
    resolved = resolve_level(level)
    logging.basicConfig(level=resolved, format=LOG_FORMAT)

    if resolved > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
