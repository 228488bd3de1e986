"""
ReleaseDiff — Engine logging.

Everything logs through the ``releasediff`` logger. ``configure_logging``
installs the console format on the root handler (once) and sets the
engine logger's level, so a host application that already configured
logging keeps its own handlers.
"""

import logging
import os
import time
from contextlib import contextmanager
from typing import Generator

LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

logger = logging.getLogger("releasediff")


def configure_logging(level: str | None = None) -> logging.Logger:
    """Apply ``level`` (default: ``LOG_LEVEL``, else INFO) to the engine logger."""
    logging.basicConfig(format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logger.setLevel(name if name in LOG_LEVELS else "INFO")
    return logger


@contextmanager
def step_timer(step_name: str) -> Generator[None, None, None]:
    """
    Log how long the wrapped block took.

    A block that raises is logged as failed, with the exception type,
    and the exception propagates unchanged.
    """
    logger.debug("%s started", step_name)
    start = time.perf_counter()
    try:
        yield
    except Exception as exc:
        logger.warning(
            "✘ %s failed after %.0f ms (%s)", step_name, (time.perf_counter() - start) * 1000, type(exc).__name__
        )
        raise
    logger.info("✔ %s done in %.0f ms", step_name, (time.perf_counter() - start) * 1000)


configure_logging()
