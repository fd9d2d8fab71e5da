"""Logging configuration using loguru.

The package logs through loguru's global ``logger`` but stays silent until a
host application opts in: ``panoramax_client/__init__.py`` disables the
package's records, and ``setup_logging`` turns them back on with sinks.

Example:
    from panoramax_client.logging import setup_logging

    setup_logging(level="DEBUG")

"""

import sys
from typing import Any

from loguru import logger

PACKAGE = "panoramax_client"

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{thread.name}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: str | None = None,
) -> Any:
    """Enable and route the package's log records.

    Replaces existing sinks, so call it once at start-up (the CLI does).

    Args:
        level: Minimum level. One of: DEBUG, INFO, WARNING, ERROR, CRITICAL.
        json_output: Serialize records as JSON lines on stderr.
        log_file: Optional file that also receives records, rotated at 10 MB.

    Returns:
        The configured loguru logger.

    """
    logger.remove()
    logger.enable(PACKAGE)

    if json_output:
        logger.add(sys.stderr, format="{message}", serialize=True, level=level)
    else:
        # Thread names matter here: cache waits and prefetches run concurrently
        logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=True)

    if log_file:
        logger.add(
            log_file,
            format=CONSOLE_FORMAT,
            level=level,
            rotation="10 MB",
            retention="7 days",
            compression="gz",
            enqueue=True,
        )

    logger.debug("Logging configured: level={}, json={}, file={}", level, json_output, log_file)
    return logger
