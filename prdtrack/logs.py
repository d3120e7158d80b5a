"""
Logging setup for the prdtrack CLI.

Modules log through the standard library (`logging.getLogger(__name__)`);
configure_logging routes those records into Loguru sinks: stderr for humans
and, when configured, a rotating file with one JSON object per line.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from loguru import logger

from .config import LoggingConfig


CONSOLE_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan> - <level>{message}</level>"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"

# Chatty third-party loggers
QUIET_LOGGERS = ("LiteLLM", "httpx", "urllib3")


class InterceptHandler(logging.Handler):
    """Intercept standard logging messages toward Loguru sinks."""
    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def configure_logging(config: LoggingConfig | None = None, verbose: bool = False) -> None:
    """Install console and optional file sinks. Safe to call more than once."""
    config = config or LoggingConfig()
    level = "DEBUG" if verbose else config.level.upper()

    logger.remove()
    logger.add(sys.stderr, level=level, colorize=True, format=CONSOLE_FORMAT)

    if config.file:
        log_file = Path(config.file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(log_file),
            level="DEBUG",
            rotation="10 MB",
            retention=5,
            serialize=config.json,
            format=FILE_FORMAT,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
