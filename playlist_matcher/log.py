from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from loguru import Logger

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[module]}</cyan> - "
    "<level>{message}</level>"
)


def setup_logging(level: str = "INFO", log_file: Path | None = None) -> None:
    """Replace Loguru's default sink with the service's console (and optional file) sinks."""
    logger.remove()
    logger.configure(extra={"service": "playlist-matcher", "module": "root"})
    logger.add(sink=sys.stderr, level=level.upper(), format=CONSOLE_FORMAT, colorize=True)
    if log_file is not None:
        logger.add(
            sink=str(log_file),
            level="DEBUG",
            rotation="10 MB",
            retention="1 week",
            serialize=True,
            enqueue=True,
        )


def get_logger(name: str) -> Logger:
    return logger.bind(module=name, service="playlist-matcher")
