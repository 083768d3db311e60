"""
Logging configuration (loguru)
"""

import sys
from typing import Optional

from loguru import logger

from .settings import LOGGING_CONFIG


def configure_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """Send logs to stderr and, if log_file is set, to a rotating file"""
    level = level or LOGGING_CONFIG["level"]
    log_file = log_file or LOGGING_CONFIG["log_file"]

    logger.remove()
    logger.add(sys.stderr, level=level)

    if log_file:
        logger.add(
            log_file,
            rotation=LOGGING_CONFIG["rotation"],
            retention=LOGGING_CONFIG["retention"],
            level=level,
        )
