"""Logger configuration for the fleet desk."""

import sys
from typing import Optional

from loguru import logger


def setup_logging(level: str = 'INFO', log_file: Optional[str] = None) -> None:
    """Configure loguru with a console sink and an optional rotating file sink."""
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
               "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=level.upper(),
        colorize=True,
    )
    if log_file:
        logger.add(
            log_file,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            level=level.upper(),
            rotation='10 MB',
            retention='7 days',
        )
    logger.info("Logger initialized with level={}", level.upper())
